"""
Barcodes API - EAN-13 validation and label barcode format

Endpoints:
- GET /api/v1/barcodes/ean13/validate     - Is the value a valid EAN-13
- GET /api/v1/barcodes/ean13/check-digit  - Complete a 12-digit code
- GET /api/v1/barcodes/format             - Format/value to render on a label

Author: UNISTOCK
Date: 2025-11-12
"""
from fastapi import APIRouter, HTTPException, Query

from unistock.services.barcode_service import (
    SUPPORTED_FORMATS,
    generate_ean13_check_digit,
    resolve_barcode_format,
    validate_ean13,
)

router = APIRouter(prefix="/api/v1/barcodes", tags=["Barcodes"])


@router.get("/ean13/validate")
async def validate(value: str = Query(..., description="Barcode value")):
    return {"status": "success", "data": {"value": value, "valid": validate_ean13(value)}}


@router.get("/ean13/check-digit")
async def check_digit(value: str = Query(..., description="First 12 digits")):
    ean = generate_ean13_check_digit(value)
    if not ean:
        raise HTTPException(status_code=400, detail="Value must have exactly 12 digits")
    return {"status": "success", "data": {"ean13": ean, "check_digit": ean[-1]}}


@router.get("/format")
async def barcode_format(
    value: str = Query("", description="Value to encode"),
    format: str = Query("CODE128", description="Requested format (CODE128 or EAN13)")
):
    if format.upper() not in SUPPORTED_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format: {format}")
    return {"status": "success", "data": resolve_barcode_format(value, format)}
