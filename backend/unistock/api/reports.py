"""
Reports API - CSV / XLSX report download

Endpoints:
- POST /api/v1/reports - Generate and download a report

Author: UNISTOCK
Date: 2025-11-20
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
import io
import logging

from unistock.core.auth import TokenUser, get_current_user
from unistock.services.report_service import ReportService, get_report_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/reports", tags=["Reports"])


class ReportRequest(BaseModel):
    report_type: str = Field(..., description="sales, profitability, marketplace_performance, trends, "
                                              "stock_forecast or roi_by_channel")
    period: str = Field("last_30_days", description="last_7_days, last_30_days, last_month, "
                                                    "last_3_months, last_6_months, current_year or custom")
    format: str = Field("csv", description="csv or xlsx")
    start_date: Optional[date] = Field(None, description="Start of a custom period")
    end_date: Optional[date] = Field(None, description="End of a custom period")


@router.post("")
def generate_report(
    request: ReportRequest,
    user: TokenUser = Depends(get_current_user),
    service: ReportService = Depends(get_report_service)
):
    """Returns the file as an attachment"""
    try:
        report = service.generate(user.id, request.report_type, request.period, request.format,
                                  custom_start=request.start_date, custom_end=request.end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating {request.report_type} report for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=f"Error generating report: {str(e)}")

    return StreamingResponse(
        io.BytesIO(report.content),
        media_type=report.media_type,
        headers={
            "Content-Disposition": f"attachment; filename={report.filename}"
        }
    )
