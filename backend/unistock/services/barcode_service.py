"""
Barcode helpers for product labels

Author: UNISTOCK
Date: 2025-11-12
"""
import re
from typing import Dict

FORMAT_CODE128 = "CODE128"
FORMAT_EAN13 = "EAN13"
SUPPORTED_FORMATS = (FORMAT_CODE128, FORMAT_EAN13)

_NON_BARCODE_CHARS = re.compile(r'[^\w\-.]')


def _checksum(digits: str) -> int:
    """Check digit over the first 12 digits (weights 1,3,1,3...)"""
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(digits[:12]))
    return (10 - total % 10) % 10


def validate_ean13(value: str) -> bool:
    if not value or len(value) != 13 or not value.isdigit():
        return False
    return _checksum(value) == int(value[12])


def generate_ean13_check_digit(value: str) -> str:
    """Full 13-digit EAN from its first 12 digits; "" for invalid input"""
    if not value or len(value) != 12 or not value.isdigit():
        return ""
    return f"{value}{_checksum(value)}"


def resolve_barcode_format(value: str, requested: str = FORMAT_CODE128) -> Dict[str, str]:
    """
    Barcode format and value to render

    EAN13 is kept only for a valid EAN-13, otherwise CODE128 is used with
    the value stripped to word characters, '-' and '.'.
    """
    value = value or ""
    requested = (requested or FORMAT_CODE128).upper()

    if requested == FORMAT_EAN13 and validate_ean13(value):
        return {'format': FORMAT_EAN13, 'value': value}

    cleaned = _NON_BARCODE_CHARS.sub('', value) or "NO-CODE"
    return {'format': FORMAT_CODE128, 'value': cleaned}
