"""
Finance API - Profit breakdown, projections and ad metrics

Endpoints:
- GET  /api/v1/finance/fees               - Default marketplace fees and tax regimes
- POST /api/v1/finance/breakdown          - Revenue to net profit for a month
- POST /api/v1/finance/projection         - Monthly profit simulation
- POST /api/v1/finance/marketing-metrics  - TACOS, ROI, ROAS for given figures

Author: UNISTOCK
Date: 2025-11-18
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
import logging

from unistock.core.auth import TokenUser, get_current_user
from unistock.services.finance_service import (
    DEFAULT_FEES,
    DEFAULT_TAX_RATE,
    TAX_REGIMES,
    FinanceService,
    get_finance_service,
    marketing_metrics,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/finance", tags=["Finance"])


# ============================================================================
# Request Models
# ============================================================================

class BreakdownRequest(BaseModel):
    month: Optional[date] = Field(None, description="Any day of the month (default: current month)")
    tax_regime: Optional[str] = Field(None, description="mei, simples_nacional, lucro_presumido or isento")
    tax_rate: Optional[float] = Field(None, ge=0, le=100, description="Explicit tax rate (%), overrides the regime")


class ProjectionRequest(BaseModel):
    margin_percent: float = Field(30, gt=0, le=100, description="Target gross margin (%)")
    multiplier: float = Field(100, ge=0, description="Sales volume in % of the last 30 days")
    custom_revenue: Optional[float] = Field(None, ge=0, description="Explicit monthly revenue")


class MarketingMetricsRequest(BaseModel):
    billing: float = Field(..., ge=0, description="Gross billing")
    gross_profit: float = Field(..., description="Gross profit before ads")
    ad_spend: float = Field(..., ge=0, description="Total ad spend")


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/fees")
async def get_fees():
    """Default fees per marketplace (commission %, payment fee %) and tax regimes"""
    return {
        "status": "success",
        "data": {
            "marketplaces": {platform: fees.to_dict() for platform, fees in DEFAULT_FEES.items()},
            "tax_regimes": TAX_REGIMES,
            "default_tax_rate": DEFAULT_TAX_RATE
        }
    }


@router.post("/breakdown")
def profit_breakdown(
    request: BreakdownRequest,
    user: TokenUser = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service)
):
    try:
        result = service.breakdown(user.id, month=request.month, tax_regime=request.tax_regime,
                                   tax_rate=request.tax_rate)
        return {"status": "success", "data": result}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing profit breakdown for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/projection")
def profit_projection(
    request: ProjectionRequest,
    user: TokenUser = Depends(get_current_user),
    service: FinanceService = Depends(get_finance_service)
):
    try:
        result = service.projection(user.id, margin_percent=request.margin_percent,
                                    multiplier=request.multiplier, custom_revenue=request.custom_revenue)
        return {"status": "success", "data": result}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error computing profit projection for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/marketing-metrics")
async def get_marketing_metrics(
    request: MarketingMetricsRequest,
    user: TokenUser = Depends(get_current_user)
):
    return {
        "status": "success",
        "data": marketing_metrics(request.billing, request.gross_profit, request.ad_spend)
    }
