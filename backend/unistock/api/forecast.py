"""
Forecast API - Stock-out prediction

Endpoints:
- GET /api/v1/forecast/stock - Days until stock-out for the most urgent products

Author: UNISTOCK
Date: 2025-11-24
"""
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from unistock.core.auth import TokenUser, get_current_user
from unistock.services.stock_forecast_service import StockForecastService, get_stock_forecast_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/forecast", tags=["Forecast"])


@router.get("/stock")
def forecast_stock(
    force_refresh: bool = Query(False, description="Ignore the cached forecast"),
    max_products: int = Query(20, ge=1, le=100, description="Products to return"),
    user: TokenUser = Depends(get_current_user),
    service: StockForecastService = Depends(get_stock_forecast_service)
):
    """
    Stock forecast for the current user

    Cached for 6 hours per user unless force_refresh is set.
    """
    try:
        result = service.forecast(user.id, force_refresh=force_refresh, max_products=max_products)
        return {"status": "success", "data": result}
    except Exception as e:
        logger.error(f"Error forecasting stock for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
