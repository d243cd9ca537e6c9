"""
Orders API - Import orders from the connected marketplaces

Endpoints:
- POST /api/v1/orders/sync   - Import the current user's recent orders
- POST /api/v1/orders/sweep  - Import every user's recent orders (requires API key)

Author: UNISTOCK
Date: 2025-11-26
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from unistock.core.auth import TokenUser, get_current_user, verify_sync_key
from unistock.domain.integration import Platform
from unistock.services.order_import_service import (
    DEFAULT_DAYS_SINCE,
    OrderImportService,
    get_order_import_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders"])


@router.post("/sync")
async def sync_orders(
    platform: Optional[str] = Query(None, description="Only this marketplace"),
    days_since: int = Query(DEFAULT_DAYS_SINCE, ge=1, le=365, description="Orders created in the last N days"),
    user: TokenUser = Depends(get_current_user),
    service: OrderImportService = Depends(get_order_import_service)
):
    if platform is not None and platform not in Platform.ALL:
        raise HTTPException(status_code=400, detail=f"Plataforma desconhecida: {platform}")

    try:
        result = await service.sync_user(user.id, platform=platform, days_since=days_since)
        return {"status": "success", "data": result}
    except Exception as e:
        logger.error(f"Error importing orders for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sweep", dependencies=[Depends(verify_sync_key)])
async def sweep_orders(
    days_since: int = Query(DEFAULT_DAYS_SINCE, ge=1, le=365),
    service: OrderImportService = Depends(get_order_import_service)
):
    try:
        result = await service.sync_all(days_since=days_since)
        return {"status": "success", "data": result}
    except Exception as e:
        logger.error(f"Error in order import sweep: {e}")
        raise HTTPException(status_code=500, detail=str(e))
