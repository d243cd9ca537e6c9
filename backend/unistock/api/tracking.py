"""
Tracking API - Shipping status of marketplace orders

Endpoints:
- POST /api/v1/tracking/sync   - Refresh the current user's orders
- POST /api/v1/tracking/sweep  - Refresh every user's orders (requires API key)

Author: UNISTOCK
Date: 2025-12-02
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from unistock.core.auth import TokenUser, get_current_user, verify_sync_key
from unistock.services.tracking_service import TrackingService, get_tracking_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/tracking", tags=["Tracking"])


@router.post("/sync")
async def sync_tracking(
    user: TokenUser = Depends(get_current_user),
    service: TrackingService = Depends(get_tracking_service)
):
    try:
        result = await service.sync_user(user.id)
        return {"status": "success", "data": result}
    except Exception as e:
        logger.error(f"Error syncing tracking for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sweep", dependencies=[Depends(verify_sync_key)])
async def sweep_tracking(service: TrackingService = Depends(get_tracking_service)):
    try:
        result = await service.sync_all()
        return {"status": "success", "data": result}
    except Exception as e:
        logger.error(f"Error in tracking sweep: {e}")
        raise HTTPException(status_code=500, detail=str(e))
