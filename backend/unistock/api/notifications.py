"""
Notifications API - Automatic alerts

Endpoints:
- POST /api/v1/notifications/generate - Run the checks for the current user
- POST /api/v1/notifications/sweep    - Run the checks for every user (requires API key)

Author: UNISTOCK
Date: 2025-11-30
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from unistock.core.auth import TokenUser, get_current_user, verify_sync_key
from unistock.services.notification_service import NotificationService, get_notification_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.post("/generate")
def generate_notifications(
    user: TokenUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    try:
        created = service.generate(user.id)
        return {"status": "success", "data": {"created": created}}
    except Exception as e:
        logger.error(f"Error generating notifications for user {user.id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/sweep", dependencies=[Depends(verify_sync_key)])
def sweep_notifications(service: NotificationService = Depends(get_notification_service)):
    try:
        return {"status": "success", "data": service.generate_all()}
    except Exception as e:
        logger.error(f"Error in notifications sweep: {e}")
        raise HTTPException(status_code=500, detail=str(e))
