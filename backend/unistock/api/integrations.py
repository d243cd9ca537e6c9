"""
Integrations API - Scheduled OAuth token renewal

Endpoints:
- POST /api/v1/integrations/refresh-tokens - Renew tokens close to expiry (requires API key)

Designed to be called by cron-job.org every 10-15 minutes with the
X-Sync-Key header.

Author: UNISTOCK
Date: 2025-11-28
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from unistock.core.auth import verify_sync_key
from unistock.services.token_refresh_service import TokenRefreshService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/integrations", tags=["Integrations"])

_token_refresh_service = None


def get_token_refresh_service() -> TokenRefreshService:
    global _token_refresh_service
    if _token_refresh_service is None:
        _token_refresh_service = TokenRefreshService()
    return _token_refresh_service


@router.post("/refresh-tokens", dependencies=[Depends(verify_sync_key)])
async def refresh_tokens(service: TokenRefreshService = Depends(get_token_refresh_service)):
    """
    Renew every integration token that expires within 15 minutes

    Returns totals (refreshed, failed, skipped) and per-integration details.
    """
    try:
        result = await service.refresh_all()
        return {
            "status": "success",
            "message": f"Token refresh completed: {result['refreshed']} refreshed, {result['failed']} failed",
            "data": result
        }
    except Exception as e:
        logger.error(f"Error refreshing integration tokens: {e}")
        raise HTTPException(status_code=500, detail=str(e))
