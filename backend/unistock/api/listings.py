"""
Listings API - Push product data to marketplace listings

Endpoints:
- POST /api/v1/listings/sync - Sync price/stock/title/image/description of one listing

The response is 200 with {'success': False, ...} when the marketplace
rejects the update (the error is also stored on the listing). Invalid
requests (missing ids, unknown or foreign integration) return 4xx.

Author: UNISTOCK
Date: 2025-10-20
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
import logging

from unistock.core.auth import TokenUser, get_current_user
from unistock.domain.listing import ListingSyncRequest
from unistock.services.listing_sync_common import ListingSyncError
from unistock.services.listing_sync_service import ListingSyncService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/listings", tags=["Listings"])

_listing_sync_service = None


def get_listing_sync_service() -> ListingSyncService:
    global _listing_sync_service
    if _listing_sync_service is None:
        _listing_sync_service = ListingSyncService()
    return _listing_sync_service


@router.post("/sync")
async def sync_listing(
    request: ListingSyncRequest,
    user: TokenUser = Depends(get_current_user),
    service: ListingSyncService = Depends(get_listing_sync_service)
):
    """
    Sync one listing on the marketplace of its integration

    Body:
        integration_id, platform_product_id (required); listing_id,
        variant_id, marketplace_id, price, stock, title, image_url,
        description (optional, only set fields are sent)
    """
    try:
        return await service.sync(user.id, request)
    except ListingSyncError as e:
        logger.warning(f"Listing sync rejected ({e.status_code}): {e.message}")
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error syncing listing {request.platform_product_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
