"""
Competitors API - Comparative pricing across marketplaces

Endpoints:
- POST /api/v1/competitors/compare - Guided comparison (categories -> variations -> analysis)

Author: UNISTOCK
Date: 2025-11-10
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import Optional
import logging

from unistock.core.auth import TokenUser, get_current_user
from unistock.services.competitor_pricing_service import CompetitorPricingService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/competitors", tags=["Competitors"])


class CompareRequest(BaseModel):
    search_term: str = Field(..., description="Product name or Mercado Livre URL")
    category: Optional[str] = Field(None, description="Category chosen in the previous step")
    variation: Optional[str] = Field(None, description="Variation chosen in the previous step")


def get_competitor_pricing_service() -> CompetitorPricingService:
    return CompetitorPricingService()


@router.post("/compare")
async def compare_prices(
    request: CompareRequest,
    user: TokenUser = Depends(get_current_user),
    service: CompetitorPricingService = Depends(get_competitor_pricing_service)
):
    """
    Run the next step of the comparison

    Returns:
        {"status": "success", "step": "categories"|"variations"|"analysis", "data": {...}}
    """
    try:
        result = await service.compare(request.search_term, request.category, request.variation)
        return {"status": "success", **result}
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error comparing prices for '{request.search_term}': {e}")
        raise HTTPException(status_code=500, detail=str(e))
