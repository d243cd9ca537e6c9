"""
Listing Domain Models

A listing is a product's representation on one marketplace
(product_listings table), with its own sync status.

Author: UNISTOCK
Date: 2025-10-17
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Union
from datetime import datetime


class SyncStatus:
    ACTIVE = "active"
    PENDING = "pending"
    ERROR = "error"
    PAUSED = "paused"


class ProductListing(BaseModel):
    """Listing of a product on a marketplace"""

    id: str = Field(..., description="Listing ID")
    user_id: str = Field(..., description="Owner user ID")
    product_id: Optional[str] = Field(None, description="Internal product ID")
    integration_id: Optional[str] = Field(None, description="Integration used to publish")
    platform: str = Field(..., description="Marketplace identifier")
    platform_product_id: Optional[str] = Field(None, description="Item/product ID on the marketplace (MLB..., SKU, Shopify id)")
    platform_variant_id: Optional[str] = Field(None, description="Variant ID (Shopify)")

    sync_status: str = Field(SyncStatus.PENDING, description="active, pending, error or paused")
    sync_error: Optional[str] = Field(None, description="Last sync error message")
    last_sync_at: Optional[datetime] = Field(None, description="Last successful sync")
    product_name: Optional[str] = Field(None, description="Product name (joined, read only)")

    model_config = ConfigDict(from_attributes=True)


class ListingSyncRequest(BaseModel):
    """
    Partial update pushed to a marketplace listing

    Only the fields that are set are sent. Price accepts numbers or
    Brazilian money strings ("R$ 1.234,56"), normalized per marketplace.
    """

    integration_id: Optional[str] = Field(None, description="Integration to use")
    platform_product_id: Optional[str] = Field(None, description="Item ID / SKU on the marketplace")
    listing_id: Optional[str] = Field(None, description="product_listings row to update with the result")
    variant_id: Optional[str] = Field(None, description="Shopify variant ID")
    marketplace_id: Optional[str] = Field(None, description="Amazon marketplace ID override")

    price: Optional[Union[float, str]] = Field(None, description="New price")
    stock: Optional[int] = Field(None, description="New available quantity", ge=0)
    title: Optional[str] = Field(None, description="New title")
    image_url: Optional[str] = Field(None, description="Main image URL")
    description: Optional[str] = Field(None, description="Product description")

    model_config = ConfigDict(populate_by_name=True)
