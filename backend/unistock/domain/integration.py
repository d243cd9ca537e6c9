"""
Integration Domain Model

Represents a marketplace account connected by a user (OAuth tokens are
stored encrypted by the database RPC encrypt_token).

Author: UNISTOCK
Date: 2025-10-17
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class Platform:
    """Marketplace identifiers as stored in integrations.platform"""
    MERCADOLIVRE = "mercadolivre"
    SHOPEE = "shopee"
    AMAZON = "amazon"
    SHOPIFY = "shopify"
    MAGALU = "magalu"
    META_ADS = "meta_ads"

    ALL = (MERCADOLIVRE, SHOPEE, AMAZON, SHOPIFY, MAGALU, META_ADS)


class Integration(BaseModel):
    """
    Integration domain model - one connected marketplace account

    Fields:
        id: Integration UUID
        user_id: Owner (tenant) UUID
        platform: One of Platform.ALL
        encrypted_access_token / encrypted_refresh_token: ciphertext, never plain tokens
        token_expires_at: When the access token expires (None = unknown)
        shop_domain: Shopify store domain
        marketplace_id / seller_id: Amazon SP-API identity
    """

    id: str = Field(..., description="Integration ID")
    user_id: str = Field(..., description="Owner user ID")
    platform: str = Field(..., description="Marketplace identifier")

    encrypted_access_token: Optional[str] = Field(None, description="Encrypted OAuth access token")
    encrypted_refresh_token: Optional[str] = Field(None, description="Encrypted OAuth refresh token")
    token_expires_at: Optional[datetime] = Field(None, description="Access token expiry")

    shop_domain: Optional[str] = Field(None, description="Shopify shop domain")
    marketplace_id: Optional[str] = Field(None, description="Amazon marketplace ID")
    seller_id: Optional[str] = Field(None, description="Amazon selling partner ID (integrations.selling_partner_id)")
    account_name: Optional[str] = Field(None, description="Display name of the connected account")
    account_name: Optional[str] = Field(None, description="Display name of the connected account")
    account_nickname: Optional[str] = Field(None, description="Name the user gave the account")

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def display_name(self) -> str:
        return self.account_nickname or self.account_name or self.platform

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.encrypted_refresh_token)
