"""
Amazon Selling Partner API Connector

Login with Amazon (LWA) token exchange plus the SP-API endpoints used by
listing sync and tracking: sellers participations, Listings Items
2021-08-01 and Orders v0.

Author: UNISTOCK
Date: 2025-10-04
"""
from typing import Dict, List, Optional, Any
import logging

import httpx

from unistock.connectors.base import BaseConnector
from unistock.core.config import settings

logger = logging.getLogger(__name__)

LWA_TOKEN_URL = "https://api.amazon.com/auth/o2/token"
LISTINGS_API_VERSION = "2021-08-01"

BRAZIL_MARKETPLACE_ID = "A2Q3Y263D00KWC"
US_MARKETPLACE_ID = "ATVPDKIKX0DER"

MARKETPLACE_CURRENCY = {
    "A2Q3Y263D00KWC": "BRL",
    "ATVPDKIKX0DER": "USD",
    "A2EUQ1WTGCTBG2": "CAD",
    "A1AM78C64UM0Y8": "MXN",
    "A1PA6795UKMFR9": "EUR",
    "A1F83G8C2ARO7P": "GBP",
    "A1RKKUPIHCS9HS": "EUR",
    "A13V1IB3VIYZZH": "EUR",
    "APJ6JRA9NG5V4": "EUR",
    "A21TJRUUN4KGV": "INR",
    "A1VC38T7YXB528": "JPY",
    "AAHKV2X7AFYLW": "CNY",
}


def currency_for_marketplace(marketplace_id: str) -> str:
    return MARKETPLACE_CURRENCY.get(marketplace_id, "USD")


class AmazonConnector(BaseConnector):
    """
    Connector for the Amazon SP-API

    Requests are authorized with the LWA access token in the
    x-amz-access-token header.
    """

    def __init__(self, access_token: str, endpoint: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(transport=transport)
        self.access_token = access_token
        self.base_url = (endpoint or settings.AMAZON_SP_API_ENDPOINT).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            'x-amz-access-token': self.access_token,
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }

    # ==================== LWA ====================

    @classmethod
    async def get_lwa_token(cls, refresh_token: str, client_id: str, client_secret: str,
                            transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
        """
        Exchange the stored refresh token for a 1-hour access token

        Returns:
            {'access_token', 'expires_in', 'token_type', ...}
        """
        connector = cls(access_token="", endpoint=LWA_TOKEN_URL, transport=transport)
        return await connector._request(
            "POST", LWA_TOKEN_URL,
            data={
                'grant_type': 'refresh_token',
                'refresh_token': refresh_token,
                'client_id': client_id,
                'client_secret': client_secret
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            authenticated=False
        )

    # ==================== SELLERS ====================

    async def get_marketplace_participations(self) -> List[Dict]:
        data = await self._request("GET", "/sellers/v1/marketplaceParticipations")
        return data.get('payload', []) or []

    # ==================== LISTINGS ====================

    async def get_listing_item(self, seller_id: str, sku: str, marketplace_id: str,
                               included_data: str = "summaries") -> Dict:
        return await self._request(
            "GET", f"/listings/{LISTINGS_API_VERSION}/items/{seller_id}/{sku}",
            params={'marketplaceIds': marketplace_id, 'includedData': included_data}
        )

    async def patch_listing_item(self, seller_id: str, sku: str, marketplace_id: str,
                                 product_type: str, patches: List[Dict]) -> Dict:
        """
        JSON-Patch style partial update of a listing

        Returns:
            {'sku', 'status': 'ACCEPTED'|'INVALID', 'submissionId', 'issues': [...]}
        """
        return await self._request(
            "PATCH", f"/listings/{LISTINGS_API_VERSION}/items/{seller_id}/{sku}",
            params={'marketplaceIds': marketplace_id, 'issueLocale': 'pt_BR'},
            json={'productType': product_type, 'patches': patches}
        )

    # ==================== ORDERS ====================

    async def get_order(self, order_id: str) -> Dict:
        data = await self._request("GET", f"/orders/v0/orders/{order_id}")
        return data.get('payload', {}) or {}

    async def get_orders(self, marketplace_id: str, created_after: str) -> List[Dict]:
        data = await self._request(
            "GET", "/orders/v0/orders",
            params={'MarketplaceIds': marketplace_id, 'CreatedAfter': created_after}
        )
        return (data.get('payload') or {}).get('Orders', []) or []

    async def get_order_items(self, order_id: str) -> List[Dict]:
        data = await self._request("GET", f"/orders/v0/orders/{order_id}/orderItems")
        return (data.get('payload') or {}).get('OrderItems', []) or []
