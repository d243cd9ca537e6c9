"""
Mercado Livre API Connector
Handles interactions with the Mercado Livre REST API (site MLB)

Author: UNISTOCK
Date: 2025-10-04
"""
from typing import Dict, List, Optional, Any
import logging

import httpx

from unistock.connectors.base import BaseConnector

logger = logging.getLogger(__name__)

SITE_ID = "MLB"


class MercadoLivreConnector(BaseConnector):
    """
    Connector for the Mercado Livre REST API

    Handles:
    - Item read / partial update (price, stock, pictures, title)
    - OAuth token refresh
    - Public item search (competitor pricing)
    - Orders (import) and shipments (tracking)
    """

    base_url = "https://api.mercadolibre.com"

    def __init__(self, access_token: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            access_token: OAuth access token (None for public endpoints only)
            transport: Optional httpx transport (tests)
        """
        super().__init__(transport=transport)
        self.access_token = access_token

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.access_token:
            headers['Authorization'] = f'Bearer {self.access_token}'
        return headers

    # ==================== OAUTH ====================

    @classmethod
    async def refresh_token(cls, refresh_token: str, app_id: str, secret_key: str,
                            transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
        """
        Exchange a refresh token for a new token pair

        Returns:
            {'access_token', 'refresh_token', 'expires_in', ...}
        """
        connector = cls(transport=transport)
        return await connector._request(
            "POST", "/oauth/token",
            data={
                'grant_type': 'refresh_token',
                'client_id': app_id,
                'client_secret': secret_key,
                'refresh_token': refresh_token
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            authenticated=False
        )

    # ==================== ITEMS ====================

    async def get_item(self, item_id: str) -> Dict:
        """
        Get listing details

        Relevant fields: title, price, available_quantity, sold_quantity,
        catalog_listing, catalog_product_id, status, permalink
        """
        return await self._request("GET", f"/items/{item_id}")

    async def update_item(self, item_id: str, payload: Dict[str, Any]) -> Dict:
        """PUT /items/{id} with a partial payload"""
        return await self._request(
            "PUT", f"/items/{item_id}",
            json=payload,
            headers={'Content-Type': 'application/json'}
        )

    async def get_user(self, user_id: str) -> Dict:
        """Public user profile (nickname, reputation)"""
        return await self._request("GET", f"/users/{user_id}")

    # ==================== SEARCH ====================

    async def search(self, query: str, category: Optional[str] = None, limit: int = 10,
                     condition: Optional[str] = "new") -> Dict:
        """
        Public marketplace search on the Brazilian site

        Returns the raw search payload (results, available_filters, paging).
        """
        params = {'q': query, 'limit': limit}
        if condition:
            params['condition'] = condition
            params['sort'] = 'relevance'
        if category:
            params['category'] = category

        return await self._request(
            "GET", f"/sites/{SITE_ID}/search",
            params=params,
            headers={'Accept-Language': 'pt-BR,pt;q=0.9,en;q=0.8'}
        )

    # ==================== SHIPMENTS ====================

    async def get_shipment(self, shipment_id: str) -> Dict:
        """Shipment status, tracking number and carrier"""
        return await self._request("GET", f"/shipments/{shipment_id}")

    async def get_order(self, order_id: str) -> Dict:
        return await self._request("GET", f"/orders/{order_id}")

    async def get_order_shipments(self, order_id: str) -> List[Dict]:
        """Shipments of an order (a single shipment object on older accounts)"""
        data = await self._request("GET", f"/orders/{order_id}/shipments",
                                   headers={'X-Format-New': 'true'})
        if isinstance(data, dict) and data.get('results'):
            return data['results']
        if isinstance(data, dict) and data.get('id'):
            return [data]
        return []

    # ==================== ORDERS ====================

    async def get_me(self) -> Dict:
        """Profile of the token owner (seller id, nickname)"""
        return await self._request("GET", "/users/me")

    async def search_orders(self, seller_id: str, date_from: str, limit: int = 50, offset: int = 0) -> Dict:
        """
        Seller orders created since date_from, newest first

        Returns the raw payload ({'results': [...], 'paging': {...}}).
        """
        return await self._request(
            "GET", "/orders/search",
            params={
                'seller': seller_id,
                'order.date_created.from': date_from,
                'sort': 'date_desc',
                'limit': limit,
                'offset': offset
            }
        )
