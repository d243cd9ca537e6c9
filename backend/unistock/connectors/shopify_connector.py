"""
Shopify API Connector
Handles interactions with the Shopify Admin REST API

Author: UNISTOCK
Date: 2025-10-04
"""
from typing import Dict, List, Optional, Any
import logging

import httpx

from unistock.connectors.base import BaseConnector

logger = logging.getLogger(__name__)

API_VERSION = "2024-01"


def normalize_shop_domain(shop: str) -> str:
    """'minha-loja' -> 'minha-loja.myshopify.com' (full domains are kept)"""
    shop = (shop or "").strip().replace("https://", "").replace("http://", "").rstrip("/")
    if not shop:
        raise ValueError("Shopify shop domain is required")
    if not shop.endswith(".myshopify.com"):
        shop = f"{shop}.myshopify.com"
    return shop


class ShopifyConnector(BaseConnector):
    """
    Connector for the Shopify Admin REST API

    Handles:
    - Products and variants (title, images, price)
    - Locations and inventory levels (stock)
    - Orders (import) and fulfillments (tracking)
    """

    def __init__(self, shop_domain: str, access_token: str, api_version: str = API_VERSION,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(transport=transport)
        self.shop_domain = normalize_shop_domain(shop_domain)
        self.access_token = access_token
        self.api_version = api_version
        self.base_url = f"https://{self.shop_domain}/admin/api/{self.api_version}"

    def _headers(self) -> Dict[str, str]:
        return {
            'X-Shopify-Access-Token': self.access_token,
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }

    # ==================== PRODUCTS ====================

    async def get_product(self, product_id: str) -> Dict:
        data = await self._request("GET", f"/products/{product_id}.json")
        return data.get('product', {})

    async def update_product(self, product_id: str, fields: Dict[str, Any]) -> Dict:
        """
        PUT products/{id}.json

        Args:
            fields: e.g. {'title': ..., 'images': [{'src': url}]}
        """
        data = await self._request(
            "PUT", f"/products/{product_id}.json",
            json={'product': {'id': int(product_id) if str(product_id).isdigit() else product_id, **fields}}
        )
        return data.get('product', {})

    # ==================== VARIANTS ====================

    async def get_variant(self, variant_id: str) -> Dict:
        data = await self._request("GET", f"/variants/{variant_id}.json")
        return data.get('variant', {})

    async def update_variant(self, variant_id: str, fields: Dict[str, Any]) -> Dict:
        data = await self._request(
            "PUT", f"/variants/{variant_id}.json",
            json={'variant': {'id': int(variant_id) if str(variant_id).isdigit() else variant_id, **fields}}
        )
        return data.get('variant', {})

    # ==================== INVENTORY ====================

    async def get_locations(self) -> List[Dict]:
        data = await self._request("GET", "/locations.json")
        return data.get('locations', [])

    async def set_inventory_level(self, location_id: Any, inventory_item_id: Any, available: int) -> Dict:
        """POST inventory_levels/set.json (absolute quantity)"""
        data = await self._request(
            "POST", "/inventory_levels/set.json",
            json={
                'location_id': location_id,
                'inventory_item_id': inventory_item_id,
                'available': available
            }
        )
        return data.get('inventory_level', {})

    # ==================== FULFILLMENTS ====================

    async def get_fulfillments(self, order_id: str) -> List[Dict]:
        data = await self._request("GET", f"/orders/{order_id}/fulfillments.json")
        return data.get('fulfillments', [])

    # ==================== ORDERS ====================

    async def get_orders(self, created_at_min: str, limit: int = 250) -> List[Dict]:
        """Orders created since created_at_min, any status"""
        data = await self._request(
            "GET", "/orders.json",
            params={'created_at_min': created_at_min, 'status': 'any', 'limit': limit}
        )
        return data.get('orders', [])
