"""
Magalu Seller API Connector - portfolio price and stock

Author: UNISTOCK
Date: 2025-11-26
"""
from typing import Dict, Optional

import httpx

from unistock.connectors.base import BaseConnector


class MagaluConnector(BaseConnector):
    """SKU-keyed portfolio updates on the Magalu marketplace"""

    base_url = "https://api.magalu.com/seller/v1"

    def __init__(self, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(transport=transport)
        self.access_token = access_token

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        }

    async def update_price(self, sku: str, price: float) -> Dict:
        return await self._request("PUT", "/portfolios/prices", json={'sku': sku, 'price': price})

    async def update_stock(self, sku: str, quantity: int) -> Dict:
        return await self._request("PUT", "/portfolios/stocks", json={'sku': sku, 'quantity': quantity})
