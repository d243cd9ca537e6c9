"""
Magalu Listing Sync Service
Pushes price and stock of a product to its Magalu portfolio SKU

The listing's platform_product_id is the seller SKU. Price and stock are
independent: each failure is collected and the listing is marked as
error when any step failed.

Author: UNISTOCK
Date: 2025-11-26
"""
import logging
from typing import Any, Dict, List

from unistock.connectors.base import MarketplaceAPIError
from unistock.connectors.magalu_connector import MagaluConnector
from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.listing_sync_common import BaseListingSync, normalize_money

logger = logging.getLogger(__name__)


class MagaluSyncService(BaseListingSync):
    """Service for syncing a product to a Magalu seller portfolio"""

    platform = Platform.MAGALU
    platform_label = "Magalu"

    def _connector(self, access_token: str) -> MagaluConnector:
        return MagaluConnector(access_token, transport=self.transport)

    async def sync(self, user_id: str, request: ListingSyncRequest) -> Dict[str, Any]:
        integration = self.load_integration(user_id, request)

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
        except TokenUnavailableError:
            return self.failure(request, "Erro ao descriptografar token. Reconecte sua conta Magalu.",
                                requires_reconnect=True)

        connector = self._connector(access_token)
        sku = request.platform_product_id
        price = normalize_money(request.price)

        if price is None and request.stock is None:
            return self.skipped()

        updated_fields: List[str] = []
        errors: List[str] = []

        if price is not None:
            logger.info(f"Updating Magalu price of SKU {sku}: R${price}")
            try:
                await connector.update_price(sku, price)
                updated_fields.append('price')
            except MarketplaceAPIError as e:
                errors.append(f"Preço: {e.status_code} - {e.message}")

        if request.stock is not None:
            logger.info(f"Updating Magalu stock of SKU {sku}: {request.stock}")
            try:
                await connector.update_stock(sku, request.stock)
                updated_fields.append('stock')
            except MarketplaceAPIError as e:
                errors.append(f"Estoque: {e.status_code} - {e.message}")

        if errors:
            error = "; ".join(errors)
            logger.error(f"Magalu sync of SKU {sku} failed: {error}")
            return self.failure(
                request, error,
                requires_reconnect=False,
                updated_fields=updated_fields,
                errors=errors
            )

        self.record_success(request)
        return {
            'success': True,
            'message': 'Produto atualizado no Magalu',
            'platform_product_id': sku,
            'updated_fields': updated_fields
        }
