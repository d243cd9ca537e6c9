"""
Shopify Listing Sync Service
Pushes title, image, price and stock of a product to its Shopify product

Three independent steps:
1. Product (title, images) - a failure here ends the sync
2. Price through the variant
3. Stock through inventory_levels/set on the first active location

Price and stock failures become warnings. The sync succeeds when at
least one field was updated.

Author: UNISTOCK
Date: 2025-10-20
"""
import json
import logging
from typing import Any, Dict, List, Optional

from unistock.connectors.base import MarketplaceAPIError
from unistock.connectors.shopify_connector import ShopifyConnector
from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.listing_sync_common import BaseListingSync, ListingSyncError, normalize_money

logger = logging.getLogger(__name__)


def shopify_error_message(error: MarketplaceAPIError, default: str) -> str:
    """Shopify answers {'errors': 'text'} or {'errors': {'field': [...]}}"""
    errors = error.json.get('errors')
    if errors is None:
        return default
    if isinstance(errors, str):
        return errors
    return json.dumps(errors, ensure_ascii=False)


def pick_location(locations: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """First active location, else the first one"""
    if not locations:
        return None
    return next((loc for loc in locations if loc.get('active')), locations[0])


class ShopifySyncService(BaseListingSync):
    """Service for syncing a product to a Shopify store"""

    platform = Platform.SHOPIFY
    platform_label = "Shopify"

    def _connector(self, shop_domain: str, access_token: str) -> ShopifyConnector:
        return ShopifyConnector(shop_domain, access_token, transport=self.transport)

    async def _first_variant(self, connector: ShopifyConnector, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            product = await connector.get_product(product_id)
        except MarketplaceAPIError as e:
            logger.warning(f"Could not read Shopify product {product_id}: {e.status_code}")
            return None
        variants = product.get('variants') or []
        return variants[0] if variants else None

    async def sync(self, user_id: str, request: ListingSyncRequest) -> Dict[str, Any]:
        integration = self.load_integration(user_id, request)
        if not integration.shop_domain:
            raise ListingSyncError("Domínio da loja Shopify não encontrado", 400, requires_reconnect=True)

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
        except TokenUnavailableError:
            return self.failure(request, "Erro ao descriptografar token. Reconecte sua loja Shopify.",
                                requires_reconnect=True)

        connector = self._connector(integration.shop_domain, access_token)
        product_id = request.platform_product_id
        updated_fields: List[str] = []
        warnings: List[Dict[str, str]] = []

        # 1. Product: title and image
        product_fields: Dict[str, Any] = {}
        if request.title:
            product_fields['title'] = request.title
        if request.image_url:
            product_fields['images'] = [{'src': request.image_url}]

        if product_fields:
            try:
                await connector.update_product(product_id, product_fields)
            except MarketplaceAPIError as e:
                error_message = shopify_error_message(e, "Erro ao atualizar produto")
                logger.error(f"Shopify product {product_id} update failed: {e.status_code} - {error_message}")
                return self.failure(
                    request, error_message,
                    requires_reconnect=e.status_code == 401,
                    shopify_status=e.status_code
                )
            if request.title:
                updated_fields.append('title')
            if request.image_url:
                updated_fields.append('images')

        # 2. Price via variant
        price = normalize_money(request.price)
        stock_requested = request.stock is not None
        variant_id = request.variant_id
        first_variant = None

        if (price is not None or stock_requested) and not variant_id:
            first_variant = await self._first_variant(connector, product_id)
            if first_variant:
                variant_id = str(first_variant['id'])

        if price is not None:
            if variant_id:
                try:
                    await connector.update_variant(variant_id, {'price': f"{price:.2f}"})
                    updated_fields.append('price')
                except MarketplaceAPIError as e:
                    warnings.append({
                        'code': 'price_update_failed',
                        'message': shopify_error_message(e, "Erro ao atualizar preço")
                    })
            else:
                warnings.append({
                    'code': 'variant_not_found',
                    'message': 'Variant não encontrada. Preço não foi atualizado.'
                })

        # 3. Stock via inventory levels
        if stock_requested:
            inventory_item_id = None
            if first_variant:
                inventory_item_id = first_variant.get('inventory_item_id')
            elif variant_id:
                try:
                    variant = await connector.get_variant(variant_id)
                    inventory_item_id = variant.get('inventory_item_id')
                except MarketplaceAPIError as e:
                    logger.warning(f"Could not read Shopify variant {variant_id}: {e.status_code}")

            location = None
            try:
                location = pick_location(await connector.get_locations())
            except MarketplaceAPIError as e:
                logger.warning(f"Could not list Shopify locations: {e.status_code}")

            if inventory_item_id and location:
                try:
                    await connector.set_inventory_level(location['id'], inventory_item_id, request.stock)
                    updated_fields.append('stock')
                except MarketplaceAPIError as e:
                    warnings.append({
                        'code': 'stock_update_failed',
                        'message': shopify_error_message(e, "Erro ao atualizar estoque")
                    })
            else:
                if not inventory_item_id:
                    warnings.append({
                        'code': 'inventory_item_not_found',
                        'message': 'Inventory Item não encontrado. Estoque não foi atualizado.'
                    })
                if not location:
                    warnings.append({
                        'code': 'location_not_found',
                        'message': 'Location não encontrada. Estoque não foi atualizado.'
                    })

        # 4. Outcome
        if updated_fields:
            self.record_success(request)
            result = {
                'success': True,
                'message': 'Produto atualizado na Shopify',
                'platform_product_id': product_id,
                'updated_fields': updated_fields
            }
            if warnings:
                result['warnings'] = warnings
            return result

        if warnings:
            self.record_error(request, "; ".join(w['message'] for w in warnings))
            return {
                'success': False,
                'error': 'Nenhum campo foi atualizado',
                'requires_reconnect': False,
                'platform_product_id': product_id,
                'warnings': warnings
            }

        return self.skipped()
