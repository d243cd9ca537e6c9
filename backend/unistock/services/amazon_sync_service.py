"""
Amazon Listing Sync Service
Pushes stock, price, title, main image and description to an Amazon listing
through the SP-API Listings Items API (PATCH)

Before patching, the service resolves the marketplace (Brazil preferred),
the real seller ID (AXXXXXXXX, required by the Listings API) and the
listing's product type. After patching it reads the listing back to report
what Amazon actually shows; changes can take up to 15 minutes to appear.

Author: UNISTOCK
Date: 2025-10-20
"""
import logging
from typing import Any, Dict, List, Optional

from unistock.connectors.amazon_connector import (
    AmazonConnector,
    BRAZIL_MARKETPLACE_ID,
    US_MARKETPLACE_ID,
    currency_for_marketplace,
)
from unistock.connectors.base import MarketplaceAPIError
from unistock.domain.integration import Integration, Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.listing_sync_common import BaseListingSync, ListingSyncError, normalize_money

logger = logging.getLogger(__name__)

DEFAULT_PRODUCT_TYPE = "PRODUCT"
LANGUAGE_TAG = "pt_BR"


def is_seller_id(value: Any) -> bool:
    return isinstance(value, str) and value.startswith("A")


def seller_id_from_participation(participation: Dict[str, Any]) -> Optional[str]:
    """Seller ID may come under several keys depending on the API version"""
    nested = participation.get('participation') or {}
    for candidate in (
        participation.get('sellerID'),
        participation.get('sellerId'),
        participation.get('seller_id'),
        nested.get('sellerID'),
        nested.get('sellerId'),
    ):
        if is_seller_id(candidate):
            return candidate
    return None


def build_patches(request: ListingSyncRequest, marketplace_id: str) -> List[Dict[str, Any]]:
    """
    Build the JSON-Patch list for the requested fields

    fulfillment_availability carries no marketplace_id; the offer price
    must be a string with two decimals ("59.90").
    """
    patches = []

    if request.stock is not None:
        patches.append({
            'op': 'replace',
            'path': '/attributes/fulfillment_availability',
            'value': [{'fulfillment_channel_code': 'DEFAULT', 'quantity': request.stock}]
        })

    price = normalize_money(request.price)
    if price is not None:
        patches.append({
            'op': 'replace',
            'path': '/attributes/purchasable_offer',
            'value': [{
                'marketplace_id': marketplace_id,
                'currency': currency_for_marketplace(marketplace_id),
                'our_price': [{'schedule': [{'value_with_tax': f"{price:.2f}"}]}]
            }]
        })

    title = (request.title or "").strip()
    if title:
        patches.append({
            'op': 'replace',
            'path': '/attributes/item_name',
            'value': [{'value': title, 'marketplace_id': marketplace_id, 'language_tag': LANGUAGE_TAG}]
        })

    if request.image_url and request.image_url.startswith("http"):
        patches.append({
            'op': 'replace',
            'path': '/attributes/main_product_image_locator',
            'value': [{'marketplace_id': marketplace_id, 'media_location': request.image_url}]
        })

    description = (request.description or "").strip()
    if description:
        patches.append({
            'op': 'replace',
            'path': '/attributes/product_description',
            'value': [{'value': description, 'language_tag': LANGUAGE_TAG, 'marketplace_id': marketplace_id}]
        })

    return patches


def read_observed_listing(listing: Dict[str, Any]) -> Dict[str, Any]:
    """Extract what Amazon currently shows from a getListingsItem response"""
    attributes = listing.get('attributes') or {}
    observed = {
        'offer_price': None,
        'list_price': None,
        'stock': None,
        'title': None,
        'main_image': None,
        'issues': listing.get('issues') or []
    }

    offers = attributes.get('purchasable_offer') or []
    if offers:
        try:
            observed['offer_price'] = offers[0]['our_price'][0]['schedule'][0]['value_with_tax']
        except (KeyError, IndexError, TypeError):
            pass

    list_prices = attributes.get('list_price') or []
    if list_prices:
        observed['list_price'] = list_prices[0].get('value_with_tax')

    availability = attributes.get('fulfillment_availability') or []
    if availability:
        observed['stock'] = availability[0].get('quantity')

    summaries = listing.get('summaries') or []
    if summaries:
        observed['title'] = summaries[0].get('itemName')
        observed['main_image'] = (summaries[0].get('mainImage') or {}).get('link')

    return observed


def amazon_error_code(error: MarketplaceAPIError) -> str:
    errors = error.json.get('errors')
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        return str(errors[0].get('code') or '')
    return ''


class AmazonSyncService(BaseListingSync):
    """Service for syncing a product to an Amazon listing (SKU)"""

    platform = Platform.AMAZON
    platform_label = "Amazon"

    def _connector(self, access_token: str) -> AmazonConnector:
        return AmazonConnector(access_token, transport=self.transport)

    async def _participations(self, connector: AmazonConnector) -> List[Dict[str, Any]]:
        try:
            return await connector.get_marketplace_participations()
        except MarketplaceAPIError as e:
            logger.warning(f"getMarketplaceParticipations failed: {e.status_code} - {e.message}")
            return []

    async def resolve_marketplace(self, connector: AmazonConnector, integration: Integration,
                                  requested: Optional[str] = None) -> str:
        """
        Marketplace to patch

        The US marketplace is the SP-API default, so a stored US id is
        re-checked against the seller's participations. Brazil wins when
        present and is the final fallback.
        """
        marketplace_id = requested or integration.marketplace_id
        if marketplace_id and marketplace_id != US_MARKETPLACE_ID:
            return marketplace_id

        participations = await self._participations(connector)
        ids = [(p.get('marketplace') or {}).get('id') for p in participations]
        ids = [mid for mid in ids if mid]

        if BRAZIL_MARKETPLACE_ID in ids:
            return BRAZIL_MARKETPLACE_ID
        if ids:
            return ids[0]
        return marketplace_id or BRAZIL_MARKETPLACE_ID

    async def resolve_seller_id(self, connector: AmazonConnector, integration: Integration,
                                marketplace_id: str) -> Optional[str]:
        """Stored seller ID, else discovered through participations and saved"""
        if is_seller_id(integration.seller_id):
            return integration.seller_id

        seller_id = None
        for participation in await self._participations(connector):
            seller_id = seller_id_from_participation(participation)
            if seller_id:
                break

        if seller_id:
            try:
                self.integrations.update_amazon_identity(integration.id, seller_id, marketplace_id)
            except Exception as e:
                logger.warning(f"Could not save Amazon seller ID for integration {integration.id}: {e}")

        return seller_id

    async def resolve_product_type(self, connector: AmazonConnector, seller_id: str, sku: str,
                                   marketplace_id: str) -> str:
        try:
            listing = await connector.get_listing_item(seller_id, sku, marketplace_id, "summaries")
        except MarketplaceAPIError as e:
            logger.warning(f"Could not read listing {sku} for product type: {e.status_code}")
            return DEFAULT_PRODUCT_TYPE

        summaries = listing.get('summaries') or []
        if summaries and summaries[0].get('productType'):
            return summaries[0]['productType']
        return DEFAULT_PRODUCT_TYPE

    async def sync(self, user_id: str, request: ListingSyncRequest) -> Dict[str, Any]:
        integration = self.load_integration(user_id, request)
        sku = request.platform_product_id

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
        except TokenUnavailableError as e:
            raise ListingSyncError(e.message, 400, requires_reconnect=True)

        connector = self._connector(access_token)

        marketplace_id = await self.resolve_marketplace(connector, integration, request.marketplace_id)
        seller_id = await self.resolve_seller_id(connector, integration, marketplace_id)
        if not seller_id:
            raise ListingSyncError(
                "Seller ID não configurado",
                400,
                requires_seller_id=True,
                hint="Configure o Seller ID em Integrações > Amazon para sincronizar preços e estoque."
            )

        patches = build_patches(request, marketplace_id)
        if not patches:
            return self.skipped()

        product_type = await self.resolve_product_type(connector, seller_id, sku, marketplace_id)
        price = normalize_money(request.price)
        title = (request.title or "").strip() or None

        logger.info(f"Patching Amazon listing {sku} on {marketplace_id}: "
                    f"{[p['path'].rsplit('/', 1)[-1] for p in patches]}")

        try:
            patch_result = await connector.patch_listing_item(seller_id, sku, marketplace_id,
                                                              product_type, patches)
        except MarketplaceAPIError as e:
            code = amazon_error_code(e)
            if code in ('INVALID_INPUT', 'InvalidInput') or e.status_code == 400:
                error_message, requires_reconnect = "Dados inválidos para a Amazon", False
            elif code in ('UNAUTHORIZED', 'Unauthorized') or e.status_code in (401, 403):
                error_message, requires_reconnect = "Token Amazon expirado. Reconecte sua conta.", True
            else:
                error_message, requires_reconnect = "Erro ao sincronizar com Amazon", False

            logger.error(f"Amazon patch failed for {sku}: {e.status_code} {code} - {e.message}")
            self.record_error(request, e.message or error_message)
            return {
                'success': False,
                'error': error_message,
                'details': e.message,
                'requires_reconnect': requires_reconnect,
                'amazon_status': e.status_code,
                'platform_product_id': sku
            }

        try:
            verified = await connector.get_listing_item(seller_id, sku, marketplace_id,
                                                        "attributes,issues,summaries")
            observed = read_observed_listing(verified)
        except MarketplaceAPIError as e:
            logger.warning(f"Post-patch verification of {sku} failed: {e.status_code}")
            observed = read_observed_listing({})

        self.record_success(request)

        issues = list(patch_result.get('issues') or []) + list(observed['issues'])
        name_may_not_change = bool(title and observed['title'] and observed['title'] != title)

        return {
            'success': True,
            'message': (
                'Produto enviado à Amazon, mas com avisos. Pode levar até 15 minutos para refletir.'
                if issues else
                'Produto sincronizado com Amazon. Alterações podem levar até 15 minutos para refletir.'
            ),
            'platform_product_id': sku,
            'submission_id': patch_result.get('submissionId'),
            'status': patch_result.get('status'),
            'issues': issues,
            'sent_data': {
                'price_number': price,
                'price_string': f"{price:.2f}" if price is not None else None,
                'stock': request.stock,
                'name': title,
                'image_url': request.image_url,
                'currency': currency_for_marketplace(marketplace_id),
                'marketplace': marketplace_id,
                'product_type': product_type
            },
            'observed_offer_price': observed['offer_price'],
            'observed_list_price': observed['list_price'],
            'observed_stock': observed['stock'],
            'observed_title': observed['title'],
            'observed_main_image': observed['main_image'],
            'name_may_not_change': name_may_not_change
        }
