"""
Mercado Livre Listing Sync Service
Pushes price, stock, pictures and title of a product to its Mercado Livre item

Title changes are only allowed on items without sales that are not
catalog listings; the service checks the item first and, if the API
still rejects the title, retries once without it.

Author: UNISTOCK
Date: 2025-10-20
"""
import logging
from typing import Any, Dict, List, Tuple

from unistock.connectors.base import MarketplaceAPIError
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector
from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.listing_sync_common import BaseListingSync, normalize_money

logger = logging.getLogger(__name__)

TOKEN_EXPIRED_MESSAGE = "Token expirado. Reconecte sua conta do Mercado Livre."
FORBIDDEN_MESSAGE = "Sem permissão para atualizar este anúncio. Verifique se a conta conectada é a correta."
DEFAULT_ERROR_MESSAGE = "Erro ao atualizar no Mercado Livre"


def is_title_error(body: Dict[str, Any]) -> bool:
    """True when any cause of a Mercado Livre error refers to the title"""
    for cause in body.get('cause') or []:
        if not isinstance(cause, dict):
            continue
        if 'title' in str(cause.get('code') or '') or 'title' in str(cause.get('message') or '').lower():
            return True
    return False


class MercadoLivreSyncService(BaseListingSync):
    """Service for syncing a product to a Mercado Livre item"""

    platform = Platform.MERCADOLIVRE
    platform_label = "Mercado Livre"

    def _connector(self, access_token: str) -> MercadoLivreConnector:
        return MercadoLivreConnector(access_token, transport=self.transport)

    async def _check_title_allowed(self, connector: MercadoLivreConnector,
                                   item_id: str) -> Tuple[bool, str]:
        """
        Returns:
            (allowed, reason) where reason explains a refusal
        """
        try:
            item = await connector.get_item(item_id)
        except MarketplaceAPIError as e:
            logger.warning(f"Could not read item {item_id} before sync ({e.status_code}), sending title anyway")
            return True, ""

        if item.get('catalog_listing') or item.get('catalog_product_id'):
            return False, "Nome não foi alterado (produto de catálogo). Preço e estoque foram atualizados."

        sold_quantity = item.get('sold_quantity') or 0
        if sold_quantity > 0:
            return False, f"Nome não foi alterado ({sold_quantity} venda(s)). Preço e estoque foram atualizados."

        return True, ""

    def _success(self, request: ListingSyncRequest, payload: Dict[str, Any], response: Dict[str, Any],
                 warnings: List[Dict[str, str]]) -> Dict[str, Any]:
        self.record_success(request)
        result = {
            'success': True,
            'message': 'Produto atualizado no Mercado Livre',
            'platform_product_id': request.platform_product_id,
            'updated_fields': list(payload.keys()),
            'ml_response': {
                'id': response.get('id'),
                'status': response.get('status'),
                'price': response.get('price'),
                'available_quantity': response.get('available_quantity')
            }
        }
        if warnings:
            result['warnings'] = warnings
        return result

    async def sync(self, user_id: str, request: ListingSyncRequest) -> Dict[str, Any]:
        """
        Sync one listing

        Returns:
            Result dict; success False results carry error, requires_reconnect,
            ml_status and ml_error
        """
        integration = self.load_integration(user_id, request)
        item_id = request.platform_product_id

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
        except TokenUnavailableError as e:
            return self.failure(request, e.message, requires_reconnect=True)

        connector = self._connector(access_token)

        payload: Dict[str, Any] = {}
        price = normalize_money(request.price)
        if price is not None:
            payload['price'] = price
        if request.stock is not None:
            payload['available_quantity'] = request.stock
        if request.image_url:
            payload['pictures'] = [{'source': request.image_url}]

        warnings: List[Dict[str, str]] = []
        if request.title:
            allowed, reason = await self._check_title_allowed(connector, item_id)
            if allowed:
                payload['title'] = request.title
            else:
                warnings.append({'code': 'title_not_modifiable', 'message': reason})

        if not payload:
            return self.skipped()

        logger.info(f"Updating Mercado Livre item {item_id}: fields {list(payload.keys())}")

        try:
            response = await connector.update_item(item_id, payload)
            return self._success(request, payload, response, warnings)
        except MarketplaceAPIError as e:
            error = e

        body = error.json
        error_message = body.get('message') or DEFAULT_ERROR_MESSAGE
        title_error = is_title_error(body)

        if title_error and 'title' in payload:
            payload.pop('title')
            if payload:
                logger.warning(f"Item {item_id} rejected the title, retrying without it")
                try:
                    response = await connector.update_item(item_id, payload)
                    warnings.append({
                        'code': 'title_not_modifiable',
                        'message': 'Nome não foi alterado (produto de catálogo ou com vendas). '
                                   'Preço e estoque foram atualizados.'
                    })
                    return self._success(request, payload, response, warnings)
                except MarketplaceAPIError as retry_error:
                    error_message = retry_error.json.get('message') or DEFAULT_ERROR_MESSAGE

        requires_reconnect = False
        if error.status_code == 401:
            error_message = TOKEN_EXPIRED_MESSAGE
            requires_reconnect = True
        elif error.status_code == 403:
            error_message = FORBIDDEN_MESSAGE
            requires_reconnect = True
        elif body.get('cause') and not title_error:
            first_cause = body['cause'][0]
            if isinstance(first_cause, dict) and first_cause.get('message'):
                error_message = first_cause['message']

        logger.error(f"Mercado Livre sync failed for {item_id}: {error.status_code} - {error_message}")
        return self.failure(
            request, error_message,
            requires_reconnect=requires_reconnect,
            ml_status=error.status_code,
            ml_error=error.body
        )
