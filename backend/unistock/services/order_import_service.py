"""
Order Import Service - pulls recent orders from the connected marketplaces

Mercado Livre, Shopify and Amazon orders created in the last N days are
normalized and upserted into the orders table, keyed by
(user_id, order_id_channel, platform). Line items are stored as
{product_id, sku, title, quantity, unit_price}; product_id is resolved
by matching the marketplace SKU against the user's catalog.

Other marketplaces (Shopee, Magalu) have no order API wired yet and are
reported as skipped.

Author: UNISTOCK
Date: 2025-11-26
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from unistock.connectors.amazon_connector import BRAZIL_MARKETPLACE_ID, AmazonConnector
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector
from unistock.connectors.shopify_connector import ShopifyConnector
from unistock.domain.integration import Integration, Platform
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.order_repository import OrderRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.services.credentials_service import CredentialsService, get_credentials_service, utcnow

logger = logging.getLogger(__name__)

IMPORT_PLATFORMS = (Platform.MERCADOLIVRE, Platform.SHOPIFY, Platform.AMAZON)
DEFAULT_DAYS_SINCE = 30
MAX_CATALOG_PRODUCTS = 1000

RESULT_SUCCESS = "success"
RESULT_ERROR = "error"
RESULT_SKIPPED = "skipped"

# ============================================================================
# Status mapping (to orders.status)
# ============================================================================

MERCADOLIVRE_ORDER_STATUS = {
    'payment_required': 'pending',
    'payment_in_process': 'processing',
    'paid': 'paid',
    'shipped': 'shipped',
    'delivered': 'delivered',
    'cancelled': 'cancelled',
    'refunded': 'refunded',
}

AMAZON_ORDER_STATUS = {
    'pending': 'pending',
    'pendingavailability': 'pending',
    'unshipped': 'paid',
    'partiallyshipped': 'processing',
    'shipped': 'shipped',
    'invoiceunconfirmed': 'processing',
    'canceled': 'cancelled',
    'unfulfillable': 'cancelled',
}

SHOPIFY_FINANCIAL_STATUS = {
    'pending': 'pending',
    'authorized': 'processing',
    'paid': 'paid',
    'partially_paid': 'processing',
    'partially_refunded': 'refunded',
    'refunded': 'refunded',
    'voided': 'cancelled',
}


def map_mercadolivre_order_status(status: Optional[str]) -> str:
    return MERCADOLIVRE_ORDER_STATUS.get((status or '').lower(), 'pending')


def map_amazon_order_status(status: Optional[str]) -> str:
    return AMAZON_ORDER_STATUS.get((status or '').lower(), 'pending')


def map_shopify_order_status(order: Dict[str, Any]) -> str:
    """Cancellation wins, then fulfillment, then the financial status"""
    if order.get('cancelled_at'):
        return 'cancelled'
    fulfillment = order.get('fulfillment_status')
    if fulfillment == 'fulfilled':
        return 'delivered'
    if fulfillment == 'partial':
        return 'shipped'
    return SHOPIFY_FINANCIAL_STATUS.get((order.get('financial_status') or '').lower(), 'pending')


def to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def build_item(sku: Optional[str], title: Optional[str], quantity: Any, unit_price: Any,
               catalog: Dict[str, str]) -> Dict[str, Any]:
    sku = str(sku) if sku else None
    return {
        'product_id': catalog.get(sku) if sku else None,
        'sku': sku,
        'title': title,
        'quantity': int(quantity or 0),
        'unit_price': round(to_float(unit_price), 2),
    }


# ============================================================================
# Normalizers: marketplace payload -> orders row fields
# ============================================================================

def normalize_mercadolivre_order(order: Dict[str, Any], catalog: Dict[str, str]) -> Dict[str, Any]:
    items = []
    for entry in order.get('order_items') or []:
        item = entry.get('item') or {}
        items.append(build_item(item.get('seller_sku'), item.get('title'),
                                entry.get('quantity'), entry.get('unit_price'), catalog))

    total = sum(i['unit_price'] * i['quantity'] for i in items) or to_float(order.get('total_amount'))
    buyer = order.get('buyer') or {}

    return {
        'order_id_channel': str(order['id']),
        'status': map_mercadolivre_order_status(order.get('status')),
        'customer_name': buyer.get('nickname') or buyer.get('first_name'),
        'customer_email': buyer.get('email'),
        'shipping_address': (order.get('shipping') or {}).get('receiver_address'),
        'total_value': round(total, 2),
        'items': items,
        'order_date': order.get('date_created'),
    }


def normalize_shopify_order(order: Dict[str, Any], catalog: Dict[str, str]) -> Dict[str, Any]:
    items = [
        build_item(line.get('sku'), line.get('title'), line.get('quantity'), line.get('price'), catalog)
        for line in order.get('line_items') or []
    ]
    customer = order.get('customer') or {}
    name = " ".join(part for part in (customer.get('first_name'), customer.get('last_name')) if part)

    return {
        'order_id_channel': str(order['id']),
        'status': map_shopify_order_status(order),
        'customer_name': name or None,
        'customer_email': order.get('email') or customer.get('email'),
        'shipping_address': order.get('shipping_address'),
        'total_value': round(to_float(order.get('total_price')), 2),
        'items': items,
        'order_date': order.get('created_at'),
    }


def normalize_amazon_order(order: Dict[str, Any], order_items: List[Dict[str, Any]],
                           catalog: Dict[str, str]) -> Dict[str, Any]:
    items = []
    for entry in order_items:
        quantity = int(entry.get('QuantityOrdered') or 0)
        price = to_float((entry.get('ItemPrice') or {}).get('Amount'))
        items.append(build_item(entry.get('SellerSKU'), entry.get('Title'), quantity,
                                price / quantity if quantity else 0, catalog))

    buyer = order.get('BuyerInfo') or {}

    return {
        'order_id_channel': order['AmazonOrderId'],
        'status': map_amazon_order_status(order.get('OrderStatus')),
        'customer_name': buyer.get('BuyerName'),
        'customer_email': buyer.get('BuyerEmail'),
        'shipping_address': order.get('ShippingAddress'),
        'total_value': round(to_float((order.get('OrderTotal') or {}).get('Amount')), 2),
        'items': items,
        'order_date': order.get('PurchaseDate'),
    }


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class OrderImportService:
    """Service for importing marketplace orders into the orders table"""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 order_repository: Optional[OrderRepository] = None,
                 product_repository: Optional[ProductRepository] = None,
                 credentials_service: Optional[CredentialsService] = None,
                 transport=None):
        self.integrations = integration_repository or IntegrationRepository()
        self.orders = order_repository or OrderRepository()
        self.products = product_repository or ProductRepository()
        self.credentials = credentials_service or get_credentials_service()
        self.transport = transport

    def _catalog(self, user_id: str) -> Dict[str, str]:
        """SKU -> product id of the user's products"""
        products = self.products.find_by_user(user_id, limit=MAX_CATALOG_PRODUCTS)
        return {p.sku: p.id for p in products if p.sku}

    # ==================== FETCHERS ====================

    async def _fetch_mercadolivre(self, integration: Integration, access_token: str, since: str,
                                  catalog: Dict[str, str]) -> List[Dict[str, Any]]:
        connector = MercadoLivreConnector(access_token, transport=self.transport)
        me = await connector.get_me()
        data = await connector.search_orders(str(me['id']), since)
        return [normalize_mercadolivre_order(o, catalog) for o in data.get('results') or []]

    async def _fetch_shopify(self, integration: Integration, access_token: str, since: str,
                             catalog: Dict[str, str]) -> List[Dict[str, Any]]:
        if not integration.shop_domain:
            raise ValueError("Shopify: shop_domain not found")
        connector = ShopifyConnector(integration.shop_domain, access_token, transport=self.transport)
        return [normalize_shopify_order(o, catalog) for o in await connector.get_orders(since)]

    async def _fetch_amazon(self, integration: Integration, access_token: str, since: str,
                            catalog: Dict[str, str]) -> List[Dict[str, Any]]:
        connector = AmazonConnector(access_token, transport=self.transport)
        marketplace_id = integration.marketplace_id or BRAZIL_MARKETPLACE_ID

        normalized = []
        for order in await connector.get_orders(marketplace_id, since):
            items = await connector.get_order_items(order['AmazonOrderId'])
            normalized.append(normalize_amazon_order(order, items, catalog))
        return normalized

    # ==================== MAIN ====================

    async def sync_integration(self, integration: Integration, days_since: int = DEFAULT_DAYS_SINCE,
                               catalog: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Import the recent orders of one integration

        Returns:
            {'platform', 'account', 'status': success|error|skipped, 'fetched', 'new', 'error'?}
        """
        result = {
            'platform': integration.platform,
            'account': integration.display_name,
            'status': RESULT_SKIPPED,
            'fetched': 0,
            'new': 0
        }

        fetchers = {
            Platform.MERCADOLIVRE: self._fetch_mercadolivre,
            Platform.SHOPIFY: self._fetch_shopify,
            Platform.AMAZON: self._fetch_amazon,
        }
        fetch = fetchers.get(integration.platform)
        if not fetch:
            return result

        if catalog is None:
            catalog = self._catalog(integration.user_id)
        since = (utcnow() - timedelta(days=days_since)).isoformat()

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
            orders = await fetch(integration, access_token, since, catalog)

            for order in orders:
                order_id_channel = order.pop('order_id_channel')
                if self.orders.upsert_imported(integration.user_id, integration.platform,
                                               order_id_channel, order):
                    result['new'] += 1

            result['fetched'] = len(orders)
            result['status'] = RESULT_SUCCESS
            logger.info(f"Imported {len(orders)} {integration.platform} orders "
                        f"({result['new']} new) for user {integration.user_id}")

        except Exception as e:
            logger.error(f"Order import failed for {integration.platform} integration {integration.id}: {e}")
            result['status'] = RESULT_ERROR
            result['error'] = str(e)

        return result

    async def sync_user(self, user_id: str, platform: Optional[str] = None,
                        days_since: int = DEFAULT_DAYS_SINCE) -> Dict[str, Any]:
        """
        Import recent orders from every marketplace the user connected

        Returns:
            {'message', 'total_synced', 'new_orders', 'results': [...]}
        """
        integrations = [
            i for i in self.integrations.find_all(user_id=user_id)
            if i.platform != Platform.META_ADS and (platform is None or i.platform == platform)
        ]

        catalog = self._catalog(user_id) if integrations else {}
        results = [await self.sync_integration(i, days_since, catalog) for i in integrations]
        return self._summary(results)

    async def sync_all(self, days_since: int = DEFAULT_DAYS_SINCE) -> Dict[str, Any]:
        """Scheduled import for every user with an order-capable integration"""
        user_ids = sorted({i.user_id for i in self.integrations.find_all() if i.platform in IMPORT_PLATFORMS})

        results: List[Dict[str, Any]] = []
        for user_id in user_ids:
            try:
                results.extend((await self.sync_user(user_id, days_since=days_since))['results'])
            except Exception as e:
                logger.error(f"Order import sweep failed for user {user_id}: {e}")

        return {**self._summary(results), 'users_processed': len(user_ids)}

    @staticmethod
    def _summary(results: List[Dict[str, Any]]) -> Dict[str, Any]:
        total = sum(r['fetched'] for r in results)
        new_orders = sum(r['new'] for r in results)
        return {
            'message': f"{total} pedidos sincronizados, {new_orders} novos",
            'total_synced': total,
            'new_orders': new_orders,
            'results': results
        }


_service_instance: Optional[OrderImportService] = None


def get_order_import_service() -> OrderImportService:
    global _service_instance
    if _service_instance is None:
        _service_instance = OrderImportService()
    return _service_instance
