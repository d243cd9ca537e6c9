"""
Tracking Service - Shipping status sync for marketplace orders

For each connected platform (Mercado Livre, Shopify, Amazon), every order
that is still moving is refreshed from the marketplace: normalized
shipping status, tracking code/url, carrier and an event history.

Author: UNISTOCK
Date: 2025-12-02
"""
import logging
from typing import Any, Dict, List, Optional

from unistock.connectors.amazon_connector import AmazonConnector
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector
from unistock.connectors.shopify_connector import ShopifyConnector
from unistock.domain.integration import Integration, Platform
from unistock.domain.order import Order, ShippingEvent, ShippingStatus
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.order_repository import OrderRepository
from unistock.services.credentials_service import (
    CredentialsService,
    TokenUnavailableError,
    get_credentials_service,
    utcnow,
)

logger = logging.getLogger(__name__)

TRACKED_PLATFORMS = (Platform.MERCADOLIVRE, Platform.SHOPIFY, Platform.AMAZON)
MAX_ORDERS_PER_PLATFORM = 50

# ============================================================================
# Status mapping
# ============================================================================

MERCADOLIVRE_STATUS = {
    'pending': ShippingStatus.PENDING_SHIPMENT,
    'handling': ShippingStatus.PENDING_SHIPMENT,
    'ready_to_ship': ShippingStatus.PENDING_SHIPMENT,
    'shipped': ShippingStatus.IN_TRANSIT,
    'delivered': ShippingStatus.DELIVERED,
    'not_delivered': ShippingStatus.RETURNED,
}

SHOPIFY_STATUS = {
    'confirmed': ShippingStatus.SHIPPED,
    'in_transit': ShippingStatus.IN_TRANSIT,
    'out_for_delivery': ShippingStatus.OUT_FOR_DELIVERY,
    'attempted_delivery': ShippingStatus.OUT_FOR_DELIVERY,
    'delivered': ShippingStatus.DELIVERED,
    'failure': ShippingStatus.RETURNED,
}


def map_mercadolivre_status(status: Optional[str]) -> Optional[str]:
    return MERCADOLIVRE_STATUS.get(status or '')


def map_shopify_status(shipment_status: Optional[str]) -> str:
    """Fulfilled without a carrier update counts as shipped"""
    if not shipment_status:
        return ShippingStatus.PENDING_SHIPMENT
    return SHOPIFY_STATUS.get(shipment_status, ShippingStatus.SHIPPED)


def map_amazon_status(order_status: Optional[str], fulfillment_channel: str = "MFN") -> Optional[str]:
    """AFN (FBA) shipped orders are already with the carrier"""
    if order_status == "Canceled":
        return None
    if order_status in ("Pending", "Unshipped"):
        return ShippingStatus.PENDING_SHIPMENT
    if order_status == "PartiallyShipped":
        return ShippingStatus.SHIPPED
    if order_status == "Shipped":
        return ShippingStatus.IN_TRANSIT if fulfillment_channel == "AFN" else ShippingStatus.SHIPPED
    return None


def merge_history(existing: List[ShippingEvent], new_events: List[ShippingEvent]) -> List[ShippingEvent]:
    """Union of both lists without duplicates (date|status|description), newest first"""
    seen = set()
    merged = []
    for event in list(existing) + list(new_events):
        key = f"{event.date}|{event.status}|{event.description}"
        if key in seen:
            continue
        seen.add(key)
        merged.append(event)
    return sorted(merged, key=lambda e: e.date, reverse=True)


# ============================================================================
# MAIN SERVICE CLASS
# ============================================================================

class TrackingService:
    """Service for refreshing shipping status of a user's orders"""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 order_repository: Optional[OrderRepository] = None,
                 credentials_service: Optional[CredentialsService] = None,
                 transport=None):
        self.integrations = integration_repository or IntegrationRepository()
        self.orders = order_repository or OrderRepository()
        self.credentials = credentials_service or get_credentials_service()
        self.transport = transport

    def _save(self, order: Order, status: str, events: List[ShippingEvent],
              tracking_code: Optional[str] = None, tracking_url: Optional[str] = None,
              carrier: Optional[str] = None) -> None:
        history = merge_history(order.shipping_history, events)
        self.orders.update_tracking(
            order.id, status, tracking_code, tracking_url, carrier,
            [event.model_dump() for event in history]
        )

    # ==================== PROVIDERS ====================

    async def _track_mercadolivre(self, order: Order, connector: MercadoLivreConnector) -> bool:
        """Returns True when the order was updated"""
        shipments = await connector.get_order_shipments(order.order_id_channel)
        if not shipments:
            return False
        shipment_id = str(shipments[0].get('id'))

        detail = await connector.get_shipment(shipment_id)
        ml_status = detail.get('status')
        status = map_mercadolivre_status(ml_status)
        if not status:
            return False
        if order.shipping_status == ShippingStatus.DELIVERED and status == ShippingStatus.DELIVERED:
            return False

        tracking_method = detail.get('tracking_method') or {}
        if isinstance(tracking_method, str):
            tracking_method = {'name': tracking_method}

        events = []
        for history_status, history_date in (detail.get('status_history') or {}).items():
            mapped = map_mercadolivre_status(history_status)
            if mapped and isinstance(history_date, str):
                events.append(ShippingEvent(date=history_date, status=mapped,
                                            description=f"{history_status} - Mercado Livre"))
        if not events:
            events.append(ShippingEvent(date=detail.get('last_updated') or utcnow().isoformat(),
                                        status=status, description=f"Status: {ml_status}"))

        self._save(
            order, status, events,
            tracking_code=detail.get('tracking_number') or tracking_method.get('tracking_number'),
            tracking_url=detail.get('tracking_url') or tracking_method.get('tracking_url'),
            carrier=(detail.get('logistic_type') or tracking_method.get('name')
                     or (detail.get('shipping_option') or {}).get('name'))
        )
        return True

    async def _track_shopify(self, order: Order, connector: ShopifyConnector) -> bool:
        fulfillments = await connector.get_fulfillments(order.order_id_channel)

        if not fulfillments:
            if order.shipping_status == ShippingStatus.PENDING_SHIPMENT:
                return False
            self._save(order, ShippingStatus.PENDING_SHIPMENT, [])
            return True

        fulfillment = fulfillments[-1]
        tracking_code = fulfillment.get('tracking_number')
        carrier = fulfillment.get('tracking_company')
        shipment_status = fulfillment.get('shipment_status')
        status = map_shopify_status(shipment_status)

        if order.shipping_status == status and order.tracking_code == tracking_code:
            return False

        event = ShippingEvent(
            date=fulfillment.get('updated_at') or fulfillment.get('created_at') or utcnow().isoformat(),
            status=status,
            description=f"{shipment_status or 'fulfilled'} - {carrier or 'Shopify'}"
        )
        self._save(order, status, [event], tracking_code=tracking_code,
                   tracking_url=fulfillment.get('tracking_url'), carrier=carrier)
        return True

    async def _track_amazon(self, order: Order, connector: AmazonConnector) -> bool:
        amazon_order = await connector.get_order(order.order_id_channel)
        if not amazon_order:
            return False

        order_status = amazon_order.get('OrderStatus')
        channel = amazon_order.get('FulfillmentChannel') or "MFN"
        status = map_amazon_status(order_status, channel)
        if not status or order.shipping_status == status:
            return False

        event = ShippingEvent(
            date=amazon_order.get('LastUpdateDate') or utcnow().isoformat(),
            status=status,
            description=f"Amazon {'FBA' if channel == 'AFN' else 'FBM'}: {order_status}"
        )
        self._save(order, status, [event])
        return True

    def _connector(self, integration: Integration, access_token: str):
        if integration.platform == Platform.MERCADOLIVRE:
            return MercadoLivreConnector(access_token, transport=self.transport)
        if integration.platform == Platform.SHOPIFY:
            if not integration.shop_domain:
                raise ValueError("Shopify: shop_domain not found")
            return ShopifyConnector(integration.shop_domain, access_token, transport=self.transport)
        return AmazonConnector(access_token, transport=self.transport)

    # ==================== MAIN ====================

    async def sync_platform(self, user_id: str, integration: Integration) -> Dict[str, Any]:
        """Refresh the trackable orders of one integration"""
        result = {'checked': 0, 'updated': 0, 'errors': []}

        orders = self.orders.find_trackable(user_id, integration.platform, limit=MAX_ORDERS_PER_PLATFORM)
        result['checked'] = len(orders)
        if not orders:
            return result

        try:
            access_token = await self.credentials.get_valid_access_token(integration)
            connector = self._connector(integration, access_token)
        except (TokenUnavailableError, ValueError) as e:
            logger.error(f"Tracking sync skipped for {integration.platform}: {e}")
            result['errors'].append(str(e))
            return result

        trackers = {
            Platform.MERCADOLIVRE: self._track_mercadolivre,
            Platform.SHOPIFY: self._track_shopify,
            Platform.AMAZON: self._track_amazon,
        }
        track = trackers[integration.platform]

        for order in orders:
            try:
                if await track(order, connector):
                    result['updated'] += 1
            except Exception as e:
                logger.error(f"Tracking failed for {integration.platform} order {order.order_id_channel}: {e}")
                result['errors'].append(f"{integration.platform} order {order.order_id_channel}: {e}")

        return result

    async def sync_user(self, user_id: str) -> Dict[str, Any]:
        """
        Refresh shipping status of every trackable order of a user

        Returns:
            {'updated', 'checked', 'errors', 'details': {platform: {...}}, 'message'}
        """
        integrations = [
            i for i in self.integrations.find_all(user_id=user_id)
            if i.platform in TRACKED_PLATFORMS
        ]

        details: Dict[str, Dict[str, Any]] = {}
        for integration in integrations:
            details[integration.platform] = await self.sync_platform(user_id, integration)

        checked = sum(d['checked'] for d in details.values())
        updated = sum(d['updated'] for d in details.values())
        errors = [error for d in details.values() for error in d['errors']]

        message = f"Sincronização concluída. {checked} pedidos verificados, {updated} atualizados"
        if errors:
            message += f", {len(errors)} erros"
        logger.info(f"Tracking sync for user {user_id}: {message}")

        return {
            'updated': updated,
            'checked': checked,
            'errors': errors,
            'details': details,
            'message': message + "."
        }

    async def sync_all(self) -> Dict[str, Any]:
        """Scheduled sweep over every user with a tracked integration"""
        user_ids = sorted({i.user_id for i in self.integrations.find_all() if i.platform in TRACKED_PLATFORMS})

        updated = 0
        failed_users = 0
        for user_id in user_ids:
            try:
                updated += (await self.sync_user(user_id))['updated']
            except Exception as e:
                logger.error(f"Tracking sweep failed for user {user_id}: {e}")
                failed_users += 1

        return {'users': len(user_ids), 'updated': updated, 'failed_users': failed_users}


_service_instance: Optional[TrackingService] = None


def get_tracking_service() -> TrackingService:
    global _service_instance
    if _service_instance is None:
        _service_instance = TrackingService()
    return _service_instance
