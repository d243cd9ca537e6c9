"""
Notification Service - Automatic in-app alerts

Checks a user's catalog and integrations and creates notifications for:
- low stock (stock <= 5) and out of stock products
- integrations whose token may expire soon (not refreshed for 5 hours)
- listings whose last marketplace sync failed

The same notification (user, type, title) is created at most once every
24 hours.

Author: UNISTOCK
Date: 2025-11-30
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from unistock.domain.expense import Notification
from unistock.domain.integration import Platform
from unistock.repositories.expense_repository import NotificationRepository
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.listing_repository import ListingRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.services.credentials_service import as_aware, utcnow

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 5
TOKEN_STALE_HOURS = 5
DEDUP_HOURS = 24

TYPE_LOW_STOCK = "low_stock"
TYPE_TOKEN_EXPIRING = "token_expiring"
TYPE_SYNC_ERROR = "sync_error"


class NotificationService:
    """Service for generating automatic notifications"""

    def __init__(self, product_repository: Optional[ProductRepository] = None,
                 integration_repository: Optional[IntegrationRepository] = None,
                 listing_repository: Optional[ListingRepository] = None,
                 notification_repository: Optional[NotificationRepository] = None):
        self.products = product_repository or ProductRepository()
        self.integrations = integration_repository or IntegrationRepository()
        self.listings = listing_repository or ListingRepository()
        self.notifications = notification_repository or NotificationRepository()

    # ==================== CHECKS ====================

    def check_low_stock(self, user_id: str) -> List[Notification]:
        alerts = []
        for product in self.products.find_low_stock(user_id, LOW_STOCK_THRESHOLD):
            sku = product.sku or "-"
            if product.stock <= 0:
                title = f"Estoque esgotado: {product.name}"
                message = (f'O produto "{product.name}" (SKU: {sku}) está sem estoque. '
                           f'Reponha o quanto antes para não perder vendas.')
            else:
                title = f"Estoque baixo: {product.name}"
                message = f'O produto "{product.name}" (SKU: {sku}) está com apenas {product.stock} unidades em estoque.'

            alerts.append(Notification(user_id=user_id, type=TYPE_LOW_STOCK, title=title,
                                       message=message))
        return alerts

    def check_expiring_tokens(self, user_id: str, now: datetime) -> List[Notification]:
        """Shopify tokens never expire; others are renewed within ~6 hours"""
        stale_before = now - timedelta(hours=TOKEN_STALE_HOURS)

        alerts = []
        for integration in self.integrations.find_all(user_id=user_id):
            if integration.platform == Platform.SHOPIFY or integration.updated_at is None:
                continue
            if as_aware(integration.updated_at) >= stale_before:
                continue

            account = integration.display_name
            alerts.append(Notification(
                user_id=user_id,
                type=TYPE_TOKEN_EXPIRING,
                title=f"Token expirando: {account}",
                message=(f"O token de acesso da integração {integration.platform} ({account}) pode expirar "
                         f"em breve. O sistema tentará renovar automaticamente.")
            ))
        return alerts

    def check_sync_errors(self, user_id: str) -> List[Notification]:
        alerts = []
        for listing in self.listings.find_errors_by_user(user_id):
            product_name = listing.product_name or "Produto"
            alerts.append(Notification(
                user_id=user_id,
                type=TYPE_SYNC_ERROR,
                title=f"Erro de sincronização: {product_name}",
                message=f'Falha ao sincronizar "{product_name}" com {listing.platform}: {listing.sync_error}'
            ))
        return alerts

    # ==================== MAIN ====================

    def generate(self, user_id: str, now: Optional[datetime] = None) -> int:
        """
        Run every check for a user and store new notifications

        Returns:
            Number of notifications created
        """
        now = now or utcnow()

        detected = (
            self.check_low_stock(user_id)
            + self.check_expiring_tokens(user_id, now)
            + self.check_sync_errors(user_id)
        )

        created = 0
        for notification in detected:
            if self.notifications.exists_recent(user_id, notification.type, notification.title, DEDUP_HOURS):
                continue
            self.notifications.create(notification)
            created += 1

        logger.info(f"Notifications for user {user_id}: {len(detected)} detected, {created} created")
        return created

    def generate_all(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Scheduled sweep over every user with products or integrations"""
        user_ids = set(self.products.find_owner_ids())
        user_ids.update(i.user_id for i in self.integrations.find_all())

        created = 0
        failed = 0
        for user_id in sorted(user_ids):
            try:
                created += self.generate(user_id, now)
            except Exception as e:
                logger.error(f"Notification generation failed for user {user_id}: {e}")
                failed += 1

        return {'users': len(user_ids), 'created': created, 'failed': failed}


_service_instance: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    global _service_instance
    if _service_instance is None:
        _service_instance = NotificationService()
    return _service_instance
