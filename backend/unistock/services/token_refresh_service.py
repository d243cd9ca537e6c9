"""
Token Refresh Service - Scheduled renewal of marketplace OAuth tokens

Designed to be triggered by a cron job every few minutes. Every integration
with a refresh token whose access token expires within the safety margin
(or whose expiry is unknown) is renewed and persisted encrypted.

Author: UNISTOCK
Date: 2025-11-28
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from unistock.connectors.amazon_connector import AmazonConnector
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector
from unistock.connectors.meta_connector import MetaConnector
from unistock.core.config import settings
from unistock.domain.integration import Integration, Platform
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.services.credentials_service import (
    CredentialsService,
    as_aware,
    get_credentials_service,
    utcnow,
)

logger = logging.getLogger(__name__)

# Access token lifetime per platform (hours). 0 = never expires
TOKEN_EXPIRY_HOURS = {
    Platform.AMAZON: 1,
    Platform.MERCADOLIVRE: 6,
    Platform.SHOPEE: 4,
    Platform.SHOPIFY: 0,
    Platform.META_ADS: 1440,  # 60 days
}

REFRESH_MARGIN_MINUTES = 15


def needs_refresh(integration: Integration, now: datetime) -> bool:
    """Unknown expiry or expiry within the margin"""
    if integration.platform == Platform.SHOPIFY:
        return False
    if integration.token_expires_at is None:
        return True
    return as_aware(integration.token_expires_at) <= now + timedelta(minutes=REFRESH_MARGIN_MINUTES)


class TokenRefreshService:
    """Service that renews every integration token close to expiry"""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 credentials_service: Optional[CredentialsService] = None,
                 transport=None):
        self.integrations = integration_repository or IntegrationRepository()
        self.credentials = credentials_service or get_credentials_service()
        self.transport = transport

    # ==================== PLATFORM HANDLERS ====================

    async def _refresh_mercadolivre(self, integration: Integration, refresh_token: str) -> Optional[Dict]:
        return await MercadoLivreConnector.refresh_token(
            refresh_token, settings.MERCADOLIVRE_APP_ID, settings.MERCADOLIVRE_SECRET_KEY,
            transport=self.transport
        )

    async def _refresh_amazon(self, integration: Integration, refresh_token: str) -> Optional[Dict]:
        token_data = await AmazonConnector.get_lwa_token(
            refresh_token, settings.AMAZON_LWA_CLIENT_ID, settings.AMAZON_LWA_CLIENT_SECRET,
            transport=self.transport
        )
        # LWA keeps the same refresh token
        return {'access_token': token_data.get('access_token')}

    async def _refresh_meta(self, integration: Integration, refresh_token: str) -> Optional[Dict]:
        # Meta renews the current access token itself, not a refresh token
        access_token = self.credentials.decrypt(integration.encrypted_access_token)
        if not access_token:
            return None
        token_data = await MetaConnector(transport=self.transport).exchange_token(
            access_token, settings.META_APP_ID, settings.META_APP_SECRET
        )
        return {'access_token': token_data.get('access_token')}

    async def _refresh_shopee(self, integration: Integration, refresh_token: str) -> Optional[Dict]:
        # TODO: Shopee Open Platform refresh needs the partner_id/shop_id HMAC signature
        logger.warning(f"Shopee token refresh not supported yet (integration {integration.id})")
        return None

    # ==================== MAIN ====================

    async def refresh_all(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Renew every token close to expiry

        Returns:
            Summary {total, needs_refresh, refreshed, failed, skipped, details, duration_seconds}
        """
        start_time = time.time()
        now = now or utcnow()

        integrations = [i for i in self.integrations.find_all() if i.has_refresh_token]
        to_refresh = [i for i in integrations if needs_refresh(i, now)]

        handlers = {
            Platform.MERCADOLIVRE: self._refresh_mercadolivre,
            Platform.AMAZON: self._refresh_amazon,
            Platform.META_ADS: self._refresh_meta,
            Platform.SHOPEE: self._refresh_shopee,
        }

        results = {
            'total': len(integrations),
            'needs_refresh': len(to_refresh),
            'refreshed': 0,
            'failed': 0,
            'skipped': len(integrations) - len(to_refresh),
            'details': []
        }
        details: List[Dict[str, Any]] = results['details']

        logger.info(f"Token refresh: {len(to_refresh)} of {len(integrations)} integrations need renewal")

        for integration in to_refresh:
            entry = {
                'platform': integration.platform,
                'id': integration.id,
                'account': integration.account_name
            }

            handler = handlers.get(integration.platform)
            if not handler:
                results['skipped'] += 1
                continue

            try:
                refresh_token = self.credentials.decrypt(integration.encrypted_refresh_token)
                if not refresh_token:
                    results['failed'] += 1
                    details.append({**entry, 'status': 'failed', 'error': 'Failed to decrypt refresh token'})
                    continue

                token_data = await handler(integration, refresh_token)
                if not token_data or not token_data.get('access_token'):
                    results['failed'] += 1
                    details.append({**entry, 'status': 'failed', 'error': 'Invalid response from platform API'})
                    continue

                expiry_hours = TOKEN_EXPIRY_HOURS.get(integration.platform) or 1
                new_expires_at = utcnow() + timedelta(hours=expiry_hours)
                new_refresh = token_data.get('refresh_token')

                self.integrations.update_tokens(
                    integration.id,
                    self.credentials.encrypt(token_data['access_token']),
                    self.credentials.encrypt(new_refresh) if new_refresh else None,
                    new_expires_at
                )

                results['refreshed'] += 1
                details.append({**entry, 'status': 'success', 'new_expires_at': new_expires_at.isoformat()})

            except Exception as e:
                logger.error(f"Token refresh failed for {integration.platform} integration {integration.id}: {e}")
                results['failed'] += 1
                details.append({**entry, 'status': 'failed', 'error': str(e)})

        results['duration_seconds'] = round(time.time() - start_time, 2)
        logger.info(f"Token refresh finished: {results['refreshed']} refreshed, {results['failed']} failed")
        return results
