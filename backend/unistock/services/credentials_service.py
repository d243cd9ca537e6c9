"""
Credentials Service - Marketplace OAuth tokens with encrypted database persistence

Tokens live encrypted in the integrations table. Encryption and decryption
happen inside Postgres through the Supabase RPCs encrypt_token /
decrypt_token, so plain tokens only exist in memory for one request.

Features:
- Decrypt / encrypt tokens through Supabase RPC
- Track token expiration (5 minute safety buffer)
- Refresh Mercado Livre tokens near expiry and persist the new pair
- Exchange the Amazon refresh token for an LWA access token

Author: UNISTOCK
Date: 2026-01-03
"""
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

from unistock.connectors.amazon_connector import AmazonConnector
from unistock.connectors.mercadolivre_connector import MercadoLivreConnector
from unistock.core.config import settings
from unistock.core.database import get_supabase
from unistock.domain.integration import Integration, Platform
from unistock.repositories.integration_repository import IntegrationRepository

logger = logging.getLogger(__name__)

DEFAULT_ML_EXPIRES_IN = 21600  # 6 hours
DEFAULT_AMAZON_EXPIRES_IN = 3600


class TokenUnavailableError(Exception):
    """The integration has no usable token; the user must reconnect the account"""

    def __init__(self, message: str, requires_reconnect: bool = True):
        super().__init__(message)
        self.message = message
        self.requires_reconnect = requires_reconnect


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps coming from the database are UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialsService:
    """Service for reading, refreshing and persisting marketplace tokens"""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 supabase_client=None, transport=None):
        """
        Args:
            integration_repository: Repository used to persist refreshed tokens
            supabase_client: Client exposing rpc(); defaults to the shared service-role client
            transport: Optional httpx transport forwarded to connectors (tests)
        """
        self.integrations = integration_repository or IntegrationRepository()
        self._supabase = supabase_client
        self.transport = transport

    @property
    def supabase(self):
        if self._supabase is None:
            self._supabase = get_supabase()
        return self._supabase

    # ==================== ENCRYPTION ====================

    def decrypt(self, encrypted_token: Optional[str]) -> Optional[str]:
        """Decrypt a stored token, None when missing or not decryptable"""
        if not encrypted_token:
            return None
        try:
            result = self.supabase.rpc('decrypt_token', {'encrypted_token': encrypted_token}).execute()
            return result.data or None
        except Exception as e:
            logger.error(f"Error decrypting token: {e}")
            return None

    def encrypt(self, token: str) -> str:
        result = self.supabase.rpc('encrypt_token', {'token': token}).execute()
        if not result.data:
            raise ValueError("encrypt_token returned no data")
        return result.data

    # ==================== EXPIRATION ====================

    @staticmethod
    def is_token_expired(expires_at: Optional[datetime], buffer_minutes: int = 5,
                         now: Optional[datetime] = None) -> bool:
        """
        Check whether a token is expired or about to expire

        A missing expiry counts as expired so the caller refreshes.
        """
        if expires_at is None:
            return True
        now = now or utcnow()
        return as_aware(expires_at) <= now + timedelta(minutes=buffer_minutes)

    # ==================== ACCESS TOKENS ====================

    async def get_valid_access_token(self, integration: Integration) -> str:
        """
        Return a usable access token for the integration

        Raises:
            TokenUnavailableError: When no token can be obtained
        """
        if integration.platform == Platform.AMAZON:
            return await self.get_amazon_access_token(integration)

        access_token = self.decrypt(integration.encrypted_access_token)
        if not access_token:
            raise TokenUnavailableError("Token de acesso não encontrado. Reconecte sua conta.")

        if (integration.platform == Platform.MERCADOLIVRE
                and integration.has_refresh_token
                and self.is_token_expired(integration.token_expires_at)):
            logger.info(f"Mercado Livre token for integration {integration.id} near expiry, refreshing")
            try:
                access_token = await self.refresh_mercadolivre_token(integration)
            except Exception as e:
                # The current token may still be accepted, let the API decide
                logger.warning(f"Mercado Livre token refresh failed, using current token: {e}")

        return access_token

    async def refresh_mercadolivre_token(self, integration: Integration) -> str:
        """
        Refresh and persist the Mercado Livre token pair

        Returns:
            The new access token
        """
        refresh_token = self.decrypt(integration.encrypted_refresh_token)
        if not refresh_token:
            raise TokenUnavailableError("Refresh token do Mercado Livre não encontrado. Reconecte sua conta.")
        if not settings.MERCADOLIVRE_APP_ID or not settings.MERCADOLIVRE_SECRET_KEY:
            raise ValueError("MERCADOLIVRE_APP_ID / MERCADOLIVRE_SECRET_KEY not configured")

        token_data = await MercadoLivreConnector.refresh_token(
            refresh_token,
            settings.MERCADOLIVRE_APP_ID,
            settings.MERCADOLIVRE_SECRET_KEY,
            transport=self.transport
        )

        access_token = token_data['access_token']
        expires_in = token_data.get('expires_in') or DEFAULT_ML_EXPIRES_IN
        new_refresh = token_data.get('refresh_token')

        self.integrations.update_tokens(
            integration.id,
            self.encrypt(access_token),
            self.encrypt(new_refresh) if new_refresh else None,
            utcnow() + timedelta(seconds=expires_in)
        )
        logger.info(f"Mercado Livre token refreshed and persisted for integration {integration.id}")
        return access_token

    async def get_amazon_access_token(self, integration: Integration, persist: bool = True) -> str:
        """
        Exchange the stored Amazon refresh token for an LWA access token

        Amazon keeps the same refresh token, only the access token is stored.
        """
        refresh_token = self.decrypt(integration.encrypted_refresh_token)
        if not refresh_token:
            raise TokenUnavailableError("Token de acesso Amazon não encontrado. Reconecte sua conta.")
        if not settings.AMAZON_LWA_CLIENT_ID or not settings.AMAZON_LWA_CLIENT_SECRET:
            raise ValueError("AMAZON_LWA_CLIENT_ID / AMAZON_LWA_CLIENT_SECRET not configured")

        token_data = await AmazonConnector.get_lwa_token(
            refresh_token,
            settings.AMAZON_LWA_CLIENT_ID,
            settings.AMAZON_LWA_CLIENT_SECRET,
            transport=self.transport
        )
        access_token = token_data['access_token']

        if persist:
            expires_in = token_data.get('expires_in') or DEFAULT_AMAZON_EXPIRES_IN
            try:
                self.integrations.update_tokens(
                    integration.id,
                    self.encrypt(access_token),
                    None,
                    utcnow() + timedelta(seconds=expires_in)
                )
            except Exception as e:
                logger.warning(f"Amazon token obtained but failed to persist: {e}")

        return access_token


# Singleton instance
_credentials_service: Optional[CredentialsService] = None


def get_credentials_service() -> CredentialsService:
    """Get or create the credentials service singleton"""
    global _credentials_service
    if _credentials_service is None:
        _credentials_service = CredentialsService()
    return _credentials_service
