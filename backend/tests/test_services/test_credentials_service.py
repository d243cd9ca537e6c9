"""
Unit tests for CredentialsService

Supabase RPC encryption is replaced by a MagicMock client that prefixes
values ("enc-" / "plain-").

Author: UNISTOCK
Date: 2026-01-03
"""
import asyncio
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from unistock.domain.integration import Platform
from unistock.services.credentials_service import CredentialsService, TokenUnavailableError, utcnow

ML_TOKEN = ('POST', '/oauth/token')
LWA_TOKEN = ('POST', '/auth/o2/token')


def _supabase():
    client = MagicMock()

    def rpc(name, params):
        call = MagicMock()
        if name == 'decrypt_token':
            call.execute.return_value.data = f"plain-{params['encrypted_token']}"
        else:
            call.execute.return_value.data = f"enc-{params['token']}"
        return call

    client.rpc.side_effect = rpc
    return client


@pytest.fixture
def app_settings():
    with patch('unistock.services.credentials_service.settings') as mock_settings:
        mock_settings.MERCADOLIVRE_APP_ID = "ml-app"
        mock_settings.MERCADOLIVRE_SECRET_KEY = "ml-secret"
        mock_settings.AMAZON_LWA_CLIENT_ID = "lwa-client"
        mock_settings.AMAZON_LWA_CLIENT_SECRET = "lwa-secret"
        yield mock_settings


def _service(integration_repository, transport=None, supabase=None):
    return CredentialsService(integration_repository, supabase or _supabase(), transport)


class TestEncryption:

    def test_decrypt(self, integration_repository):
        supabase = _supabase()
        service = _service(integration_repository, supabase=supabase)

        assert service.decrypt("abc") == "plain-abc"
        supabase.rpc.assert_called_once_with('decrypt_token', {'encrypted_token': "abc"})

    def test_decrypt_missing_value(self, integration_repository):
        supabase = _supabase()
        service = _service(integration_repository, supabase=supabase)

        assert service.decrypt(None) is None
        supabase.rpc.assert_not_called()

    def test_decrypt_failure_returns_none(self, integration_repository):
        supabase = MagicMock()
        supabase.rpc.side_effect = RuntimeError("function decrypt_token does not exist")

        assert _service(integration_repository, supabase=supabase).decrypt("abc") is None

    def test_encrypt_without_data(self, integration_repository):
        supabase = MagicMock()
        supabase.rpc.return_value.execute.return_value.data = None

        with pytest.raises(ValueError):
            _service(integration_repository, supabase=supabase).encrypt("token")


class TestIsTokenExpired:

    def test_buffer(self, now):
        assert CredentialsService.is_token_expired(now + timedelta(minutes=4), now=now) is True
        assert CredentialsService.is_token_expired(now + timedelta(minutes=6), now=now) is False
        assert CredentialsService.is_token_expired(None, now=now) is True

    def test_naive_timestamp(self, now):
        naive = (now - timedelta(minutes=1)).replace(tzinfo=None)
        assert CredentialsService.is_token_expired(naive, now=now) is True


class TestMercadoLivreToken:

    def test_valid_token_is_returned(self, make_integration, integration_repository, transport_factory):
        transport = transport_factory({})
        service = _service(integration_repository, transport)

        integration = make_integration(Platform.MERCADOLIVRE, token_expires_at=utcnow() + timedelta(hours=3))

        token = asyncio.run(service.get_valid_access_token(integration))

        assert token == "plain-enc-access"
        assert transport.requests == []

    def test_expired_token_is_refreshed(self, make_integration, integration_repository, transport_factory,
                                        json_response, app_settings, now):
        # Arrange
        transport = transport_factory({ML_TOKEN: json_response(200, {
            'access_token': 'new-access', 'refresh_token': 'new-refresh', 'expires_in': 21600
        })})
        service = _service(integration_repository, transport)
        integration = make_integration(Platform.MERCADOLIVRE, token_expires_at=now - timedelta(hours=1))

        # Act
        token = asyncio.run(service.get_valid_access_token(integration))

        # Assert
        assert token == "new-access"
        integration_id, access, refresh, expires_at = integration_repository.update_tokens.call_args[0]
        assert (integration_id, access, refresh) == ("int-mercadolivre", "enc-new-access", "enc-new-refresh")
        assert expires_at is not None
        body = transport.requests[0].content
        assert b'client_id=ml-app' in body
        assert b'refresh_token=plain-enc-refresh' in body

    def test_failed_refresh_keeps_current_token(self, make_integration, integration_repository, transport_factory,
                                                json_response, app_settings, now):
        transport = transport_factory({ML_TOKEN: json_response(400, {'message': 'invalid_grant'})})
        service = _service(integration_repository, transport)
        integration = make_integration(Platform.MERCADOLIVRE, token_expires_at=now - timedelta(hours=1))

        token = asyncio.run(service.get_valid_access_token(integration))

        assert token == "plain-enc-access"
        integration_repository.update_tokens.assert_not_called()

    def test_missing_access_token(self, make_integration, integration_repository):
        service = _service(integration_repository)

        with pytest.raises(TokenUnavailableError):
            asyncio.run(service.get_valid_access_token(
                make_integration(Platform.MERCADOLIVRE, encrypted_access_token=None)))

    def test_refresh_without_app_credentials(self, make_integration, integration_repository, app_settings):
        app_settings.MERCADOLIVRE_APP_ID = ""
        service = _service(integration_repository)

        with pytest.raises(ValueError, match="MERCADOLIVRE_APP_ID"):
            asyncio.run(service.refresh_mercadolivre_token(make_integration(Platform.MERCADOLIVRE)))


class TestAmazonToken:

    def test_lwa_exchange_is_persisted(self, make_integration, integration_repository, transport_factory,
                                       json_response, app_settings):
        # Arrange
        transport = transport_factory({LWA_TOKEN: json_response(200, {'access_token': 'Atza|new', 'expires_in': 3600})})
        service = _service(integration_repository, transport)

        # Act
        token = asyncio.run(service.get_valid_access_token(make_integration(Platform.AMAZON)))

        # Assert
        assert token == "Atza|new"
        assert transport.requests[0].url.host == "api.amazon.com"
        integration_id, access, refresh, _ = integration_repository.update_tokens.call_args[0]
        assert (integration_id, access, refresh) == ("int-amazon", "enc-Atza|new", None)

    def test_persist_failure_still_returns_token(self, make_integration, integration_repository, transport_factory,
                                                 json_response, app_settings):
        transport = transport_factory({LWA_TOKEN: json_response(200, {'access_token': 'Atza|new'})})
        integration_repository.update_tokens.side_effect = RuntimeError("connection lost")
        service = _service(integration_repository, transport)

        assert asyncio.run(service.get_amazon_access_token(make_integration(Platform.AMAZON))) == "Atza|new"

    def test_missing_refresh_token(self, make_integration, integration_repository):
        service = _service(integration_repository)

        with pytest.raises(TokenUnavailableError):
            asyncio.run(service.get_valid_access_token(
                make_integration(Platform.AMAZON, encrypted_refresh_token=None)))
