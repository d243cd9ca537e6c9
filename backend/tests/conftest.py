"""
Pytest fixtures and configuration for UNISTOCK Backend tests

Shared domain objects and mocks. No test needs a database or network:
repositories are MagicMocks and HTTP goes through httpx.MockTransport.

Author: UNISTOCK
Date: 2025-10-17
"""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from unistock.domain.integration import Integration, Platform
from unistock.domain.order import Order, OrderItem
from unistock.domain.product import Product
from unistock.services.credentials_service import CredentialsService

USER_ID = "user-1"
NOW = datetime(2025, 11, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_integration():
    """Factory for Integration models with sensible defaults"""
    def _make(platform=Platform.MERCADOLIVRE, **overrides):
        data = {
            'id': f"int-{platform}",
            'user_id': USER_ID,
            'platform': platform,
            'encrypted_access_token': 'enc-access',
            'encrypted_refresh_token': 'enc-refresh',
            'token_expires_at': NOW + timedelta(hours=3),
            'account_name': f"Loja {platform}",
            'updated_at': NOW,
        }
        data.update(overrides)
        return Integration(**data)
    return _make


@pytest.fixture
def make_product():
    def _make(product_id="prod-1", **overrides):
        data = {
            'id': product_id,
            'user_id': USER_ID,
            'name': f"Produto {product_id}",
            'sku': f"SKU-{product_id}",
            'stock': 10,
            'cost_price': 50.0,
            'selling_price': 100.0,
        }
        data.update(overrides)
        return Product(**data)
    return _make


@pytest.fixture
def make_order():
    def _make(order_id="order-1", product_id="prod-1", quantity=1, total_value=100.0,
              order_date=None, platform=Platform.MERCADOLIVRE, **overrides):
        data = {
            'id': order_id,
            'user_id': USER_ID,
            'platform': platform,
            'order_id_channel': f"CH-{order_id}",
            'order_date': order_date or NOW - timedelta(days=1),
            'total_value': total_value,
            'items': [OrderItem(product_id=product_id, quantity=quantity, unit_price=total_value / quantity)],
        }
        data.update(overrides)
        return Order(**data)
    return _make


@pytest.fixture
def integration_repository():
    return MagicMock()


@pytest.fixture
def listing_repository():
    repo = MagicMock()
    repo.find_by_platform_product_id.return_value = None
    return repo


@pytest.fixture
def credentials_service():
    """CredentialsService double: tokens are always valid"""
    service = MagicMock(spec=CredentialsService)
    service.get_valid_access_token = AsyncMock(return_value="access-token")
    service.decrypt.side_effect = lambda value: f"plain-{value}" if value else None
    service.encrypt.side_effect = lambda value: f"enc-{value}"
    return service


def make_json_response(status_code=200, body=None):
    """httpx.Response with a JSON body"""
    return httpx.Response(status_code, content=json.dumps(body if body is not None else {}).encode(),
                          headers={'Content-Type': 'application/json'})


class RecordingTransport(httpx.MockTransport):
    """
    MockTransport that records requests and answers from a route table

    routes: {(method, path): response | callable(request) -> response}
    Unknown routes answer 404.
    """

    def __init__(self, routes):
        self.routes = routes
        self.requests = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return make_json_response(404, {'message': f'not found: {request.url.path}'})
        if callable(handler):
            return handler(request)
        # fresh copy, a route may be hit more than once
        return httpx.Response(handler.status_code, content=handler.content, headers=handler.headers)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def transport_factory():
    return RecordingTransport


@pytest.fixture
def json_response():
    return make_json_response


@pytest.fixture
def api_client():
    """
    TestClient authenticated as USER_ID

    Tests register their service doubles in client.app.dependency_overrides;
    every override is cleared afterwards.
    """
    from fastapi.testclient import TestClient

    from unistock.core.auth import TokenUser, get_current_user
    from unistock.main import app

    app.dependency_overrides[get_current_user] = lambda: TokenUser(id=USER_ID, email="loja@exemplo.com.br")
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sync_key(monkeypatch):
    """Configure the X-Sync-Key expected by scheduled endpoints"""
    from unistock.core.config import settings

    monkeypatch.setattr(settings, "SYNC_API_KEY", "cron-key")
    return "cron-key"
