"""
Tests for tracking, notifications and token refresh endpoints

Per-user endpoints run with the JWT user; sweeps require X-Sync-Key.

Author: UNISTOCK
Date: 2025-12-02
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from unistock.api.integrations import get_token_refresh_service
from unistock.core.config import settings
from unistock.services.notification_service import get_notification_service
from unistock.services.tracking_service import get_tracking_service


@pytest.fixture
def tracking_service(api_client):
    service = MagicMock()
    service.sync_user = AsyncMock(return_value={'updated': 2, 'checked': 3, 'errors': [], 'details': {},
                                                'message': "ok."})
    service.sync_all = AsyncMock(return_value={'users': 2, 'updated': 4, 'failed_users': 0})
    api_client.app.dependency_overrides[get_tracking_service] = lambda: service
    return service


@pytest.fixture
def notification_service(api_client):
    service = MagicMock()
    service.generate.return_value = 3
    service.generate_all.return_value = {'users': 1, 'created': 3, 'failed_users': 0}
    api_client.app.dependency_overrides[get_notification_service] = lambda: service
    return service


@pytest.fixture
def token_refresh_service(api_client):
    service = MagicMock()
    service.refresh_all = AsyncMock(return_value={
        'total': 4, 'needs_refresh': 2, 'refreshed': 1, 'failed': 1, 'skipped': 2, 'details': []
    })
    api_client.app.dependency_overrides[get_token_refresh_service] = lambda: service
    return service


class TestTrackingApi:

    def test_sync_runs_for_current_user(self, api_client, tracking_service):
        response = api_client.post("/api/v1/tracking/sync")

        assert response.status_code == 200
        assert response.json()['data']['updated'] == 2
        tracking_service.sync_user.assert_awaited_once_with("user-1")

    def test_sync_failure_is_500(self, api_client, tracking_service):
        tracking_service.sync_user.side_effect = RuntimeError("boom")

        response = api_client.post("/api/v1/tracking/sync")

        assert response.status_code == 500
        assert response.json()['detail'] == "boom"

    def test_sweep_with_valid_key(self, api_client, tracking_service, sync_key):
        response = api_client.post("/api/v1/tracking/sweep", headers={'X-Sync-Key': sync_key})

        assert response.status_code == 200
        assert response.json()['data'] == {'users': 2, 'updated': 4, 'failed_users': 0}

    def test_sweep_without_key_is_401(self, api_client, tracking_service, sync_key):
        response = api_client.post("/api/v1/tracking/sweep")

        assert response.status_code == 401
        assert "X-Sync-Key" in response.json()['detail']
        tracking_service.sync_all.assert_not_called()

    def test_sweep_with_wrong_key_is_401(self, api_client, tracking_service, sync_key):
        response = api_client.post("/api/v1/tracking/sweep", headers={'X-Sync-Key': 'nope'})

        assert response.status_code == 401
        assert response.json()['detail'] == "Invalid API key"

    def test_sweep_is_open_when_no_key_is_configured(self, api_client, tracking_service, monkeypatch):
        monkeypatch.setattr(settings, "SYNC_API_KEY", "")

        response = api_client.post("/api/v1/tracking/sweep")

        assert response.status_code == 200


class TestNotificationsApi:

    def test_generate_for_current_user(self, api_client, notification_service):
        response = api_client.post("/api/v1/notifications/generate")

        assert response.status_code == 200
        assert response.json() == {'status': 'success', 'data': {'created': 3}}
        notification_service.generate.assert_called_once_with("user-1")

    def test_sweep(self, api_client, notification_service, sync_key):
        response = api_client.post("/api/v1/notifications/sweep", headers={'X-Sync-Key': sync_key})

        assert response.status_code == 200
        assert response.json()['data']['created'] == 3


class TestRefreshTokensApi:

    def test_refresh_summary_message(self, api_client, token_refresh_service, sync_key):
        response = api_client.post("/api/v1/integrations/refresh-tokens", headers={'X-Sync-Key': sync_key})

        assert response.status_code == 200
        body = response.json()
        assert body['message'] == "Token refresh completed: 1 refreshed, 1 failed"
        assert body['data']['skipped'] == 2

    def test_refresh_requires_key(self, api_client, token_refresh_service, sync_key):
        response = api_client.post("/api/v1/integrations/refresh-tokens")

        assert response.status_code == 401
        token_refresh_service.refresh_all.assert_not_called()
