"""
Unit tests for ListingSyncService dispatch

Author: UNISTOCK
Date: 2025-10-20
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.listing_sync_common import ListingSyncError
from unistock.services.listing_sync_service import ListingSyncService


@pytest.fixture
def service(integration_repository, listing_repository, credentials_service):
    return ListingSyncService(integration_repository, listing_repository, credentials_service)


REQUEST = ListingSyncRequest(integration_id="int-1", platform_product_id="X1", stock=3)


class TestListingSyncService:

    @pytest.mark.parametrize("platform", [Platform.MERCADOLIVRE, Platform.SHOPIFY, Platform.AMAZON,
                                          Platform.MAGALU])
    def test_delegates_to_platform_service(self, service, integration_repository, make_integration, platform):
        # Arrange
        integration_repository.find_by_id.return_value = make_integration(platform)
        service.services[platform].sync = AsyncMock(return_value={'success': True})

        # Act
        result = asyncio.run(service.sync("user-1", REQUEST))

        # Assert
        assert result == {'success': True}
        service.services[platform].sync.assert_awaited_once_with("user-1", REQUEST)

    def test_missing_fields(self, service):
        with pytest.raises(ListingSyncError) as exc_info:
            asyncio.run(service.sync("user-1", ListingSyncRequest(platform_product_id="X1")))

        assert exc_info.value.status_code == 400

    def test_unknown_integration(self, service, integration_repository):
        integration_repository.find_by_id.return_value = None

        with pytest.raises(ListingSyncError) as exc_info:
            asyncio.run(service.sync("user-1", REQUEST))

        assert exc_info.value.status_code == 404
        assert exc_info.value.requires_reconnect is True

    def test_unsupported_platform(self, service, integration_repository, make_integration):
        integration_repository.find_by_id.return_value = make_integration(Platform.SHOPEE)

        with pytest.raises(ListingSyncError, match="shopee"):
            asyncio.run(service.sync("user-1", REQUEST))
