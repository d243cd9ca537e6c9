"""
Unit tests for the shared listing sync helpers

Author: UNISTOCK
Date: 2025-10-20
"""
import pytest

from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest, ProductListing
from unistock.services.listing_sync_common import ListingSyncError, normalize_money
from unistock.services.mercadolivre_sync_service import MercadoLivreSyncService


@pytest.fixture
def sync(integration_repository, listing_repository, credentials_service):
    return MercadoLivreSyncService(integration_repository, listing_repository, credentials_service)


class TestNormalizeMoney:

    @pytest.mark.parametrize("value,expected", [
        (100, 100.0),
        (59.9, 59.9),
        ("R$ 1.234,56", 1234.56),
        ("R$1.299,90", 1299.9),
        ("99,9", 99.9),
        ("1234.56", 1234.56),
        ("1,234.56", 1234.56),
        ("  42  ", 42.0),
    ])
    def test_valid_values(self, value, expected):
        assert normalize_money(value) == expected

    @pytest.mark.parametrize("value", [None, True, 0, -5, "0,00", "abc", "", "R$", float('nan')])
    def test_invalid_values(self, value):
        assert normalize_money(value) is None


class TestListingSyncError:

    def test_to_dict_includes_extra(self):
        error = ListingSyncError("Seller ID não configurado", 400, requires_seller_id=True)

        assert error.to_dict() == {
            'success': False,
            'error': "Seller ID não configurado",
            'requires_reconnect': False,
            'requires_seller_id': True
        }


class TestLoadIntegration:

    def test_missing_ids(self, sync):
        with pytest.raises(ListingSyncError) as exc_info:
            sync.load_integration("user-1", ListingSyncRequest(integration_id="int-1"))

        assert exc_info.value.status_code == 400

    def test_unknown_integration(self, sync, integration_repository):
        integration_repository.find_by_id.return_value = None

        with pytest.raises(ListingSyncError) as exc_info:
            sync.load_integration("user-1", ListingSyncRequest(integration_id="x", platform_product_id="MLB1"))

        assert exc_info.value.status_code == 404
        assert exc_info.value.requires_reconnect is True

    def test_integration_of_other_platform(self, sync, integration_repository, make_integration):
        integration_repository.find_by_id.return_value = make_integration(Platform.SHOPIFY)

        with pytest.raises(ListingSyncError) as exc_info:
            sync.load_integration("user-1", ListingSyncRequest(integration_id="x", platform_product_id="MLB1"))

        assert exc_info.value.status_code == 404

    def test_foreign_integration(self, sync, integration_repository, make_integration):
        integration_repository.find_by_id.return_value = make_integration(Platform.MERCADOLIVRE, user_id="other")

        with pytest.raises(ListingSyncError) as exc_info:
            sync.load_integration("user-1", ListingSyncRequest(integration_id="x", platform_product_id="MLB1"))

        assert exc_info.value.status_code == 403

    def test_owned_integration(self, sync, integration_repository, make_integration):
        integration = make_integration(Platform.MERCADOLIVRE)
        integration_repository.find_by_id.return_value = integration

        request = ListingSyncRequest(integration_id=integration.id, platform_product_id="MLB1")
        assert sync.load_integration("user-1", request) == integration


class TestBookkeeping:

    def test_explicit_listing_id(self, sync, listing_repository):
        sync.record_success(ListingSyncRequest(integration_id="i", platform_product_id="MLB1", listing_id="l1"))

        listing_repository.mark_synced.assert_called_once_with("l1")
        listing_repository.find_by_platform_product_id.assert_not_called()

    def test_listing_looked_up_by_platform_id(self, sync, listing_repository):
        listing_repository.find_by_platform_product_id.return_value = ProductListing(
            id="l9", user_id="user-1", platform="mercadolivre", platform_product_id="MLB1")

        sync.record_error(ListingSyncRequest(integration_id="i", platform_product_id="MLB1"), "boom")

        listing_repository.find_by_platform_product_id.assert_called_once_with("i", "MLB1")
        listing_repository.mark_error.assert_called_once_with("l9", "boom")

    def test_no_listing_row(self, sync, listing_repository):
        sync.record_success(ListingSyncRequest(integration_id="i", platform_product_id="MLB1"))

        listing_repository.mark_synced.assert_not_called()

    def test_bookkeeping_failures_are_swallowed(self, sync, listing_repository):
        listing_repository.find_by_platform_product_id.side_effect = RuntimeError("db down")
        request = ListingSyncRequest(integration_id="i", platform_product_id="MLB1")

        sync.record_success(request)

        listing_repository.mark_synced.assert_not_called()

    def test_failure_result(self, sync, listing_repository):
        request = ListingSyncRequest(integration_id="i", platform_product_id="MLB1", listing_id="l1")

        result = sync.failure(request, "erro", requires_reconnect=True, ml_status=401)

        assert result == {'success': False, 'error': "erro", 'requires_reconnect': True,
                          'platform_product_id': "MLB1", 'ml_status': 401}
        listing_repository.mark_error.assert_called_once_with("l1", "erro")
