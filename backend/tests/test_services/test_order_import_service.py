"""
Unit tests for OrderImportService

Marketplace APIs answer through RecordingTransport (conftest).

Author: UNISTOCK
Date: 2025-11-26
"""
import asyncio
from unittest.mock import MagicMock

import pytest

from unistock.domain.integration import Platform
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.order_import_service import (
    OrderImportService,
    map_amazon_order_status,
    map_mercadolivre_order_status,
    map_shopify_order_status,
    normalize_amazon_order,
    normalize_mercadolivre_order,
    normalize_shopify_order,
)

CATALOG = {'CAM-01': 'p1'}

ML_ORDER = {
    'id': 2000001,
    'status': 'paid',
    'date_created': '2025-11-10T14:30:00.000-03:00',
    'total_amount': 999,
    'buyer': {'nickname': 'COMPRADOR01', 'first_name': 'Ana'},
    'order_items': [
        {'item': {'id': 'MLB1', 'seller_sku': 'CAM-01', 'title': 'Camiseta'}, 'quantity': 2, 'unit_price': 59.9},
        {'item': {'id': 'MLB2', 'seller_sku': None, 'title': 'Boné'}, 'quantity': 1, 'unit_price': 30},
    ],
}

SHOPIFY_ORDER = {
    'id': 5001,
    'created_at': '2025-11-11T09:00:00-03:00',
    'financial_status': 'paid',
    'fulfillment_status': None,
    'cancelled_at': None,
    'total_price': '129.90',
    'email': 'maria@exemplo.com.br',
    'customer': {'first_name': 'Maria', 'last_name': 'Souza'},
    'shipping_address': {'city': 'Campinas'},
    'line_items': [{'id': 1, 'sku': 'CAM-01', 'title': 'Camiseta', 'quantity': 1, 'price': '129.90'}],
}

AMAZON_ORDER = {
    'AmazonOrderId': '701-0000001',
    'OrderStatus': 'Unshipped',
    'PurchaseDate': '2025-11-12T12:00:00Z',
    'OrderTotal': {'Amount': '200.00', 'CurrencyCode': 'BRL'},
}

AMAZON_ITEMS = [
    {'OrderItemId': 'i1', 'SellerSKU': 'CAM-01', 'Title': 'Camiseta', 'QuantityOrdered': 4,
     'ItemPrice': {'Amount': '200.00'}},
]


@pytest.fixture
def order_repository():
    repo = MagicMock()
    repo.upsert_imported.return_value = True
    return repo


@pytest.fixture
def product_repository(make_product):
    repo = MagicMock()
    repo.find_by_user.return_value = [make_product("p1", sku="CAM-01"), make_product("p2", sku=None)]
    return repo


def _service(integration_repository, order_repository, product_repository, credentials_service, transport):
    return OrderImportService(integration_repository, order_repository, product_repository,
                              credentials_service, transport)


class TestStatusMapping:

    @pytest.mark.parametrize("status,expected", [
        ('payment_required', 'pending'), ('payment_in_process', 'processing'), ('paid', 'paid'),
        ('cancelled', 'cancelled'), ('partially_paid', 'pending'), (None, 'pending'),
    ])
    def test_mercadolivre(self, status, expected):
        assert map_mercadolivre_order_status(status) == expected

    @pytest.mark.parametrize("status,expected", [
        ('Pending', 'pending'), ('PendingAvailability', 'pending'), ('Unshipped', 'paid'),
        ('PartiallyShipped', 'processing'), ('InvoiceUnconfirmed', 'processing'),
        ('Canceled', 'cancelled'), ('Unfulfillable', 'cancelled'), ('Shipped', 'shipped'),
    ])
    def test_amazon(self, status, expected):
        assert map_amazon_order_status(status) == expected

    def test_shopify(self):
        assert map_shopify_order_status({'financial_status': 'authorized'}) == 'processing'
        assert map_shopify_order_status({'financial_status': 'partially_refunded'}) == 'refunded'
        assert map_shopify_order_status({'financial_status': 'voided'}) == 'cancelled'
        assert map_shopify_order_status({'financial_status': 'paid', 'fulfillment_status': 'partial'}) == 'shipped'
        assert map_shopify_order_status({'financial_status': 'paid', 'fulfillment_status': 'fulfilled'}) == 'delivered'
        assert map_shopify_order_status({'financial_status': 'paid', 'fulfillment_status': 'fulfilled',
                                         'cancelled_at': '2025-11-12T10:00:00Z'}) == 'cancelled'


class TestNormalizers:

    def test_mercadolivre_order(self):
        order = normalize_mercadolivre_order(ML_ORDER, CATALOG)

        assert order['order_id_channel'] == "2000001"
        assert order['customer_name'] == "COMPRADOR01"
        assert order['total_value'] == 149.8
        assert order['items'][0] == {'product_id': 'p1', 'sku': 'CAM-01', 'title': 'Camiseta',
                                     'quantity': 2, 'unit_price': 59.9}
        assert order['items'][1]['product_id'] is None
        assert order['order_date'] == '2025-11-10T14:30:00.000-03:00'

    def test_mercadolivre_total_falls_back_to_total_amount(self):
        order = normalize_mercadolivre_order({**ML_ORDER, 'order_items': []}, CATALOG)

        assert order['total_value'] == 999

    def test_shopify_order(self):
        order = normalize_shopify_order(SHOPIFY_ORDER, CATALOG)

        assert order['customer_name'] == "Maria Souza"
        assert order['total_value'] == 129.9
        assert order['items'][0]['product_id'] == 'p1'
        assert order['shipping_address'] == {'city': 'Campinas'}

    def test_amazon_unit_price_from_item_total(self):
        order = normalize_amazon_order(AMAZON_ORDER, AMAZON_ITEMS, CATALOG)

        assert order['order_id_channel'] == '701-0000001'
        assert order['status'] == 'paid'
        assert order['total_value'] == 200
        assert order['items'][0]['unit_price'] == 50
        assert order['items'][0]['quantity'] == 4


class TestSyncIntegration:

    def test_mercadolivre_import(self, make_integration, integration_repository, order_repository,
                                 product_repository, credentials_service, transport_factory, json_response):
        # Arrange
        transport = transport_factory({
            ('GET', '/users/me'): json_response(200, {'id': 777, 'nickname': 'LOJA'}),
            ('GET', '/orders/search'): json_response(200, {'results': [ML_ORDER]}),
        })
        order_repository.upsert_imported.side_effect = [False]
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport)

        # Act
        result = asyncio.run(service.sync_integration(make_integration(Platform.MERCADOLIVRE)))

        # Assert
        assert result == {'platform': 'mercadolivre', 'account': 'Loja mercadolivre',
                          'status': 'success', 'fetched': 1, 'new': 0}
        search = transport.calls('GET', '/orders/search')[0]
        assert search.url.params['seller'] == "777"
        assert search.url.params['sort'] == "date_desc"
        assert 'order.date_created.from' in search.url.params

        user_id, platform, order_id_channel, fields = order_repository.upsert_imported.call_args[0]
        assert (user_id, platform, order_id_channel) == ("user-1", "mercadolivre", "2000001")
        assert 'order_id_channel' not in fields
        assert fields['items'][0]['product_id'] == 'p1'

    def test_shopify_import(self, make_integration, integration_repository, order_repository,
                            product_repository, credentials_service, transport_factory, json_response):
        transport = transport_factory({
            ('GET', '/admin/api/2024-01/orders.json'): json_response(200, {'orders': [SHOPIFY_ORDER]}),
        })
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport)

        result = asyncio.run(service.sync_integration(
            make_integration(Platform.SHOPIFY, shop_domain="loja-teste.myshopify.com")))

        assert result['status'] == 'success'
        assert result['new'] == 1
        request = transport.calls('GET', '/admin/api/2024-01/orders.json')[0]
        assert request.url.params['status'] == "any"
        assert request.url.host == "loja-teste.myshopify.com"

    def test_amazon_import_reads_items(self, make_integration, integration_repository, order_repository,
                                       product_repository, credentials_service, transport_factory, json_response):
        # Arrange
        transport = transport_factory({
            ('GET', '/orders/v0/orders'): json_response(200, {'payload': {'Orders': [AMAZON_ORDER]}}),
            ('GET', '/orders/v0/orders/701-0000001/orderItems'): json_response(
                200, {'payload': {'OrderItems': AMAZON_ITEMS}}),
        })
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport)

        # Act
        result = asyncio.run(service.sync_integration(
            make_integration(Platform.AMAZON, marketplace_id=None)))

        # Assert
        assert result['fetched'] == 1
        assert transport.calls('GET', '/orders/v0/orders')[0].url.params['MarketplaceIds'] == "A2Q3Y263D00KWC"
        fields = order_repository.upsert_imported.call_args[0][3]
        assert fields['items'][0]['unit_price'] == 50

    def test_shopify_without_domain_is_error(self, make_integration, integration_repository, order_repository,
                                             product_repository, credentials_service, transport_factory):
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport_factory({}))

        result = asyncio.run(service.sync_integration(make_integration(Platform.SHOPIFY, shop_domain=None)))

        assert result['status'] == 'error'
        assert "shop_domain" in result['error']
        order_repository.upsert_imported.assert_not_called()

    def test_token_failure_is_error(self, make_integration, integration_repository, order_repository,
                                    product_repository, credentials_service, transport_factory):
        credentials_service.get_valid_access_token.side_effect = TokenUnavailableError("expired")
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport_factory({}))

        result = asyncio.run(service.sync_integration(make_integration(Platform.MERCADOLIVRE)))

        assert result['status'] == 'error'
        assert result['error'] == "expired"

    def test_platform_without_order_api_is_skipped(self, make_integration, integration_repository,
                                                   order_repository, product_repository, credentials_service,
                                                   transport_factory):
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport_factory({}))

        result = asyncio.run(service.sync_integration(make_integration(Platform.SHOPEE)))

        assert result['status'] == 'skipped'
        credentials_service.get_valid_access_token.assert_not_called()


class TestSyncUser:

    def test_platform_filter_and_summary(self, make_integration, integration_repository, order_repository,
                                         product_repository, credentials_service, transport_factory,
                                         json_response):
        # Arrange
        integration_repository.find_all.return_value = [
            make_integration(Platform.MERCADOLIVRE),
            make_integration(Platform.SHOPIFY, shop_domain="loja-teste"),
            make_integration(Platform.META_ADS),
        ]
        transport = transport_factory({
            ('GET', '/admin/api/2024-01/orders.json'): json_response(200, {'orders': [SHOPIFY_ORDER]}),
        })
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport)

        # Act
        result = asyncio.run(service.sync_user("user-1", platform=Platform.SHOPIFY, days_since=7))

        # Assert
        assert [r['platform'] for r in result['results']] == ['shopify']
        assert result['total_synced'] == 1
        assert result['new_orders'] == 1
        assert result['message'] == "1 pedidos sincronizados, 1 novos"
        integration_repository.find_all.assert_called_once_with(user_id="user-1")
        product_repository.find_by_user.assert_called_once()

    def test_meta_ads_is_ignored(self, make_integration, integration_repository, order_repository,
                                 product_repository, credentials_service, transport_factory):
        integration_repository.find_all.return_value = [make_integration(Platform.META_ADS)]
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport_factory({}))

        result = asyncio.run(service.sync_user("user-1"))

        assert result['results'] == []
        product_repository.find_by_user.assert_not_called()


class TestSyncAll:

    def test_sweeps_users_with_order_platforms(self, make_integration, integration_repository,
                                               order_repository, product_repository, credentials_service,
                                               transport_factory):
        # Arrange
        service = _service(integration_repository, order_repository, product_repository,
                           credentials_service, transport_factory({}))
        integration_repository.find_all.side_effect = lambda user_id=None: (
            [make_integration(Platform.MERCADOLIVRE, user_id="u1"),
             make_integration(Platform.SHOPIFY, user_id="u2"),
             make_integration(Platform.META_ADS, user_id="u3")]
            if user_id is None else []
        )

        # Act
        result = asyncio.run(service.sync_all())

        # Assert
        assert result['users_processed'] == 2
        assert result['total_synced'] == 0
