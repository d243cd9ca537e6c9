"""
Unit tests for AmazonSyncService

Author: UNISTOCK
Date: 2025-10-20
"""
import asyncio
import json

import pytest

from unistock.connectors.amazon_connector import BRAZIL_MARKETPLACE_ID, US_MARKETPLACE_ID
from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.services.amazon_sync_service import (
    AmazonSyncService,
    build_patches,
    read_observed_listing,
    seller_id_from_participation,
)
from unistock.services.credentials_service import TokenUnavailableError
from unistock.services.listing_sync_common import ListingSyncError

PARTICIPATIONS = ('GET', '/sellers/v1/marketplaceParticipations')
LISTING_PATH = '/listings/2021-08-01/items/A1SELLER/SKU-1'

VERIFIED_LISTING = {
    'attributes': {
        'purchasable_offer': [{'our_price': [{'schedule': [{'value_with_tax': 59.9}]}]}],
        'list_price': [{'value_with_tax': 79.9}],
        'fulfillment_availability': [{'fulfillment_channel_code': 'DEFAULT', 'quantity': 12}],
    },
    'summaries': [{'itemName': 'Mochila Antiga', 'mainImage': {'link': 'https://m.media-amazon.com/1.jpg'}}],
    'issues': [],
}


def _request(**fields):
    return ListingSyncRequest(integration_id="int-amazon", platform_product_id="SKU-1", **fields)


def _service(integration_repository, listing_repository, credentials_service, transport):
    return AmazonSyncService(integration_repository, listing_repository, credentials_service, transport)


def _participations(json_response, seller_id=None):
    participation = {'isParticipating': True}
    if seller_id:
        participation['sellerId'] = seller_id
    return json_response(200, {'payload': [
        {'marketplace': {'id': US_MARKETPLACE_ID}, 'participation': {'isParticipating': True}},
        {'marketplace': {'id': BRAZIL_MARKETPLACE_ID}, 'participation': participation},
    ]})


def _listing_routes(json_response, patch_status=200, patch_body=None):
    def get_listing(request):
        if request.url.params['includedData'] == 'summaries':
            return json_response(200, {'summaries': [{'productType': 'LUGGAGE'}]})
        return json_response(200, VERIFIED_LISTING)

    return {
        ('GET', LISTING_PATH): get_listing,
        ('PATCH', LISTING_PATH): json_response(patch_status, patch_body if patch_body is not None else {
            'sku': 'SKU-1', 'status': 'ACCEPTED', 'submissionId': 'sub-1', 'issues': []
        }),
    }


class TestHelpers:

    def test_build_patches(self):
        patches = build_patches(_request(stock=12, price="R$ 59,90", title=" Mochila ",
                                         image_url="https://img/1.jpg", description="Resistente"),
                                BRAZIL_MARKETPLACE_ID)

        assert [p['path'] for p in patches] == [
            '/attributes/fulfillment_availability',
            '/attributes/purchasable_offer',
            '/attributes/item_name',
            '/attributes/main_product_image_locator',
            '/attributes/product_description',
        ]
        assert patches[0]['value'] == [{'fulfillment_channel_code': 'DEFAULT', 'quantity': 12}]
        offer = patches[1]['value'][0]
        assert offer['currency'] == "BRL"
        assert offer['our_price'] == [{'schedule': [{'value_with_tax': "59.90"}]}]
        assert patches[2]['value'][0]['value'] == "Mochila"

    def test_build_patches_ignores_relative_image(self):
        assert build_patches(_request(image_url="/local.jpg"), BRAZIL_MARKETPLACE_ID) == []

    def test_seller_id_keys(self):
        assert seller_id_from_participation({'sellerId': 'A1'}) == 'A1'
        assert seller_id_from_participation({'participation': {'sellerID': 'A2'}}) == 'A2'
        assert seller_id_from_participation({'sellerId': '12345'}) is None

    def test_read_observed_listing(self):
        observed = read_observed_listing(VERIFIED_LISTING)

        assert observed == {
            'offer_price': 59.9,
            'list_price': 79.9,
            'stock': 12,
            'title': 'Mochila Antiga',
            'main_image': 'https://m.media-amazon.com/1.jpg',
            'issues': []
        }

    def test_read_observed_listing_empty(self):
        assert read_observed_listing({})['offer_price'] is None


class TestAmazonSync:

    def test_patch_and_verify(self, make_integration, integration_repository, listing_repository,
                              credentials_service, transport_factory, json_response):
        # Arrange
        integration_repository.find_by_id.return_value = make_integration(Platform.AMAZON, seller_id="A1SELLER")
        transport = transport_factory({
            PARTICIPATIONS: _participations(json_response),
            **_listing_routes(json_response),
        })
        service = _service(integration_repository, listing_repository, credentials_service, transport)

        # Act
        result = asyncio.run(service.sync("user-1", _request(price=59.9, stock=12, title="Mochila Nova")))

        # Assert
        assert result['success'] is True
        assert result['submission_id'] == 'sub-1'
        assert result['sent_data']['marketplace'] == BRAZIL_MARKETPLACE_ID
        assert result['sent_data']['price_string'] == "59.90"
        assert result['sent_data']['product_type'] == 'LUGGAGE'
        assert result['observed_stock'] == 12
        assert result['name_may_not_change'] is True

        patch_request = transport.calls('PATCH', LISTING_PATH)[0]
        assert patch_request.url.params['marketplaceIds'] == BRAZIL_MARKETPLACE_ID
        body = json.loads(patch_request.content)
        assert body['productType'] == 'LUGGAGE'
        assert len(body['patches']) == 3

    def test_explicit_marketplace_skips_participations(self, make_integration, integration_repository,
                                                       listing_repository, credentials_service, transport_factory,
                                                       json_response):
        integration_repository.find_by_id.return_value = make_integration(Platform.AMAZON, seller_id="A1SELLER")
        transport = transport_factory(_listing_routes(json_response))
        service = _service(integration_repository, listing_repository, credentials_service, transport)

        result = asyncio.run(service.sync("user-1", _request(stock=1, marketplace_id="A1AM78C64UM0Y8")))

        assert result['sent_data']['currency'] == "MXN"
        assert transport.calls(*PARTICIPATIONS) == []

    def test_seller_id_discovered_and_saved(self, make_integration, integration_repository, listing_repository,
                                            credentials_service, transport_factory, json_response):
        # Arrange
        integration_repository.find_by_id.return_value = make_integration(Platform.AMAZON)
        routes = {PARTICIPATIONS: _participations(json_response, seller_id="A1SELLER")}
        routes.update(_listing_routes(json_response))
        service = _service(integration_repository, listing_repository, credentials_service, transport_factory(routes))

        # Act
        result = asyncio.run(service.sync("user-1", _request(stock=4)))

        # Assert
        assert result['success'] is True
        integration_repository.update_amazon_identity.assert_called_once_with(
            "int-amazon", "A1SELLER", BRAZIL_MARKETPLACE_ID)

    def test_missing_seller_id(self, make_integration, integration_repository, listing_repository,
                               credentials_service, transport_factory, json_response):
        integration_repository.find_by_id.return_value = make_integration(Platform.AMAZON)
        transport = transport_factory({PARTICIPATIONS: _participations(json_response)})
        service = _service(integration_repository, listing_repository, credentials_service, transport)

        with pytest.raises(ListingSyncError) as exc_info:
            asyncio.run(service.sync("user-1", _request(stock=4)))

        assert exc_info.value.to_dict()['requires_seller_id'] is True

    def test_invalid_patch(self, make_integration, integration_repository, listing_repository,
                           credentials_service, transport_factory, json_response):
        # Arrange
        integration_repository.find_by_id.return_value = make_integration(
            Platform.AMAZON, seller_id="A1SELLER", marketplace_id=BRAZIL_MARKETPLACE_ID)
        transport = transport_factory(_listing_routes(json_response, patch_status=400, patch_body={
            'errors': [{'code': 'InvalidInput', 'message': 'Invalid price'}]
        }))
        service = _service(integration_repository, listing_repository, credentials_service, transport)

        # Act
        result = asyncio.run(service.sync("user-1", _request(price=1, listing_id="listing-1")))

        # Assert
        assert result == {
            'success': False,
            'error': "Dados inválidos para a Amazon",
            'details': "Invalid price",
            'requires_reconnect': False,
            'amazon_status': 400,
            'platform_product_id': "SKU-1"
        }
        listing_repository.mark_error.assert_called_once_with("listing-1", "Invalid price")

    def test_nothing_to_patch(self, make_integration, integration_repository, listing_repository,
                              credentials_service, transport_factory):
        integration_repository.find_by_id.return_value = make_integration(
            Platform.AMAZON, seller_id="A1SELLER", marketplace_id=BRAZIL_MARKETPLACE_ID)
        service = _service(integration_repository, listing_repository, credentials_service, transport_factory({}))

        assert asyncio.run(service.sync("user-1", _request()))['skipped'] is True

    def test_token_unavailable(self, make_integration, integration_repository, listing_repository,
                               credentials_service, transport_factory):
        integration_repository.find_by_id.return_value = make_integration(Platform.AMAZON)
        credentials_service.get_valid_access_token.side_effect = TokenUnavailableError("Reconecte sua conta.")
        service = _service(integration_repository, listing_repository, credentials_service, transport_factory({}))

        with pytest.raises(ListingSyncError) as exc_info:
            asyncio.run(service.sync("user-1", _request(stock=1)))

        assert exc_info.value.requires_reconnect is True
