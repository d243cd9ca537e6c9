"""
Listing Sync Service - dispatches a sync request to the right marketplace

Author: UNISTOCK
Date: 2025-10-20
"""
import logging
from typing import Any, Dict, Optional

from unistock.domain.integration import Platform
from unistock.domain.listing import ListingSyncRequest
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.listing_repository import ListingRepository
from unistock.services.amazon_sync_service import AmazonSyncService
from unistock.services.credentials_service import CredentialsService, get_credentials_service
from unistock.services.listing_sync_common import ListingSyncError
from unistock.services.magalu_sync_service import MagaluSyncService
from unistock.services.mercadolivre_sync_service import MercadoLivreSyncService
from unistock.services.shopify_sync_service import ShopifySyncService

logger = logging.getLogger(__name__)


class ListingSyncService:
    """Entry point used by the API: looks up the integration and delegates"""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 listing_repository: Optional[ListingRepository] = None,
                 credentials_service: Optional[CredentialsService] = None,
                 transport=None):
        self.integrations = integration_repository or IntegrationRepository()
        listings = listing_repository or ListingRepository()
        credentials = credentials_service or get_credentials_service()

        self.services = {
            Platform.MERCADOLIVRE: MercadoLivreSyncService(self.integrations, listings, credentials, transport),
            Platform.SHOPIFY: ShopifySyncService(self.integrations, listings, credentials, transport),
            Platform.AMAZON: AmazonSyncService(self.integrations, listings, credentials, transport),
            Platform.MAGALU: MagaluSyncService(self.integrations, listings, credentials, transport),
        }

    async def sync(self, user_id: str, request: ListingSyncRequest) -> Dict[str, Any]:
        """
        Sync a listing on whatever platform its integration belongs to

        Raises:
            ListingSyncError: Invalid request, unknown integration or unsupported platform
        """
        if not request.integration_id or not request.platform_product_id:
            raise ListingSyncError("Missing required fields: integration_id, platform_product_id", 400)

        integration = self.integrations.find_by_id(request.integration_id)
        if not integration:
            raise ListingSyncError("Integração não encontrada. Reconecte sua conta.", 404,
                                   requires_reconnect=True)

        service = self.services.get(integration.platform)
        if not service:
            raise ListingSyncError(f"Sincronização não suportada para {integration.platform}", 400)

        logger.info(f"Syncing listing {request.platform_product_id} on {integration.platform}")
        return await service.sync(user_id, request)
