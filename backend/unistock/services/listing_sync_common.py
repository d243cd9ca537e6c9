"""
Shared plumbing for the marketplace listing sync services

Every platform sync follows the same outline:
1. Validate the request and load the integration (ownership, platform)
2. Get a valid access token
3. Push a partial update to the marketplace
4. Record the outcome on the product_listings row

Marketplace failures never raise: they are recorded on the listing and
returned as {'success': False, ...}. Only request problems raise
ListingSyncError.

Author: UNISTOCK
Date: 2025-10-20
"""
import logging
import re
from typing import Any, Dict, Optional, Union

from unistock.domain.integration import Integration
from unistock.domain.listing import ListingSyncRequest
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.listing_repository import ListingRepository
from unistock.services.credentials_service import CredentialsService, get_credentials_service

logger = logging.getLogger(__name__)

BR_MONEY_PATTERN = re.compile(r'^[\d.]+,\d{1,2}$')


class ListingSyncError(Exception):
    """Invalid sync request (missing ids, wrong platform, foreign integration)"""

    def __init__(self, message: str, status_code: int = 400, requires_reconnect: bool = False, **extra):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.requires_reconnect = requires_reconnect
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': False,
            'error': self.message,
            'requires_reconnect': self.requires_reconnect
        }
        result.update(self.extra)
        return result


def normalize_money(value: Union[float, int, str, None]) -> Optional[float]:
    """
    Normalize a price to a positive float rounded to 2 places

    Accepts numbers and money strings in Brazilian ("R$ 1.234,56") or
    plain ("1234.56", "1,234.56") notation. Non-positive or unparsable
    values return None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = str(value).replace("R$", "").replace(" ", "").strip()
        if not cleaned:
            return None
        if BR_MONEY_PATTERN.match(cleaned):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
        try:
            number = float(cleaned)
        except ValueError:
            return None

    if number != number or number <= 0:
        return None
    return round(number, 2)


class BaseListingSync:
    """Validation and bookkeeping shared by the platform sync services"""

    platform: str = ""
    platform_label: str = ""

    def __init__(self, integration_repository: Optional[IntegrationRepository] = None,
                 listing_repository: Optional[ListingRepository] = None,
                 credentials_service: Optional[CredentialsService] = None,
                 transport=None):
        self.integrations = integration_repository or IntegrationRepository()
        self.listings = listing_repository or ListingRepository()
        self.credentials = credentials_service or get_credentials_service()
        self.transport = transport

    # ==================== VALIDATION ====================

    def load_integration(self, user_id: str, request: ListingSyncRequest) -> Integration:
        """
        Validate ids and ownership

        Raises:
            ListingSyncError: 400 missing ids, 404 not found / other platform, 403 foreign owner
        """
        if not request.integration_id or not request.platform_product_id:
            raise ListingSyncError("Missing required fields: integration_id, platform_product_id", 400)

        integration = self.integrations.find_by_id(request.integration_id)
        if not integration or integration.platform != self.platform:
            raise ListingSyncError(
                f"Integração {self.platform_label} não encontrada. Reconecte sua conta.",
                404,
                requires_reconnect=True
            )

        if integration.user_id != user_id:
            raise ListingSyncError("Integração não pertence ao usuário", 403)

        return integration

    # ==================== BOOKKEEPING ====================

    def _listing_id(self, request: ListingSyncRequest) -> Optional[str]:
        if request.listing_id:
            return request.listing_id
        try:
            listing = self.listings.find_by_platform_product_id(request.integration_id,
                                                               request.platform_product_id)
            return listing.id if listing else None
        except Exception as e:
            logger.warning(f"Could not look up listing for {request.platform_product_id}: {e}")
            return None

    def record_success(self, request: ListingSyncRequest) -> None:
        listing_id = self._listing_id(request)
        if listing_id:
            try:
                self.listings.mark_synced(listing_id)
            except Exception as e:
                logger.error(f"Failed to mark listing {listing_id} as synced: {e}")

    def record_error(self, request: ListingSyncRequest, error: str) -> None:
        listing_id = self._listing_id(request)
        if listing_id:
            try:
                self.listings.mark_error(listing_id, error)
            except Exception as e:
                logger.error(f"Failed to record sync error on listing {listing_id}: {e}")

    def failure(self, request: ListingSyncRequest, error: str, requires_reconnect: bool = False,
                **extra) -> Dict[str, Any]:
        """Record the error on the listing and build the failure result"""
        self.record_error(request, error)
        result = {
            'success': False,
            'error': error,
            'requires_reconnect': requires_reconnect,
            'platform_product_id': request.platform_product_id
        }
        result.update(extra)
        return result

    @staticmethod
    def skipped() -> Dict[str, Any]:
        return {'success': True, 'skipped': True, 'message': 'Nenhum campo para atualizar'}
