"""
Listing Repository - Data Access Layer for product_listings

Author: UNISTOCK
Date: 2025-10-17
"""
from typing import List, Optional

from unistock.domain.listing import ProductListing, SyncStatus
from unistock.core.database import get_db_connection_dict

LISTING_COLUMNS = """
    id, user_id, product_id, integration_id, platform,
    platform_product_id, platform_variant_id,
    sync_status, sync_error, last_sync_at
"""


class ListingRepository:
    """Repository for ProductListing data access"""

    @staticmethod
    def _map_row_to_listing(row: dict) -> ProductListing:
        return ProductListing(
            id=str(row['id']),
            user_id=str(row['user_id']),
            product_id=str(row['product_id']) if row.get('product_id') else None,
            integration_id=str(row['integration_id']) if row.get('integration_id') else None,
            platform=row['platform'],
            platform_product_id=row.get('platform_product_id'),
            platform_variant_id=row.get('platform_variant_id'),
            sync_status=row.get('sync_status') or SyncStatus.PENDING,
            sync_error=row.get('sync_error'),
            last_sync_at=row.get('last_sync_at'),
            product_name=row.get('product_name')
        )

    def find_by_id(self, listing_id: str) -> Optional[ProductListing]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {LISTING_COLUMNS}
                FROM product_listings
                WHERE id = %s
            """, (listing_id,))

            row = cursor.fetchone()
            return self._map_row_to_listing(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_by_platform_product_id(self, integration_id: str,
                                    platform_product_id: str) -> Optional[ProductListing]:
        """Find the listing row of a marketplace item published through an integration"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {LISTING_COLUMNS}
                FROM product_listings
                WHERE integration_id = %s AND platform_product_id = %s
                LIMIT 1
            """, (integration_id, platform_product_id))

            row = cursor.fetchone()
            return self._map_row_to_listing(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def mark_synced(self, listing_id: str) -> None:
        """sync_status = active, last_sync_at = now, error cleared"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE product_listings
                SET sync_status = %s,
                    last_sync_at = NOW(),
                    sync_error = NULL,
                    updated_at = NOW()
                WHERE id = %s
            """, (SyncStatus.ACTIVE, listing_id))
            conn.commit()

        finally:
            cursor.close()
            conn.close()

    def mark_error(self, listing_id: str, error: str) -> None:
        """sync_status = error with the user-facing message"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE product_listings
                SET sync_status = %s,
                    sync_error = %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (SyncStatus.ERROR, error, listing_id))
            conn.commit()

        finally:
            cursor.close()
            conn.close()

    def find_errors_by_user(self, user_id: str) -> List[ProductListing]:
        """Listings of a user whose last sync failed, with the product name"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT l.id, l.user_id, l.product_id, l.integration_id, l.platform,
                       l.platform_product_id, l.platform_variant_id,
                       l.sync_status, l.sync_error, l.last_sync_at,
                       p.name AS product_name
                FROM product_listings l
                LEFT JOIN products p ON p.id = l.product_id
                WHERE l.user_id = %s AND l.sync_status = %s AND l.sync_error IS NOT NULL
                ORDER BY l.updated_at DESC NULLS LAST
            """, (user_id, SyncStatus.ERROR))

            return [self._map_row_to_listing(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
