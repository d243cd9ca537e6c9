"""
Integration Repository - Data Access Layer for marketplace integrations

Author: UNISTOCK
Date: 2025-10-17
"""
from datetime import datetime
from typing import List, Optional

from unistock.domain.integration import Integration
from unistock.core.database import get_db_connection_dict

INTEGRATION_COLUMNS = """
    id, user_id, platform,
    encrypted_access_token, encrypted_refresh_token, token_expires_at,
    shop_domain, marketplace_id, selling_partner_id, account_name, account_nickname,
    created_at, updated_at
"""


class IntegrationRepository:
    """
    Repository for Integration data access

    Tokens are read and written only in their encrypted form.
    """

    @staticmethod
    def _map_row_to_integration(row: dict) -> Integration:
        return Integration(
            id=str(row['id']),
            user_id=str(row['user_id']),
            platform=row['platform'],
            encrypted_access_token=row.get('encrypted_access_token'),
            encrypted_refresh_token=row.get('encrypted_refresh_token'),
            token_expires_at=row.get('token_expires_at'),
            shop_domain=row.get('shop_domain'),
            marketplace_id=row.get('marketplace_id'),
            seller_id=row.get('selling_partner_id'),
            account_name=row.get('account_name'),
            account_nickname=row.get('account_nickname'),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_id(self, integration_id: str) -> Optional[Integration]:
        """
        Find integration by ID

        Returns:
            Integration or None if not found
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {INTEGRATION_COLUMNS}
                FROM integrations
                WHERE id = %s
            """, (integration_id,))

            row = cursor.fetchone()
            if not row:
                return None

            return self._map_row_to_integration(row)

        finally:
            cursor.close()
            conn.close()

    def find_by_user_and_platform(self, user_id: str, platform: str) -> Optional[Integration]:
        """Most recently updated integration of a user for one platform"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {INTEGRATION_COLUMNS}
                FROM integrations
                WHERE user_id = %s AND platform = %s
                ORDER BY updated_at DESC NULLS LAST
                LIMIT 1
            """, (user_id, platform))

            row = cursor.fetchone()
            return self._map_row_to_integration(row) if row else None

        finally:
            cursor.close()
            conn.close()

    def find_all(self, user_id: Optional[str] = None) -> List[Integration]:
        """
        All integrations, optionally restricted to one user

        Used by the scheduled token refresh (all users) and by the
        notification generator (one user).
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            if user_id:
                cursor.execute(f"""
                    SELECT {INTEGRATION_COLUMNS}
                    FROM integrations
                    WHERE user_id = %s
                    ORDER BY platform
                """, (user_id,))
            else:
                cursor.execute(f"""
                    SELECT {INTEGRATION_COLUMNS}
                    FROM integrations
                    ORDER BY token_expires_at NULLS FIRST
                """)

            return [self._map_row_to_integration(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def update_tokens(
        self,
        integration_id: str,
        encrypted_access_token: str,
        encrypted_refresh_token: Optional[str],
        token_expires_at: Optional[datetime]
    ) -> None:
        """
        Persist refreshed tokens

        A None refresh token keeps the stored one (Amazon LWA does not
        rotate refresh tokens).
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE integrations
                SET encrypted_access_token = %s,
                    encrypted_refresh_token = COALESCE(%s, encrypted_refresh_token),
                    token_expires_at = %s,
                    updated_at = NOW()
                WHERE id = %s
            """, (encrypted_access_token, encrypted_refresh_token, token_expires_at, integration_id))
            conn.commit()

        finally:
            cursor.close()
            conn.close()

    def update_amazon_identity(self, integration_id: str, seller_id: Optional[str],
                               marketplace_id: Optional[str]) -> None:
        """Save the seller/marketplace discovered through SP-API participations"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE integrations
                SET selling_partner_id = COALESCE(%s, selling_partner_id),
                    marketplace_id = COALESCE(%s, marketplace_id),
                    updated_at = NOW()
                WHERE id = %s
            """, (seller_id, marketplace_id, integration_id))
            conn.commit()

        finally:
            cursor.close()
            conn.close()
