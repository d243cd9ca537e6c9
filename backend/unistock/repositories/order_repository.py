"""
Order Repository - Data Access Layer for Orders

Author: UNISTOCK
Date: 2025-10-17
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2.extras import Json

from unistock.domain.order import Order, ShippingStatus
from unistock.core.database import get_db_connection_dict

ORDER_COLUMNS = """
    id, user_id, platform, order_id_channel, status, customer_name,
    order_date, total_value, items,
    shipping_status, tracking_code, tracking_url, carrier,
    shipping_history, shipping_updated_at
"""


class OrderRepository:
    """Repository for Order data access"""

    @staticmethod
    def _map_row_to_order(row: dict) -> Order:
        return Order(
            id=str(row['id']),
            user_id=str(row['user_id']),
            platform=row.get('platform'),
            order_id_channel=row.get('order_id_channel'),
            status=row.get('status'),
            customer_name=row.get('customer_name'),
            order_date=row['order_date'],
            total_value=row.get('total_value') or 0,
            items=row.get('items') or [],
            shipping_status=row.get('shipping_status'),
            tracking_code=row.get('tracking_code'),
            tracking_url=row.get('tracking_url'),
            carrier=row.get('carrier'),
            shipping_history=row.get('shipping_history') or [],
            shipping_updated_at=row.get('shipping_updated_at')
        )

    def find_by_user_between(self, user_id: str, start: datetime, end: Optional[datetime] = None,
                             ascending: bool = False) -> List[Order]:
        """Orders with order_date in [start, end]"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        conditions = ["user_id = %s", "order_date >= %s"]
        params = [user_id, start]
        if end is not None:
            conditions.append("order_date <= %s")
            params.append(end)

        where_clause = " AND ".join(conditions)
        direction = "ASC" if ascending else "DESC"

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE {where_clause}
                ORDER BY order_date {direction}
            """, params)

            return [self._map_row_to_order(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_by_user_since(self, user_id: str, since: datetime) -> List[Order]:
        return self.find_by_user_between(user_id, since)

    def find_trackable(self, user_id: str, platform: str, limit: int = 50) -> List[Order]:
        """Orders still moving (not delivered, returned or cancelled)"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {ORDER_COLUMNS}
                FROM orders
                WHERE user_id = %s
                  AND platform = %s
                  AND order_id_channel IS NOT NULL
                  AND (shipping_status IS NULL OR shipping_status <> ALL(%s))
                ORDER BY order_date DESC
                LIMIT %s
            """, (user_id, platform, list(ShippingStatus.FINAL), limit))

            return [self._map_row_to_order(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def update_tracking(self, order_id: str, shipping_status: str, tracking_code: Optional[str],
                        tracking_url: Optional[str], carrier: Optional[str],
                        shipping_history: List[dict]) -> None:
        """Write tracking fields, keeping stored values when new ones are None"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                UPDATE orders
                SET shipping_status = %s,
                    tracking_code = COALESCE(%s, tracking_code),
                    tracking_url = COALESCE(%s, tracking_url),
                    carrier = COALESCE(%s, carrier),
                    shipping_history = %s,
                    shipping_updated_at = NOW()
                WHERE id = %s
            """, (shipping_status, tracking_code, tracking_url, carrier, Json(shipping_history), order_id))
            conn.commit()

        finally:
            cursor.close()
            conn.close()

    def upsert_imported(self, user_id: str, platform: str, order_id_channel: str,
                        fields: Dict[str, Any]) -> bool:
        """
        Insert or refresh an order fetched from a marketplace

        Orders are unique per (user_id, order_id_channel, platform). An
        existing row keeps its order_date and shipping fields.

        Args:
            fields: status, customer_name, customer_email, shipping_address,
                    total_value, items, order_date

        Returns:
            True when a new row was inserted
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        values = (
            fields.get('status'),
            fields.get('customer_name'),
            fields.get('customer_email'),
            Json(fields['shipping_address']) if fields.get('shipping_address') is not None else None,
            fields.get('total_value') or 0,
            Json(fields.get('items') or []),
        )

        try:
            cursor.execute("""
                SELECT id FROM orders
                WHERE user_id = %s AND order_id_channel = %s AND platform = %s
                LIMIT 1
            """, (user_id, order_id_channel, platform))
            existing = cursor.fetchone()

            if existing:
                cursor.execute("""
                    UPDATE orders
                    SET status = %s,
                        customer_name = %s,
                        customer_email = %s,
                        shipping_address = %s,
                        total_value = %s,
                        items = %s,
                        last_sync_at = NOW(),
                        updated_at = NOW()
                    WHERE id = %s
                """, values + (existing['id'],))
            else:
                cursor.execute("""
                    INSERT INTO orders (
                        user_id, platform, order_id_channel, status, customer_name,
                        customer_email, shipping_address, total_value, items,
                        order_date, last_sync_at
                    )
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
                """, (user_id, platform, order_id_channel) + values + (fields['order_date'],))

            conn.commit()
            return existing is None

        finally:
            cursor.close()
            conn.close()
