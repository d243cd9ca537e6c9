"""
Product Repository - Data Access Layer for Products

Handles database queries for products and returns Product domain models.

Author: UNISTOCK
Date: 2025-10-17
"""
from typing import List
from unistock.domain.product import Product
from unistock.core.database import get_db_connection_dict

PRODUCT_COLUMNS = """
    id, user_id, name, sku, ean, description, category, image_url,
    stock, cost_price, selling_price, created_at, updated_at
"""


class ProductRepository:
    """
    Repository for Product data access

    All SQL queries for products are centralized here.
    Returns Product domain models, not raw dictionaries.
    """

    @staticmethod
    def _map_row_to_product(row: dict) -> Product:
        return Product(
            id=str(row['id']),
            user_id=str(row['user_id']),
            name=row['name'],
            sku=row.get('sku'),
            ean=row.get('ean'),
            description=row.get('description'),
            category=row.get('category'),
            image_url=row.get('image_url'),
            stock=row.get('stock') or 0,
            cost_price=row.get('cost_price'),
            selling_price=row.get('selling_price'),
            created_at=row.get('created_at'),
            updated_at=row.get('updated_at')
        )

    def find_by_user(self, user_id: str, limit: int = 100, order_by_stock: bool = False) -> List[Product]:
        """
        Products of a user

        Args:
            user_id: Owner
            limit: Max rows
            order_by_stock: Lowest stock first (stock forecast), else by name
        """
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        order_by = "stock ASC" if order_by_stock else "name ASC"

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE user_id = %s
                ORDER BY {order_by}
                LIMIT %s
            """, (user_id, limit))

            return [self._map_row_to_product(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_low_stock(self, user_id: str, threshold: int = 5) -> List[Product]:
        """Products with stock <= threshold"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute(f"""
                SELECT {PRODUCT_COLUMNS}
                FROM products
                WHERE user_id = %s AND stock <= %s
                ORDER BY stock ASC
            """, (user_id, threshold))

            return [self._map_row_to_product(row) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()

    def find_owner_ids(self) -> List[str]:
        """Distinct users that have at least one product"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("SELECT DISTINCT user_id FROM products")
            return [str(row['user_id']) for row in cursor.fetchall()]

        finally:
            cursor.close()
            conn.close()
