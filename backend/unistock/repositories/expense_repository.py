"""
Expense and Notification Repositories

Author: UNISTOCK
Date: 2025-10-17
"""
from typing import List

from unistock.domain.expense import Expense, Notification
from unistock.core.database import get_db_connection_dict


class ExpenseRepository:
    """Repository for Expense data access"""

    def find_by_user(self, user_id: str) -> List[Expense]:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT id, user_id, name, amount, category, recurrence,
                       start_date, end_date, is_active, notes
                FROM expenses
                WHERE user_id = %s
                ORDER BY start_date DESC
            """, (user_id,))

            return [
                Expense(
                    id=str(row['id']),
                    user_id=str(row['user_id']),
                    name=row['name'],
                    amount=row['amount'] or 0,
                    category=row.get('category'),
                    recurrence=row.get('recurrence') or 'monthly',
                    start_date=row.get('start_date'),
                    end_date=row.get('end_date'),
                    is_active=row.get('is_active') is not False,
                    notes=row.get('notes')
                )
                for row in cursor.fetchall()
            ]

        finally:
            cursor.close()
            conn.close()


class NotificationRepository:
    """Repository for Notification data access"""

    def exists_recent(self, user_id: str, type: str, title: str, hours: int = 24) -> bool:
        """True when the same notification was created in the last `hours`"""
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                SELECT 1
                FROM notifications
                WHERE user_id = %s
                  AND type = %s
                  AND title = %s
                  AND created_at >= NOW() - make_interval(hours => %s)
                LIMIT 1
            """, (user_id, type, title, hours))

            return cursor.fetchone() is not None

        finally:
            cursor.close()
            conn.close()

    def create(self, notification: Notification) -> None:
        conn = get_db_connection_dict()
        cursor = conn.cursor()

        try:
            cursor.execute("""
                INSERT INTO notifications (user_id, type, title, message)
                VALUES (%s, %s, %s, %s)
            """, (notification.user_id, notification.type, notification.title, notification.message))
            conn.commit()

        finally:
            cursor.close()
            conn.close()
