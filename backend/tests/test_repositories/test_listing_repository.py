"""
Unit tests for ListingRepository and the expense/notification repositories

Author: UNISTOCK
Date: 2025-10-17
"""
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

from unistock.domain.expense import Notification
from unistock.domain.listing import SyncStatus
from unistock.repositories.expense_repository import ExpenseRepository, NotificationRepository
from unistock.repositories.listing_repository import ListingRepository


def _mock_connection(mock_get_conn):
    mock_conn = MagicMock()
    mock_cursor = MagicMock()
    mock_get_conn.return_value = mock_conn
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn, mock_cursor


class TestListingRepository:

    @patch('unistock.repositories.listing_repository.get_db_connection_dict')
    def test_find_by_platform_product_id(self, mock_get_conn):
        # Arrange
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {
            'id': 'l1', 'user_id': 'user-1', 'product_id': 'p1', 'integration_id': 'int-1',
            'platform': 'mercadolivre', 'platform_product_id': 'MLB123', 'platform_variant_id': None,
            'sync_status': None, 'sync_error': None, 'last_sync_at': None
        }

        # Act
        listing = ListingRepository().find_by_platform_product_id('int-1', 'MLB123')

        # Assert
        assert listing.id == 'l1'
        assert listing.sync_status == SyncStatus.PENDING
        assert listing.product_name is None
        assert mock_cursor.execute.call_args[0][1] == ('int-1', 'MLB123')

    @patch('unistock.repositories.listing_repository.get_db_connection_dict')
    def test_mark_synced(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)

        ListingRepository().mark_synced('l1')

        sql, params = mock_cursor.execute.call_args[0]
        assert "sync_error = NULL" in sql
        assert params == (SyncStatus.ACTIVE, 'l1')
        mock_conn.commit.assert_called_once()

    @patch('unistock.repositories.listing_repository.get_db_connection_dict')
    def test_mark_error(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)

        ListingRepository().mark_error('l1', 'Token expirado')

        assert mock_cursor.execute.call_args[0][1] == (SyncStatus.ERROR, 'Token expirado', 'l1')
        mock_conn.commit.assert_called_once()

    @patch('unistock.repositories.listing_repository.get_db_connection_dict')
    def test_find_errors_by_user_joins_product_name(self, mock_get_conn):
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [{
            'id': 'l1', 'user_id': 'user-1', 'product_id': 'p1', 'integration_id': None,
            'platform': 'amazon', 'platform_product_id': 'SKU-1', 'platform_variant_id': None,
            'sync_status': 'error', 'sync_error': 'Invalid price', 'last_sync_at': None,
            'product_name': 'Mochila'
        }]

        listings = ListingRepository().find_errors_by_user('user-1')

        assert listings[0].product_name == 'Mochila'
        assert "LEFT JOIN products" in mock_cursor.execute.call_args[0][0]


class TestExpenseRepository:

    @patch('unistock.repositories.expense_repository.get_db_connection_dict')
    def test_find_by_user(self, mock_get_conn):
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchall.return_value = [{
            'id': 1, 'user_id': 'user-1', 'organization_id': None, 'name': 'Aluguel',
            'amount': Decimal('2500.00'), 'category': 'fixed', 'recurrence': None,
            'start_date': date(2025, 1, 5), 'end_date': None, 'is_active': False, 'notes': None,
        }]

        expenses = ExpenseRepository().find_by_user('user-1')

        assert expenses[0].id == '1'
        assert expenses[0].amount == 2500.0
        assert expenses[0].recurrence == 'monthly'
        assert expenses[0].name == 'Aluguel'
        assert expenses[0].is_active is False
        sql = mock_cursor.execute.call_args[0][0]
        assert 'start_date, end_date, is_active' in sql
        assert 'description' not in sql


class TestNotificationRepository:

    @patch('unistock.repositories.expense_repository.get_db_connection_dict')
    def test_exists_recent(self, mock_get_conn):
        _, mock_cursor = _mock_connection(mock_get_conn)
        mock_cursor.fetchone.return_value = {'?column?': 1}

        assert NotificationRepository().exists_recent('user-1', 'low_stock', 'Estoque baixo: X', 24) is True
        assert mock_cursor.execute.call_args[0][1] == ('user-1', 'low_stock', 'Estoque baixo: X', 24)

    @patch('unistock.repositories.expense_repository.get_db_connection_dict')
    def test_create(self, mock_get_conn):
        mock_conn, mock_cursor = _mock_connection(mock_get_conn)
        notification = Notification(user_id='user-1', type='low_stock', title='Estoque baixo: X',
                                    message='Só 2 unidades')

        NotificationRepository().create(notification)

        sql, params = mock_cursor.execute.call_args[0]
        assert "INSERT INTO notifications (user_id, type, title, message)" in sql
        assert "link" not in sql
        assert params == ('user-1', 'low_stock', 'Estoque baixo: X', 'Só 2 unidades')
        mock_conn.commit.assert_called_once()
