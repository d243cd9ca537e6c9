"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.

Author: UNISTOCK
Date: 2025-10-17
"""
from unistock.repositories.integration_repository import IntegrationRepository
from unistock.repositories.listing_repository import ListingRepository
from unistock.repositories.product_repository import ProductRepository
from unistock.repositories.order_repository import OrderRepository
from unistock.repositories.expense_repository import ExpenseRepository, NotificationRepository

__all__ = [
    'IntegrationRepository',
    'ListingRepository',
    'ProductRepository',
    'OrderRepository',
    'ExpenseRepository',
    'NotificationRepository'
]
