"""
Domain Layer - Business Entities

Pydantic models representing UNISTOCK entities.

Author: UNISTOCK
Date: 2025-10-17
"""
from unistock.domain.integration import Integration, Platform
from unistock.domain.listing import ProductListing, ListingSyncRequest, SyncStatus
from unistock.domain.product import Product
from unistock.domain.order import Order, OrderItem, ShippingEvent, ShippingStatus
from unistock.domain.expense import Expense, Notification, Recurrence

__all__ = [
    'Integration', 'Platform',
    'ProductListing', 'ListingSyncRequest', 'SyncStatus',
    'Product',
    'Order', 'OrderItem', 'ShippingEvent', 'ShippingStatus',
    'Expense', 'Notification', 'Recurrence',
]
