"""
Order Domain Models

Orders imported from marketplaces, with shipping/tracking state.

Author: UNISTOCK
Date: 2025-10-17
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class ShippingStatus:
    PENDING_SHIPMENT = "pending_shipment"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"

    FINAL = (DELIVERED, RETURNED, CANCELLED)


class OrderItem(BaseModel):
    """Line item stored in orders.items (jsonb)"""
    product_id: Optional[str] = None
    sku: Optional[str] = None
    title: Optional[str] = None
    quantity: int = 1
    unit_price: Optional[float] = None


class ShippingEvent(BaseModel):
    """One entry of orders.shipping_history"""
    date: str
    status: str
    description: str = ""
    location: str = ""


class Order(BaseModel):
    """Order domain model - matches the orders table"""

    id: str = Field(..., description="Order ID")
    user_id: str = Field(..., description="Owner user ID")
    platform: Optional[str] = Field(None, description="Marketplace identifier")
    order_id_channel: Optional[str] = Field(None, description="Order ID on the marketplace")
    status: Optional[str] = Field(None, description="Order status on the marketplace (paid, cancelled...)")
    customer_name: Optional[str] = None

    order_date: datetime = Field(..., description="Order date")
    total_value: float = Field(0, description="Order total (BRL)")
    items: List[OrderItem] = Field(default_factory=list)

    shipping_status: Optional[str] = Field(None, description="Normalized shipping status")
    tracking_code: Optional[str] = None
    tracking_url: Optional[str] = None
    carrier: Optional[str] = None
    shipping_history: List[ShippingEvent] = Field(default_factory=list)
    shipping_updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def quantity_for(self, product_id: str, sku: Optional[str] = None) -> int:
        """Units of a product sold in this order, matched by product id or SKU"""
        return sum(
            item.quantity for item in self.items
            if item.product_id == product_id or (sku and item.sku == sku)
        )
