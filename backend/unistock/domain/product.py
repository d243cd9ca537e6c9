"""
Product Domain Model

Represents a product in a user's UNISTOCK catalog.

Author: UNISTOCK
Date: 2025-10-17
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class Product(BaseModel):
    """
    Product domain model - matches the products table

    Fields:
        id: Product UUID
        user_id: Owner user ID
        name / sku / ean: Identification
        stock: Units on hand
        cost_price / selling_price: Unit cost and price (BRL)
    """

    id: str = Field(..., description="Product ID")
    user_id: str = Field(..., description="Owner user ID")
    name: str = Field(..., description="Product name")
    sku: Optional[str] = Field(None, description="Stock Keeping Unit")
    ean: Optional[str] = Field(None, description="EAN-13 barcode")

    description: Optional[str] = Field(None, description="Product description")
    category: Optional[str] = Field(None, description="Product category")
    image_url: Optional[str] = Field(None, description="Main image URL")

    stock: int = Field(0, description="Current stock")
    cost_price: Optional[float] = Field(None, description="Unit cost", ge=0)
    selling_price: Optional[float] = Field(None, description="Unit selling price", ge=0)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    @property
    def stock_value(self) -> float:
        """Stock valued at selling price"""
        return (self.selling_price or 0) * max(self.stock, 0)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['is_out_of_stock'] = self.is_out_of_stock
        return data
