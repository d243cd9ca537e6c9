"""
Expense and Notification Domain Models

Author: UNISTOCK
Date: 2025-10-17
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import date, datetime


class Recurrence:
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class Expense(BaseModel):
    """Operating expense (rent, salaries, software...)"""

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str = Field(..., description="What the expense is")
    amount: float = Field(..., description="Amount per recurrence period (BRL)", ge=0)
    category: Optional[str] = None
    recurrence: str = Field(Recurrence.MONTHLY, description="monthly, weekly, yearly or one-time")
    start_date: Optional[date] = Field(None, description="First month charged (date of a one-time expense)")
    end_date: Optional[date] = Field(None, description="Last day charged, None while ongoing")
    is_active: bool = True
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Notification(BaseModel):
    """In-app notification"""

    id: Optional[str] = None
    user_id: str
    type: str = Field(..., description="low_stock, token_expiring, sync_error")
    title: str
    message: str
    is_read: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
