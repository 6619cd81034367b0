from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, StrictInt


class HealthResponse(BaseModel):
    status: Literal["ok"]


class OrderLineItem(BaseModel):
    id: str = Field(..., min_length=1, description="Menu item ID")
    qty: StrictInt = Field(..., gt=0, description="Quantity ordered")


class CreateOrderRequest(BaseModel):
    items: List[OrderLineItem]
    customer_id: Optional[str] = None
    payment_method: str = Field(default="cash", min_length=1)


class UpdateOrderRequest(BaseModel):
    items: Optional[List[OrderLineItem]] = None
    payment_method: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = Field(default=None, min_length=1)


class OrderItemSnapshot(BaseModel):
    id: str
    name: str
    price: float
    qty: int


class OrderSummary(BaseModel):
    id: str
    customer_id: Optional[str]
    items: List[OrderItemSnapshot]
    payment_method: str
    total: float
    status: str
    created_at: str
    updated_at: str
