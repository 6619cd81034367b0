from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: Literal["ok"]


class MenuItem(BaseModel):
    id: str
    name: str
    price: float
    available: bool
    created_at: str
    updated_at: str


class CreateMenuItemRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the menu item")
    price: float = Field(..., ge=0, description="Unit price")
    available: bool = True


class UpdateMenuItemRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    available: Optional[bool] = None
