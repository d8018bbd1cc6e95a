# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel

OrderStatus = Literal["pending", "processing", "completed", "cancelled"]


class CustomerInfo(SQLModel):
    """
    Contact and delivery details entered at checkout.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str
    last_name: str
    email: EmailStr
    phone: str
    address: str
    city: str
    zip_code: str

    @field_validator("first_name", "last_name", "phone", "address", "city", "zip_code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class OrderCreate(SQLModel):
    """
    Payload for creating an order from the current cart.

    Backend derives:
      - user_id from token
      - status = 'pending'
      - items and total_amount from the cart
    """

    model_config = ConfigDict(extra="forbid")

    customer_info: CustomerInfo


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    total_amount: float
    status: OrderStatus
    customer_info: CustomerInfo
    prescription_file_url: str | None = None
    created_at: datetime
    updated_at: datetime


class OrderItemRead(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    medicine_id: uuid.UUID
    medicine_name: str | None = None
    quantity: int
    price: float
    line_total: float


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]
    requires_prescription: bool
    total_display: str


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
