# app/schemas/cart.py
import uuid
from typing import Literal

from sqlmodel import SQLModel, Field

NoticeLevel = Literal["success", "info", "warning", "error"]


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    medicine_id: uuid.UUID
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of a cart line.

    Zero or negative removes the line.
    """

    quantity: int


class MedicineSnapshot(SQLModel):
    """
    Medicine fields read live alongside a cart line.
    """

    id: uuid.UUID
    name: str
    price: float
    image_url: str | None = None
    dosage: str | None = None
    prescription_required: bool = False
    in_stock: bool = True


class CartLine(SQLModel):
    """
    One (user, medicine) cart line joined with its medicine snapshot.
    """

    id: uuid.UUID
    medicine_id: uuid.UUID
    quantity: int
    medicine: MedicineSnapshot
    line_total: float


class Notice(SQLModel):
    """
    Transient user-facing message produced by a cart operation.
    """

    level: NoticeLevel
    message: str


class CartView(SQLModel):
    """
    Full cart response: lines, totals, and notices from the last operation.
    """

    items: list[CartLine]
    item_count: int
    total: float
    total_display: str
    notices: list[Notice] = []


class CartChangeEvent(SQLModel):
    """
    Row-change notification pushed over the cart WebSocket.
    """

    event: Literal["INSERT", "UPDATE", "DELETE"]
    user_id: uuid.UUID
    line_id: uuid.UUID | None = None
