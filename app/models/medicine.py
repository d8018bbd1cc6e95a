# app/models/medicine.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Category(SQLModel, table=True):
    """
    Catalog category (e.g. "Pain Relief", "Vitamins").
    """

    __tablename__ = "categories"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
        unique=True,
        index=True,
    )

    description: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class Medicine(SQLModel, table=True):
    """
    Catalog entry for a medicine or health product.

    The cart only holds a reference to this row; name/price/image are read
    live when the cart is listed and frozen into order_items at checkout.
    """

    __tablename__ = "medicines"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
        description="Display name of the medicine",
    )

    description: str | None = Field(
        default=None,
        description="Optional long description",
    )

    price: float = Field(
        gt=0,
        description="Selling price (INR)",
    )

    # Maximum retail price; used for the discount badge
    mrp: float | None = Field(
        default=None,
        description="Printed MRP (INR), optional",
    )

    category_id: uuid.UUID | None = Field(
        default=None,
        foreign_key="categories.id",
        index=True,
    )

    image_url: str | None = Field(
        default=None,
        description="Public URL stored in Supabase Storage",
    )

    in_stock: bool = Field(
        default=True,
        index=True,
    )

    prescription_required: bool = Field(
        default=False,
        index=True,
    )

    dosage: str | None = None
    manufacturer: str | None = Field(default=None, index=True)
    active_ingredient: str | None = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last modification timestamp (UTC)",
    )
