# app/schemas/medicine.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

SortBy = Literal["name", "price", "newest"]
SortOrder = Literal["asc", "desc"]


class CategoryCreate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    description: str | None = None

    @field_validator("name")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class CategoryRead(SQLModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    created_at: datetime


class MedicineCreate(SQLModel):
    """
    Payload for creating a medicine (admin).
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=200)
    description: str | None = None
    price: float = Field(gt=0)
    mrp: float | None = Field(default=None, gt=0)
    category_id: uuid.UUID | None = None
    in_stock: bool = True
    prescription_required: bool = False
    dosage: str | None = None
    manufacturer: str | None = None
    active_ingredient: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class MedicineUpdate(SQLModel):
    """
    Partial update payload for medicines.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, gt=0)
    mrp: float | None = Field(default=None, gt=0)
    category_id: uuid.UUID | None = None
    image_url: str | None = None  # allow manual override if needed
    in_stock: bool | None = None
    prescription_required: bool | None = None
    dosage: str | None = None
    manufacturer: str | None = None
    active_ingredient: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class MedicineRead(SQLModel):
    """
    Medicine representation for clients, with display helpers.
    """

    id: uuid.UUID
    name: str
    description: str | None = None
    price: float
    mrp: float | None = None
    category_id: uuid.UUID | None = None
    image_url: str | None = None
    in_stock: bool
    prescription_required: bool
    dosage: str | None = None
    manufacturer: str | None = None
    active_ingredient: str | None = None
    created_at: datetime
    updated_at: datetime
    price_display: str
    discount_percentage: int


class MedicineFilters(SQLModel):
    """
    Catalog listing filters (query parameters).
    """

    category_id: uuid.UUID | None = None
    min_price: float | None = Field(default=None, ge=0)
    max_price: float | None = Field(default=None, ge=0)
    in_stock: bool | None = None
    prescription_required: bool | None = None
    manufacturer: str | None = None
    sort_by: SortBy = "name"
    sort_order: SortOrder = "asc"


class SearchSuggestion(SQLModel):
    id: uuid.UUID
    name: str
    manufacturer: str | None = None
    price: float
    image_url: str | None = None
    category_name: str | None = None


class RecentSearches(SQLModel):
    items: list[str]
