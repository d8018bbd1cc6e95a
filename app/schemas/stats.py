# app/schemas/stats.py
import uuid
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.schemas.order import OrderStatus


class LatestOrderSummary(SQLModel):
    """
    Lightweight info for last N orders.
    """
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    created_at: datetime
    user_id: uuid.UUID
    total_amount: float
    status: OrderStatus


class AdminOverviewStats(SQLModel):
    """
    Full payload for the admin overview page.
    """
    model_config = ConfigDict(extra="forbid")

    total_medicines: int
    total_orders: int
    total_customers: int
    total_revenue: float
    total_revenue_display: str
    pending_orders: int
    out_of_stock_medicines: int
    latest_orders: list[LatestOrderSummary]
