# app/repositories/stats_repo.py
from sqlalchemy import func
from sqlmodel import Session, select

from app.models.medicine import Medicine
from app.models.order import Order


class StatsRepository:
    """
    Read-only aggregated queries for the admin overview.
    """

    def count_medicines(self, session: Session) -> int:
        value = session.exec(select(func.count()).select_from(Medicine)).one()
        return int(value or 0)

    def count_out_of_stock(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(Medicine)
            .where(Medicine.in_stock == False)  # noqa: E712
        )
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_orders(self, session: Session, status: str | None = None) -> int:
        stmt = select(func.count()).select_from(Order)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_ordering_customers(self, session: Session) -> int:
        """
        Distinct users who placed at least one order.
        """
        stmt = select(func.count(func.distinct(Order.user_id)))
        value = session.exec(stmt).one()
        return int(value or 0)

    def total_revenue(self, session: Session) -> float:
        """
        Sum of total_amount for all non-cancelled orders.
        """
        stmt = (
            select(func.coalesce(func.sum(Order.total_amount), 0.0))
            .where(Order.status != "cancelled")
        )
        value = session.exec(stmt).one()
        return float(value or 0.0)

    def latest_orders(self, session: Session, limit: int = 5) -> list[Order]:
        """
        Latest N orders by created_at (any status).
        """
        stmt = select(Order).order_by(Order.created_at.desc()).limit(limit)
        return list(session.exec(stmt).all())
