# app/services/stats_service.py
from sqlmodel import Session

from app.core.currency import format_inr
from app.repositories.stats_repo import StatsRepository
from app.schemas.stats import AdminOverviewStats, LatestOrderSummary


class StatsService:
    """
    Orchestrates aggregated admin overview statistics.
    """

    def __init__(self, repo: StatsRepository):
        self.repo = repo

    def get_admin_overview(
        self,
        session: Session,
        latest_n_orders: int = 5,
    ) -> AdminOverviewStats:
        total_revenue = self.repo.total_revenue(session)

        latest_orders = [
            LatestOrderSummary(
                id=o.id,
                created_at=o.created_at,
                user_id=o.user_id,
                total_amount=o.total_amount,
                status=o.status,
            )
            for o in self.repo.latest_orders(session, limit=latest_n_orders)
        ]

        return AdminOverviewStats(
            total_medicines=self.repo.count_medicines(session),
            total_orders=self.repo.count_orders(session),
            total_customers=self.repo.count_ordering_customers(session),
            total_revenue=total_revenue,
            total_revenue_display=format_inr(total_revenue),
            pending_orders=self.repo.count_orders(session, status="pending"),
            out_of_stock_medicines=self.repo.count_out_of_stock(session),
            latest_orders=latest_orders,
        )
