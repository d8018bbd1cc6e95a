# app/routers/admin_stats.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.stats_repo import StatsRepository
from app.schemas.stats import AdminOverviewStats
from app.services.stats_service import StatsService

router = APIRouter(prefix="/admin/stats", tags=["Admin Stats"])

repo = StatsRepository()
service = StatsService(repo)


@router.get(
    "",
    response_model=AdminOverviewStats,
    dependencies=[Depends(require_admin)],
)
def get_admin_overview(session: Session = Depends(get_session)):
    """
    Aggregated numbers for the admin overview page.

    Only accessible to users with role='admin'.
    """
    return service.get_admin_overview(session)
