from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin
from app.modules.auth.schemas import AuthContext
from app.modules.dashboard.schemas import DashboardStats
from app.modules.dashboard.service import DashboardService

dashboard_router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@dashboard_router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Indicateurs de l'atelier: compteurs, devis par statut, chiffre d'affaires sur six mois"""
    return DashboardService(db).get_stats()
