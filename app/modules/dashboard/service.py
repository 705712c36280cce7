"""
Tableau de bord: compteurs, devis par statut, chiffre d'affaires facturé.

Le chiffre d'affaires est la somme des totaux de factures (figés à la
création), devis consolidés et factures directes confondus. La série
mensuelle couvre le mois courant et les cinq précédents.
"""
from collections import OrderedDict
from datetime import datetime, timezone
from typing import List, Optional, Tuple
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.common.money import ZERO, round_money, to_decimal
from app.modules.clients.models import Client
from app.modules.dashboard.schemas import (
    DashboardStats, DevisStatusCounts, MonthlyRevenue, RecentDevis
)
from app.modules.devis.models import Devis, DevisStatus
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)

RECENT_DEVIS_LIMIT = 5
REVENUE_MONTHS = 6


def month_window(now: datetime, months: int = REVENUE_MONTHS) -> List[Tuple[int, int]]:
    """(année, mois) des `months` derniers mois, du plus ancien au mois courant"""
    window = []
    year, month = now.year, now.month
    for _ in range(months):
        window.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(window))


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def get_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        now = now or datetime.now(timezone.utc)

        total_clients = self.db.query(func.count(Client.id)).scalar() or 0
        total_devis = self.db.query(func.count(Devis.id)).scalar() or 0
        total_invoices, total_revenue = self.db.query(
            func.count(Invoice.id),
            func.sum(Invoice.total_amount)
        ).one()

        stats = DashboardStats(
            total_clients=total_clients,
            total_devis=total_devis,
            total_invoices=total_invoices or 0,
            total_revenue=round_money(total_revenue),
            devis_by_status=self._devis_by_status(),
            recent_devis=self._recent_devis(),
            monthly_revenue=self._monthly_revenue(now)
        )
        logger.debug(f"Dashboard: {stats.total_devis} devis, {stats.total_invoices} invoices, revenue {stats.total_revenue}")
        return stats

    def _devis_by_status(self) -> DevisStatusCounts:
        rows = self.db.query(Devis.status, func.count(Devis.id)).group_by(Devis.status).all()
        counts = {status.value.lower(): count for status, count in rows}
        return DevisStatusCounts(**counts)

    def _recent_devis(self) -> List[RecentDevis]:
        devis_list = (
            self.db.query(Devis)
            .options(joinedload(Devis.client))
            .order_by(Devis.created_at.desc())
            .limit(RECENT_DEVIS_LIMIT)
            .all()
        )
        return [
            RecentDevis(
                id=devis.id,
                reference=devis.reference,
                client_name=devis.client.name,
                total_amount=round_money(devis.total_amount),
                status=devis.status,
                created_at=devis.created_at
            )
            for devis in devis_list
        ]

    def _monthly_revenue(self, now: datetime) -> List[MonthlyRevenue]:
        window = month_window(now)
        revenue = OrderedDict((key, ZERO) for key in window)

        first_year, first_month = window[0]
        start = datetime(first_year, first_month, 1, tzinfo=timezone.utc)

        # Regroupement par mois côté Python: portable entre PostgreSQL et SQLite
        rows = self.db.query(Invoice.created_at, Invoice.total_amount).filter(
            Invoice.created_at >= start
        ).all()
        for created_at, amount in rows:
            key = (created_at.year, created_at.month)
            if key in revenue:
                revenue[key] += to_decimal(amount)

        return [
            MonthlyRevenue(month=f"{year}-{month:02d}", revenue=round_money(amount))
            for (year, month), amount in revenue.items()
        ]
