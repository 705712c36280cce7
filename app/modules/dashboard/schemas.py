from pydantic import BaseModel
from decimal import Decimal
from typing import List
from uuid import UUID
from datetime import datetime

from app.modules.devis.models import DevisStatus


class DevisStatusCounts(BaseModel):
    draft: int = 0
    validated: int = 0
    invoiced: int = 0
    cancelled: int = 0


class RecentDevis(BaseModel):
    id: UUID
    reference: str
    client_name: str
    total_amount: Decimal
    status: DevisStatus
    created_at: datetime


class MonthlyRevenue(BaseModel):
    month: str  # AAAA-MM
    revenue: Decimal


class DashboardStats(BaseModel):
    total_clients: int
    total_devis: int
    total_invoices: int
    total_revenue: Decimal
    devis_by_status: DevisStatusCounts
    recent_devis: List[RecentDevis]
    monthly_revenue: List[MonthlyRevenue]
