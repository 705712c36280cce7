"""
Tests du tableau de bord

- Compteurs et devis par statut
- Chiffre d'affaires facturé (devis consolidés et factures directes)
- Série mensuelle sur six mois glissants
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from app.modules.dashboard.service import DashboardService, month_window
from app.modules.devis.service import DevisService
from app.modules.invoices.models import Invoice
from app.modules.invoices.schemas import InvoiceDirectCreate, InvoiceItemCreate
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType


NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def _backdate(db_session, instance, when):
    instance.created_at = when
    db_session.commit()


@pytest.fixture
def workshop(db_session, make_devis, sample_client, other_client, admin_auth):
    """Un devis par statut et deux factures (15.00 depuis un devis, 40.00 directe)"""
    invoiced = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
    make_devis(sample_client, lines=[{"machine_type": MachineType.CHAMPS, "meters": Decimal("10")}])
    make_devis(other_client, lines=[{"machine_type": MachineType.PANNEAUX, "quantity": Decimal("1")}], validate=True)
    cancelled = make_devis(other_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("5")}])
    DevisService(db_session).cancel(cancelled.id, admin_auth)

    service = InvoiceService(db_session)
    from_devis = service.create_from_devis([invoiced.id], admin_auth)
    direct = service.create_direct(
        InvoiceDirectCreate(
            client_id=other_client.id,
            items=[InvoiceItemCreate(description="Réglage machine", quantity=Decimal("1"), unit_price=Decimal("40"))],
        ),
        admin_auth,
    )
    return {"from_devis": from_devis, "direct": direct}


# ===== TESTS DES INDICATEURS =====

class TestDashboardStats:
    """Compteurs et chiffre d'affaires"""

    def test_empty_workshop(self, db_session):
        stats = DashboardService(db_session).get_stats(NOW)
        assert stats.total_clients == 0
        assert stats.total_devis == 0
        assert stats.total_invoices == 0
        assert stats.total_revenue == Decimal("0.00")
        assert stats.devis_by_status.model_dump() == {"draft": 0, "validated": 0, "invoiced": 0, "cancelled": 0}
        assert stats.recent_devis == []
        assert [m.revenue for m in stats.monthly_revenue] == [Decimal("0.00")] * 6

    def test_counts_and_revenue(self, db_session, workshop):
        stats = DashboardService(db_session).get_stats(NOW)
        assert stats.total_clients == 2
        assert stats.total_devis == 4
        assert stats.total_invoices == 2
        assert stats.total_revenue == Decimal("55.00")
        assert stats.devis_by_status.model_dump() == {"draft": 1, "validated": 1, "invoiced": 1, "cancelled": 1}

    def test_recent_devis_limited_to_five(self, db_session, make_devis, sample_client):
        oldest = make_devis(sample_client)
        _backdate(db_session, oldest, datetime(2024, 1, 1, tzinfo=timezone.utc))
        for _ in range(5):
            make_devis(sample_client)

        recent = DashboardService(db_session).get_stats(NOW).recent_devis
        assert len(recent) == 5
        assert oldest.id not in {d.id for d in recent}
        assert all(d.client_name == sample_client.name for d in recent)


# ===== TESTS DE LA SÉRIE MENSUELLE =====

class TestMonthlyRevenue:
    """Chiffre d'affaires des six derniers mois"""

    def test_window_crosses_year(self):
        assert month_window(datetime(2025, 2, 10)) == [
            (2024, 9), (2024, 10), (2024, 11), (2024, 12), (2025, 1), (2025, 2)
        ]

    def test_grouped_by_invoice_month(self, db_session, workshop):
        _backdate(db_session, db_session.get(Invoice, workshop["from_devis"].id), datetime(2025, 3, 10, tzinfo=timezone.utc))
        _backdate(db_session, db_session.get(Invoice, workshop["direct"].id), datetime(2025, 6, 2, tzinfo=timezone.utc))

        monthly = DashboardService(db_session).get_stats(NOW).monthly_revenue
        assert [m.month for m in monthly] == ["2025-01", "2025-02", "2025-03", "2025-04", "2025-05", "2025-06"]
        assert {m.month: m.revenue for m in monthly}["2025-03"] == Decimal("15.00")
        assert {m.month: m.revenue for m in monthly}["2025-06"] == Decimal("40.00")

    def test_older_invoices_only_in_total(self, db_session, workshop):
        _backdate(db_session, db_session.get(Invoice, workshop["from_devis"].id), datetime(2024, 11, 20, tzinfo=timezone.utc))
        _backdate(db_session, db_session.get(Invoice, workshop["direct"].id), datetime(2025, 5, 31, tzinfo=timezone.utc))

        stats = DashboardService(db_session).get_stats(NOW)
        assert stats.total_revenue == Decimal("55.00")
        assert sum(m.revenue for m in stats.monthly_revenue) == Decimal("40.00")


# ===== TESTS HTTP =====

class TestDashboardEndpoints:
    """Route /dashboard/stats"""

    def test_admin_stats(self, api, workshop, admin_headers):
        response = api.get("/dashboard/stats", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["total_devis"] == 4
        assert Decimal(body["total_revenue"]) == Decimal("55.00")
        assert body["devis_by_status"]["invoiced"] == 1
        assert len(body["monthly_revenue"]) == 6

    def test_employee_forbidden(self, api, employee_headers):
        assert api.get("/dashboard/stats", headers=employee_headers).status_code == 403

    def test_requires_token(self, api):
        assert api.get("/dashboard/stats").status_code in (401, 403)
