"""
Tests du module Dépenses
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.expenses.models import Expense
from app.modules.expenses.schemas import ExpenseCreate, ExpenseFilters, ExpenseUpdate
from app.modules.expenses.service import ExpenseService
from app.modules.notifications.models import Notification, NotificationType


@pytest.fixture
def expenses(db_session, admin_auth):
    service = ExpenseService(db_session)
    return [
        service.create(ExpenseCreate(description="Plaques MDF", amount=Decimal("420.00"), category="Matières", date=date(2025, 1, 10)), admin_auth),
        service.create(ExpenseCreate(description="Facture STEG", amount=Decimal("185.35"), category="Énergie", date=date(2025, 1, 28)), admin_auth),
        service.create(ExpenseCreate(description="Chants PVC", amount=Decimal("96.50"), category="Matières", date=date(2025, 2, 3)), admin_auth),
    ]


class TestExpenseService:
    """Saisie et consultation des dépenses"""

    def test_create_defaults_to_today(self, db_session, admin_auth):
        expense = ExpenseService(db_session).create(
            ExpenseCreate(description="Colle", amount=Decimal("12.5"), category="Consommables"), admin_auth
        )
        assert expense.date == date.today()
        assert expense.amount == Decimal("12.50")
        assert expense.created_by_id == admin_auth.user_id

        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.EXPENSE_CREATED

    @pytest.mark.parametrize("amount", ["0", "-3", "0.004"])
    def test_amount_must_be_positive(self, db_session, admin_auth, amount):
        with pytest.raises(ValidationError):
            ExpenseService(db_session).create(
                ExpenseCreate(description="Erreur", amount=Decimal(amount), category="Divers"), admin_auth
            )
        assert db_session.query(Expense).count() == 0

    def test_list_newest_first(self, db_session, expenses):
        listed = ExpenseService(db_session).get_all()
        assert [e.description for e in listed] == ["Chants PVC", "Facture STEG", "Plaques MDF"]

    def test_filters(self, db_session, expenses):
        service = ExpenseService(db_session)
        assert len(service.get_all(ExpenseFilters(category="Matières"))) == 2
        january = service.get_all(ExpenseFilters(start_date=date(2025, 1, 1), end_date=date(2025, 1, 31)))
        assert {e.description for e in january} == {"Plaques MDF", "Facture STEG"}

    def test_update(self, db_session, expenses):
        updated = ExpenseService(db_session).update(
            expenses[0].id, ExpenseUpdate(amount=Decimal("400"), notes="Remise fournisseur")
        )
        assert updated.amount == Decimal("400.00")
        assert updated.notes == "Remise fournisseur"
        assert updated.description == "Plaques MDF"

    def test_update_rejects_zero_amount(self, db_session, expenses):
        with pytest.raises(ValidationError):
            ExpenseService(db_session).update(expenses[0].id, ExpenseUpdate(amount=Decimal("0")))

    def test_update_rejects_amount_below_one_cent(self, db_session, expenses):
        with pytest.raises(ValidationError):
            ExpenseService(db_session).update(expenses[0].id, ExpenseUpdate(amount=Decimal("0.004")))
        db_session.expire_all()
        assert db_session.get(Expense, expenses[0].id).amount == Decimal("420.00")

    def test_delete(self, db_session, expenses, admin_auth):
        service = ExpenseService(db_session)
        service.delete(expenses[1].id, admin_auth)
        with pytest.raises(NotFoundError):
            service.get_by_id(expenses[1].id)
        assert db_session.query(Notification).filter(
            Notification.type == NotificationType.EXPENSE_DELETED
        ).count() == 1

    def test_delete_unknown(self, db_session, admin_auth):
        with pytest.raises(NotFoundError):
            ExpenseService(db_session).delete(uuid4(), admin_auth)


class TestExpenseStats:
    """Totaux par catégorie"""

    def test_totals(self, db_session, expenses):
        stats = ExpenseService(db_session).get_stats()
        assert stats.total_amount == Decimal("701.85")
        assert stats.count == 3
        assert stats.by_category == {"Matières": Decimal("516.50"), "Énergie": Decimal("185.35")}

    def test_period(self, db_session, expenses):
        stats = ExpenseService(db_session).get_stats(start_date=date(2025, 2, 1))
        assert stats.total_amount == Decimal("96.50")
        assert stats.by_category == {"Matières": Decimal("96.50")}


class TestExpenseEndpoints:
    """Routes /expenses"""

    def test_admin_only(self, api, employee_headers):
        assert api.get("/expenses/", headers=employee_headers).status_code == 403

    def test_create_and_stats(self, api, admin_headers):
        response = api.post(
            "/expenses/",
            json={"description": "Lames de scie", "amount": "75.90", "category": "Outillage", "date": "2025-03-02"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["date"] == "2025-03-02"

        stats = api.get("/expenses/stats", headers=admin_headers).json()
        assert Decimal(stats["total_amount"]) == Decimal("75.90")

    def test_filter_by_date(self, api, expenses, admin_headers):
        response = api.get("/expenses/", params={"start_date": "2025-02-01"}, headers=admin_headers)
        assert [e["description"] for e in response.json()] == ["Chants PVC"]

    def test_negative_amount_returns_400(self, api, admin_headers):
        response = api.post(
            "/expenses/",
            json={"description": "Erreur", "amount": "-1", "category": "Divers"},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "amount"
