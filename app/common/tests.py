"""
Tests des utilitaires communs: montants, numérotation, erreurs et middleware
"""

import pytest
from decimal import Decimal

from app.common.exceptions import NotFoundError, StateConflictError, ValidationError
from app.common.money import format_amount, format_quantity, round_money, sum_money
from app.common.sequences import ReferenceSequence, format_reference, next_reference
from app.modules.devis.models import Devis, DevisStatus
from app.modules.invoices.models import Invoice


class TestMoney:
    """Arrondi au centime et formats d'affichage"""

    @pytest.mark.parametrize("value,expected", [
        ("2.345", "2.35"),
        ("2.344", "2.34"),
        ("-2.345", "-2.35"),
        ("0.005", "0.01"),
        (10, "10.00"),
    ])
    def test_round_half_away_from_zero(self, value, expected):
        assert round_money(value) == Decimal(expected)

    def test_float_input_uses_decimal_text(self):
        assert round_money(1.005) == Decimal("1.01")

    def test_sum_ignores_none(self):
        assert sum_money([Decimal("1.10"), None, Decimal("2.205")]) == Decimal("3.31")

    def test_formats(self):
        assert format_amount(Decimal("1250.5")) == "1250.50"
        assert format_quantity(Decimal("12.50")) == "12.5"
        assert format_quantity(Decimal("10")) == "10"
        assert format_quantity(Decimal("3.000")) == "3"


class TestReferences:
    """Numérotation annuelle DEV / INV"""

    def test_format(self):
        assert format_reference("DEV", 2025, 7) == "DEV-2025-0007"
        assert format_reference("INV", 2025, 12345) == "INV-2025-12345"

    def test_counters_per_prefix_and_year(self, db_session):
        assert next_reference(db_session, "DEV", Devis, year=2024) == "DEV-2024-0001"
        assert next_reference(db_session, "DEV", Devis, year=2024) == "DEV-2024-0002"
        assert next_reference(db_session, "INV", Invoice, year=2024) == "INV-2024-0001"
        assert next_reference(db_session, "DEV", Devis, year=2025) == "DEV-2025-0001"
        db_session.commit()
        assert db_session.query(ReferenceSequence).count() == 3

    def test_seeded_from_existing_references(self, db_session, sample_client, admin_user):
        for number in (1, 2):
            db_session.add(Devis(
                reference=format_reference("DEV", 2023, number),
                client_id=sample_client.id,
                created_by_id=admin_user.id,
                status=DevisStatus.DRAFT,
                total_amount=Decimal("0")
            ))
        db_session.commit()

        assert next_reference(db_session, "DEV", Devis, year=2023) == "DEV-2023-0003"

    def test_rollback_releases_number(self, db_session):
        next_reference(db_session, "INV", Invoice, year=2022)
        db_session.rollback()
        assert next_reference(db_session, "INV", Invoice, year=2022) == "INV-2022-0001"


class TestErrors:
    """Sérialisation des erreurs métier"""

    def test_not_found(self):
        error = NotFoundError("Devis", "abc")
        assert error.status_code == 404
        assert error.to_dict() == {
            "detail": "Devis introuvable",
            "code": "NOT_FOUND",
            "details": {"entity": "Devis", "id": "abc"},
        }

    def test_validation_field(self):
        error = ValidationError("Montant invalide", field="amount")
        assert error.status_code == 400
        assert error.to_dict()["details"] == {"field": "amount"}

    def test_state_conflict(self):
        error = StateConflictError("Devis facturé", current_status="INVOICED")
        assert error.status_code == 409
        assert error.details == {"current_status": "INVOICED"}


class TestApplication:
    """Routes de service et en-têtes"""

    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_and_security_headers(self, api):
        response = api.get("/", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
