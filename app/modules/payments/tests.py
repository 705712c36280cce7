"""
Tests du module Paiements

- Plafond: la somme des paiements ne dépasse jamais le total de la facture
- Modification d'un paiement (plafond hors paiement modifié)
- Statistiques d'encaissement
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.invoices.models import Payment
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType
from app.modules.payments.schemas import PaymentCreate, PaymentUpdate
from app.modules.payments.service import PaymentService


@pytest.fixture
def invoice(db_session, make_devis, sample_client, admin_auth):
    """Facture de 300.00 (12 panneaux)"""
    devis = make_devis(sample_client, lines=[{"machine_type": MachineType.PANNEAUX, "quantity": Decimal("12")}], validate=True)
    return InvoiceService(db_session).create_from_devis([devis.id], admin_auth)


def _pay(db_session, invoice, amount, auth, **kwargs):
    return PaymentService(db_session).create(invoice.id, PaymentCreate(amount=Decimal(amount), **kwargs), auth)


# ===== TESTS D'ENREGISTREMENT =====

class TestPaymentCreation:
    """Enregistrement d'un paiement"""

    def test_partial_payment(self, db_session, invoice, admin_auth):
        payment = _pay(db_session, invoice, "100", admin_auth, payment_method="Espèces")
        assert payment.amount == Decimal("100.00")
        assert payment.payment_method == "Espèces"
        assert payment.payment_date is not None

        db_session.expire_all()
        refreshed = InvoiceService(db_session).get_by_id(invoice.id)
        assert refreshed.paid_amount == Decimal("100.00")
        assert refreshed.balance == Decimal("200.00")

    def test_exact_balance_allowed(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "120", admin_auth)
        _pay(db_session, invoice, "180", admin_auth)

        db_session.expire_all()
        refreshed = InvoiceService(db_session).get_by_id(invoice.id)
        assert refreshed.balance == Decimal("0.00")
        assert refreshed.is_paid

    def test_exceeding_balance_rejected(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "250", admin_auth)

        with pytest.raises(ValidationError) as exc_info:
            _pay(db_session, invoice, "50.01", admin_auth)
        assert exc_info.value.message == "Le montant du paiement (50.01) dépasse le solde restant (50.00)"
        assert db_session.query(Payment).count() == 1

    def test_ceiling_then_settle(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "150", admin_auth)

        with pytest.raises(ValidationError):
            _pay(db_session, invoice, "200", admin_auth)
        _pay(db_session, invoice, "150", admin_auth)

        stats = PaymentService(db_session).get_payment_stats(invoice.id)
        assert stats.remaining == Decimal("0.00")
        assert stats.percent_paid == Decimal("100.00")
        assert stats.is_paid

    def test_paid_invoice_accepts_nothing(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "300", admin_auth)
        with pytest.raises(ValidationError):
            _pay(db_session, invoice, "0.01", admin_auth)

    @pytest.mark.parametrize("amount", ["0", "-10"])
    def test_amount_must_be_positive(self, db_session, invoice, admin_auth, amount):
        with pytest.raises(ValidationError) as exc_info:
            _pay(db_session, invoice, amount, admin_auth)
        assert exc_info.value.field == "amount"

    def test_amount_below_one_cent_rejected(self, db_session, invoice, admin_auth):
        with pytest.raises(ValidationError) as exc_info:
            _pay(db_session, invoice, "0.004", admin_auth)
        assert exc_info.value.field == "amount"
        assert db_session.query(Payment).count() == 0
        assert PaymentService(db_session).get_payment_stats(invoice.id).payment_count == 0

    def test_half_cent_rounds_up(self, db_session, invoice, admin_auth):
        payment = _pay(db_session, invoice, "0.005", admin_auth)
        assert payment.amount == Decimal("0.01")

    def test_unknown_invoice(self, db_session, admin_auth):
        with pytest.raises(NotFoundError):
            PaymentService(db_session).create(uuid4(), PaymentCreate(amount=Decimal("10")), admin_auth)

    def test_explicit_payment_date(self, db_session, invoice, admin_auth):
        date = datetime(2025, 3, 14, 10, 30, tzinfo=timezone.utc)
        payment = _pay(db_session, invoice, "10", admin_auth, payment_date=date, reference="CHQ-4521")
        assert payment.payment_date.replace(tzinfo=timezone.utc) == date
        assert payment.reference == "CHQ-4521"


# ===== TESTS DE MODIFICATION =====

class TestPaymentUpdate:
    """Modification et suppression"""

    def test_update_excludes_own_amount(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "100", admin_auth)
        payment = _pay(db_session, invoice, "150", admin_auth)

        updated = PaymentService(db_session).update(payment.id, PaymentUpdate(amount=Decimal("200")))
        assert updated.amount == Decimal("200.00")

    def test_update_over_maximum(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "100", admin_auth)
        payment = _pay(db_session, invoice, "150", admin_auth)

        with pytest.raises(ValidationError) as exc_info:
            PaymentService(db_session).update(payment.id, PaymentUpdate(amount=Decimal("200.50")))
        assert exc_info.value.message == "Le montant du paiement (200.50) dépasse le maximum autorisé (200.00)"

        db_session.expire_all()
        assert db_session.get(Payment, payment.id).amount == Decimal("150.00")

    def test_update_amount_below_one_cent_rejected(self, db_session, invoice, admin_auth):
        payment = _pay(db_session, invoice, "100", admin_auth)
        with pytest.raises(ValidationError):
            PaymentService(db_session).update(payment.id, PaymentUpdate(amount=Decimal("0.001")))

        db_session.expire_all()
        assert db_session.get(Payment, payment.id).amount == Decimal("100.00")

    def test_update_other_fields(self, db_session, invoice, admin_auth):
        payment = _pay(db_session, invoice, "100", admin_auth)
        updated = PaymentService(db_session).update(payment.id, PaymentUpdate(notes="Reçu n°12", payment_method="Chèque"))
        assert updated.amount == Decimal("100.00")
        assert updated.notes == "Reçu n°12"
        assert updated.payment_method == "Chèque"

    def test_delete_frees_balance(self, db_session, invoice, admin_auth):
        payment = _pay(db_session, invoice, "300", admin_auth)
        PaymentService(db_session).delete(payment.id)

        db_session.expire_all()
        assert InvoiceService(db_session).get_by_id(invoice.id).balance == Decimal("300.00")
        _pay(db_session, invoice, "300", admin_auth)

    def test_detail_includes_client(self, db_session, invoice, sample_client, admin_auth):
        payment = _pay(db_session, invoice, "75", admin_auth)
        detail = PaymentService(db_session).get_detail(payment.id)
        assert detail.invoice_reference == invoice.reference
        assert detail.client_name == sample_client.name


# ===== TESTS DES STATISTIQUES =====

class TestPaymentStats:
    """Statistiques d'encaissement d'une facture"""

    def test_half_paid(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "100", admin_auth)
        _pay(db_session, invoice, "50", admin_auth)

        stats = PaymentService(db_session).get_payment_stats(invoice.id)
        assert stats.total_amount == Decimal("300.00")
        assert stats.total_paid == Decimal("150.00")
        assert stats.remaining == Decimal("150.00")
        assert stats.percent_paid == Decimal("50.00")
        assert stats.payment_count == 2
        assert not stats.is_paid

    def test_no_payment(self, db_session, invoice):
        stats = PaymentService(db_session).get_payment_stats(invoice.id)
        assert stats.percent_paid == Decimal("0.00")
        assert stats.payment_count == 0

    def test_percent_rounded(self, db_session, invoice, admin_auth):
        _pay(db_session, invoice, "100", admin_auth)
        stats = PaymentService(db_session).get_payment_stats(invoice.id)
        assert stats.percent_paid == Decimal("33.33")


# ===== TESTS HTTP =====

class TestPaymentEndpoints:
    """Routes /payments"""

    def test_record_and_list(self, api, invoice, admin_headers):
        response = api.post(
            f"/payments/invoice/{invoice.id}",
            json={"amount": "120.00", "payment_method": "Virement"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        payments = api.get(f"/payments/invoice/{invoice.id}", headers=admin_headers).json()
        assert len(payments) == 1
        assert Decimal(payments[0]["amount"]) == Decimal("120.00")

        stats = api.get(f"/payments/invoice/{invoice.id}/stats", headers=admin_headers).json()
        assert Decimal(stats["percent_paid"]) == Decimal("40.00")

    def test_ceiling_returns_400(self, api, invoice, admin_headers):
        response = api.post(f"/payments/invoice/{invoice.id}", json={"amount": "300.01"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["details"]["remaining"] == "300.00"

    def test_employee_forbidden(self, api, invoice, employee_headers):
        response = api.post(f"/payments/invoice/{invoice.id}", json={"amount": "10"}, headers=employee_headers)
        assert response.status_code == 403
