"""
Tests du module Factures

- Consolidation de plusieurs devis validés d'un même client
- Atomicité: aucun devis ne change d'état si la facturation échoue
- Suppression d'une facture et retour des devis en VALIDATED
- Facture directe à lignes libres
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, StateConflictError, ValidationError
from app.modules.devis.models import Devis, DevisStatus
from app.modules.invoices.models import Invoice, InvoiceItem
from app.modules.invoices.schemas import InvoiceDirectCreate, InvoiceItemCreate
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType
from app.modules.payments.schemas import PaymentCreate
from app.modules.payments.service import PaymentService


CURRENT_YEAR = datetime.now(timezone.utc).year


@pytest.fixture
def three_validated_devis(make_devis, sample_client, fixed_services):
    """Trois devis validés du même client: 45+50, 60+100 et 50+150, soit 455"""
    return [
        make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("30")}],
            services=[fixed_services["design"]],
            validate=True,
        ),
        make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("40")}],
            services=[fixed_services["finition"]],
            validate=True,
        ),
        make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CHAMPS, "meters": Decimal("10")}],
            services=[fixed_services["installation"]],
            validate=True,
        ),
    ]


def _statuses(db_session, devis_list):
    db_session.expire_all()
    return [db_session.get(Devis, d.id).status for d in devis_list]


# ===== TESTS DE CONSOLIDATION =====

class TestInvoiceFromDevis:
    """Création d'une facture à partir de devis validés"""

    def test_consolidates_three_devis(self, db_session, three_validated_devis, admin_auth):
        invoice = InvoiceService(db_session).create_from_devis([d.id for d in three_validated_devis], admin_auth)

        assert invoice.reference == f"INV-{CURRENT_YEAR}-0001"
        assert invoice.total_amount == Decimal("455.00")
        assert invoice.paid_amount == Decimal("0.00")
        assert invoice.balance == Decimal("455.00")
        assert not invoice.is_paid
        assert len(invoice.devis) == 3
        assert _statuses(db_session, three_validated_devis) == [DevisStatus.INVOICED] * 3

        for devis in three_validated_devis:
            assert db_session.get(Devis, devis.id).invoice_id == invoice.id

    def test_single_devis(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CHAMPS, "meters": Decimal("10")}], validate=True)
        invoice = InvoiceService(db_session).create_from_devis([devis.id], admin_auth, notes="Acompte à la commande")
        assert invoice.total_amount == Decimal("50.00")
        assert invoice.notes == "Acompte à la commande"
        assert invoice.client_id == sample_client.id

    def test_duplicate_ids_counted_once(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        invoice = InvoiceService(db_session).create_from_devis([devis.id, devis.id], admin_auth)
        assert invoice.total_amount == Decimal("15.00")

    def test_different_clients_rejected(self, db_session, three_validated_devis, make_devis, other_client, admin_auth):
        foreign = make_devis(other_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("20")}], validate=True)
        candidates = three_validated_devis[:2] + [foreign]

        with pytest.raises(ValidationError):
            InvoiceService(db_session).create_from_devis([d.id for d in candidates], admin_auth)

        assert _statuses(db_session, candidates) == [DevisStatus.VALIDATED] * 3
        assert all(db_session.get(Devis, d.id).invoice_id is None for d in candidates)
        assert db_session.query(Invoice).count() == 0

    def test_draft_devis_rejected(self, db_session, make_devis, sample_client, admin_auth):
        validated = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        draft = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}])

        with pytest.raises(StateConflictError):
            InvoiceService(db_session).create_from_devis([validated.id, draft.id], admin_auth)

        assert _statuses(db_session, [validated, draft]) == [DevisStatus.VALIDATED, DevisStatus.DRAFT]
        assert db_session.query(Invoice).count() == 0

    def test_devis_invoiced_only_once(self, db_session, three_validated_devis, admin_auth):
        service = InvoiceService(db_session)
        service.create_from_devis([three_validated_devis[0].id], admin_auth)

        with pytest.raises(StateConflictError):
            service.create_from_devis([three_validated_devis[0].id, three_validated_devis[1].id], admin_auth)

        assert _statuses(db_session, three_validated_devis[1:]) == [DevisStatus.VALIDATED] * 2
        assert db_session.query(Invoice).count() == 1

    def test_unknown_devis(self, db_session, three_validated_devis, admin_auth):
        with pytest.raises(NotFoundError):
            InvoiceService(db_session).create_from_devis([three_validated_devis[0].id, uuid4()], admin_auth)
        assert _statuses(db_session, three_validated_devis[:1]) == [DevisStatus.VALIDATED]

    def test_total_frozen_at_creation(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        invoice = InvoiceService(db_session).create_from_devis([devis.id], admin_auth)

        db_session.get(Devis, devis.id).total_amount = Decimal("999.00")
        db_session.commit()
        db_session.expire_all()
        assert InvoiceService(db_session).get_by_id(invoice.id).total_amount == Decimal("15.00")

    def test_references_increment(self, db_session, three_validated_devis, admin_auth):
        service = InvoiceService(db_session)
        references = [service.create_from_devis([d.id], admin_auth).reference for d in three_validated_devis]
        assert references == [f"INV-{CURRENT_YEAR}-000{i}" for i in (1, 2, 3)]


# ===== TESTS DE SUPPRESSION =====

class TestInvoiceDeletion:
    """Suppression d'une facture"""

    def test_delete_reverts_devis(self, db_session, three_validated_devis, admin_auth):
        service = InvoiceService(db_session)
        invoice = service.create_from_devis([d.id for d in three_validated_devis], admin_auth)

        service.delete(invoice.id)

        assert db_session.get(Invoice, invoice.id) is None
        assert _statuses(db_session, three_validated_devis) == [DevisStatus.VALIDATED] * 3
        assert all(db_session.get(Devis, d.id).invoice_id is None for d in three_validated_devis)

    def test_reverted_devis_can_be_invoiced_again(self, db_session, three_validated_devis, admin_auth):
        service = InvoiceService(db_session)
        ids = [d.id for d in three_validated_devis]
        service.delete(service.create_from_devis(ids, admin_auth).id)

        invoice = service.create_from_devis(ids, admin_auth)
        assert invoice.total_amount == Decimal("455.00")

    def test_delete_with_payments_rejected(self, db_session, three_validated_devis, admin_auth):
        service = InvoiceService(db_session)
        invoice = service.create_from_devis([three_validated_devis[0].id], admin_auth)
        PaymentService(db_session).create(invoice.id, PaymentCreate(amount=Decimal("50")), admin_auth)

        with pytest.raises(ValidationError) as exc_info:
            service.delete(invoice.id)
        assert exc_info.value.details["payment_count"] == 1
        assert _statuses(db_session, three_validated_devis[:1]) == [DevisStatus.INVOICED]

    def test_delete_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            InvoiceService(db_session).delete(uuid4())


# ===== TESTS DE FACTURE DIRECTE =====

class TestDirectInvoice:
    """Facture sans devis"""

    def test_items_total(self, db_session, sample_client, admin_auth):
        data = InvoiceDirectCreate(
            client_id=sample_client.id,
            items=[
                InvoiceItemCreate(description="Réparation porte", quantity=Decimal("2"), unit_price=Decimal("45.50")),
                InvoiceItemCreate(description="Quincaillerie", quantity=Decimal("1.5"), unit_price=Decimal("12.35")),
            ],
        )
        invoice = InvoiceService(db_session).create_direct(data, admin_auth)

        # 91.00 + 18.525 arrondi à 18.53
        assert invoice.total_amount == Decimal("109.53")
        assert [item.total_price for item in invoice.items] == [Decimal("91.00"), Decimal("18.53")]
        assert invoice.devis == []

    def test_quantity_rounded_before_total(self, db_session, sample_client, admin_auth):
        data = InvoiceDirectCreate(
            client_id=sample_client.id,
            items=[InvoiceItemCreate(description="Découpe", quantity=Decimal("10.333"), unit_price=Decimal("1.50"))],
        )
        invoice = InvoiceService(db_session).create_direct(data, admin_auth)

        item = invoice.items[0]
        assert item.quantity == Decimal("10.33")
        # 10.33 x 1.50 = 15.495
        assert item.total_price == Decimal("15.50")
        assert invoice.total_amount == Decimal("15.50")

    def test_quantity_below_hundredth_rejected(self, db_session, sample_client, admin_auth):
        data = InvoiceDirectCreate(
            client_id=sample_client.id,
            items=[
                InvoiceItemCreate(description="Divers", quantity=Decimal("1"), unit_price=Decimal("10")),
                InvoiceItemCreate(description="Chute", quantity=Decimal("0.004"), unit_price=Decimal("10")),
            ],
        )
        with pytest.raises(ValidationError) as exc_info:
            InvoiceService(db_session).create_direct(data, admin_auth)
        assert exc_info.value.field == "items"
        assert db_session.query(Invoice).count() == 0

    def test_unknown_client(self, db_session, admin_auth):
        data = InvoiceDirectCreate(
            client_id=uuid4(),
            items=[InvoiceItemCreate(description="Divers", quantity=Decimal("1"), unit_price=Decimal("10"))],
        )
        with pytest.raises(NotFoundError):
            InvoiceService(db_session).create_direct(data, admin_auth)

    def test_delete_removes_items(self, db_session, sample_client, admin_auth):
        data = InvoiceDirectCreate(
            client_id=sample_client.id,
            items=[InvoiceItemCreate(description="Divers", quantity=Decimal("1"), unit_price=Decimal("10"))],
        )
        service = InvoiceService(db_session)
        service.delete(service.create_direct(data, admin_auth).id)
        assert db_session.query(InvoiceItem).count() == 0


# ===== TESTS HTTP =====

class TestInvoiceEndpoints:
    """Routes /invoices"""

    def test_admin_only(self, api, employee_headers):
        assert api.get("/invoices/", headers=employee_headers).status_code == 403

    def test_from_devis_flow(self, api, three_validated_devis, admin_headers):
        response = api.post(
            "/invoices/from-devis",
            json={"devis_ids": [str(d.id) for d in three_validated_devis]},
            headers=admin_headers,
        )
        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["total_amount"]) == Decimal("455.00")
        assert Decimal(body["balance"]) == Decimal("455.00")
        assert {d["status"] for d in body["devis"]} == {"INVOICED"}

        listing = api.get("/invoices/", headers=admin_headers).json()
        assert [i["reference"] for i in listing] == [body["reference"]]

        assert api.delete(f"/invoices/{body['id']}", headers=admin_headers).status_code == 204

    def test_single_devis_route(self, api, three_validated_devis, admin_headers):
        response = api.post(f"/invoices/from-devis/{three_validated_devis[1].id}", headers=admin_headers)
        assert response.status_code == 201
        assert Decimal(response.json()["total_amount"]) == Decimal("160.00")

    def test_draft_devis_returns_409(self, api, make_devis, sample_client, admin_headers):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}])
        response = api.post("/invoices/from-devis", json={"devis_ids": [str(devis.id)]}, headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["code"] == "STATE_CONFLICT"

    def test_empty_devis_list_rejected(self, api, admin_headers):
        response = api.post("/invoices/from-devis", json={"devis_ids": []}, headers=admin_headers)
        assert response.status_code == 422
