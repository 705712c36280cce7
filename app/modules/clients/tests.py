"""
Tests du module Clients

- Validation et normalisation des numéros tunisiens
- CRUD et recherche
- Suppression bloquée par les devis et factures
- Situation financière (factures, paiements, devis en attente)
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from pydantic import ValidationError as SchemaError

from app.common.exceptions import NotFoundError, ValidationError
from app.common.validators import format_tunisia_phone, validate_tunisia_phone
from app.modules.clients.models import Client
from app.modules.clients.schemas import ClientCreate, ClientUpdate
from app.modules.clients.service import ClientService
from app.modules.devis.service import DevisService
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType
from app.modules.notifications.models import Notification, NotificationType
from app.modules.payments.schemas import PaymentCreate
from app.modules.payments.service import PaymentService


# ===== TESTS DES VALIDATEURS =====

class TestTunisiaPhone:
    """Numéros de téléphone tunisiens"""

    @pytest.mark.parametrize("phone", ["98123456", "+21698123456", "0021671234567", "22 345 678", "55-123-456"])
    def test_valid_numbers(self, phone):
        assert validate_tunisia_phone(phone)

    @pytest.mark.parametrize("phone", ["12345678", "9812345", "+33612345678", "abcdefgh"])
    def test_invalid_numbers(self, phone):
        assert not validate_tunisia_phone(phone)

    def test_formatting(self):
        assert format_tunisia_phone("98 123 456") == "+21698123456"
        assert format_tunisia_phone("0021671234567") == "+21671234567"
        assert format_tunisia_phone("+21698123456") == "+21698123456"

    def test_schema_normalizes_phone(self):
        assert ClientCreate(name="Atelier Nabeul", phone="98 123 456").phone == "+21698123456"

    def test_schema_rejects_foreign_phone(self):
        with pytest.raises(SchemaError):
            ClientCreate(name="Atelier Lyon", phone="+33612345678")

    def test_blank_phone_becomes_none(self):
        assert ClientCreate(name="Sans téléphone", phone="  ").phone is None


# ===== TESTS DU SERVICE =====

class TestClientService:
    """CRUD clients"""

    def test_create_and_notify(self, db_session, admin_auth):
        client = ClientService(db_session).create(
            ClientCreate(name="Bois & Design", email="info@boisdesign.tn"), created_by=admin_auth.user_id
        )
        assert client.id is not None
        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.CLIENT_CREATED
        assert notification.entity_id == client.id
        assert notification.triggered_by_id == admin_auth.user_id

    def test_update_partial(self, db_session, sample_client):
        updated = ClientService(db_session).update(sample_client.id, ClientUpdate(address="Route de Tunis km 4, Sfax"))
        assert updated.name == "Menuiserie Ben Salah"
        assert updated.address == "Route de Tunis km 4, Sfax"

    def test_get_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            ClientService(db_session).get_by_id(uuid4())

    def test_list_counts_devis(self, db_session, make_devis, sample_client, other_client):
        make_devis(sample_client)
        make_devis(sample_client)

        counts = {item.name: item.devis_count for item in ClientService(db_session).get_all()}
        assert counts == {"Menuiserie Ben Salah": 2, "Déco Sfax": 0}

    def test_search(self, db_session, sample_client, other_client):
        service = ClientService(db_session)
        assert [c.id for c in service.search("salah")] == [sample_client.id]
        assert [c.id for c in service.search("98123")] == [sample_client.id]
        assert [c.id for c in service.search("bensalah.tn")] == [sample_client.id]
        assert service.search("inconnu") == []

    def test_delete_without_history(self, db_session, other_client):
        ClientService(db_session).delete(other_client.id)
        assert db_session.get(Client, other_client.id) is None

    def test_delete_blocked_by_devis(self, db_session, make_devis, sample_client):
        make_devis(sample_client)
        with pytest.raises(ValidationError) as exc_info:
            ClientService(db_session).delete(sample_client.id)
        assert exc_info.value.details == {"devis_count": 1, "invoice_count": 0}
        assert db_session.get(Client, sample_client.id) is not None


class TestClientBalance:
    """Situation financière d'un client"""

    def test_empty_balance(self, db_session, other_client):
        balance = ClientService(db_session).get_client_balance(other_client.id)
        assert balance.summary.total_invoiced == Decimal("0.00")
        assert balance.summary.outstanding_balance == Decimal("0.00")
        assert balance.invoices == []
        assert balance.pending_devis == []

    def test_invoices_payments_and_pending(self, db_session, make_devis, sample_client, admin_auth):
        invoiced = make_devis(sample_client, lines=[{"machine_type": MachineType.PANNEAUX, "quantity": Decimal("4")}], validate=True)
        pending_validated = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("20")}], validate=True)
        pending_draft = make_devis(sample_client, lines=[{"machine_type": MachineType.CHAMPS, "meters": Decimal("2")}])
        cancelled = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("5")}])
        DevisService(db_session).cancel(cancelled.id, admin_auth)

        invoice = InvoiceService(db_session).create_from_devis([invoiced.id], admin_auth)
        PaymentService(db_session).create(invoice.id, PaymentCreate(amount=Decimal("40")), admin_auth)

        balance = ClientService(db_session).get_client_balance(sample_client.id)

        assert balance.client_name == "Menuiserie Ben Salah"
        assert balance.summary.total_invoiced == Decimal("100.00")
        assert balance.summary.total_paid == Decimal("40.00")
        assert balance.summary.outstanding_balance == Decimal("60.00")
        assert balance.summary.pending_devis_total == Decimal("40.00")

        assert len(balance.invoices) == 1
        assert balance.invoices[0].balance == Decimal("60.00")
        assert balance.invoices[0].devis_count == 1
        assert [p.amount for p in balance.invoices[0].payments] == [Decimal("40.00")]
        assert {d.id for d in balance.pending_devis} == {pending_validated.id, pending_draft.id}

    def test_unknown_client(self, db_session):
        with pytest.raises(NotFoundError):
            ClientService(db_session).get_client_balance(uuid4())


# ===== TESTS HTTP =====

class TestClientEndpoints:
    """Routes /clients"""

    def test_employee_can_read_not_write(self, api, sample_client, employee_headers):
        assert api.get("/clients/", headers=employee_headers).status_code == 200
        assert api.get(f"/clients/{sample_client.id}", headers=employee_headers).status_code == 200
        response = api.post("/clients/", json={"name": "Nouveau"}, headers=employee_headers)
        assert response.status_code == 403

    def test_create_update_delete(self, api, admin_headers):
        response = api.post(
            "/clients/",
            json={"name": "Cuisines Hammamet", "phone": "72 123 456"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        client_id = response.json()["id"]
        assert response.json()["phone"] == "+21672123456"

        response = api.put(f"/clients/{client_id}", json={"notes": "Paiement à 30 jours"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["notes"] == "Paiement à 30 jours"

        assert api.delete(f"/clients/{client_id}", headers=admin_headers).status_code == 204
        assert api.get(f"/clients/{client_id}", headers=admin_headers).status_code == 404

    def test_invalid_phone_returns_422(self, api, admin_headers):
        response = api.post("/clients/", json={"name": "X", "phone": "0612345678"}, headers=admin_headers)
        assert response.status_code == 422

    def test_search_route(self, api, sample_client, other_client, employee_headers):
        response = api.get("/clients/search", params={"q": "déco"}, headers=employee_headers)
        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["Déco Sfax"]

    def test_delete_with_devis_returns_400(self, api, make_devis, sample_client, admin_headers):
        make_devis(sample_client)
        response = api.delete(f"/clients/{sample_client.id}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["details"]["devis_count"] == 1

    def test_balance_is_admin_only(self, api, sample_client, employee_headers, admin_headers):
        assert api.get(f"/clients/{sample_client.id}/balance", headers=employee_headers).status_code == 403
        assert api.get(f"/clients/{sample_client.id}/balance", headers=admin_headers).status_code == 200
