"""
Tests du module Devis

- Chiffrage des lignes par type de machine (règles strictes, arrondi au centime)
- Cycle de vie: brouillon, validé, facturé, annulé
- Cohérence du total (lignes + prestations) après chaque modification
- Droits: machines autorisées des employés, actions réservées aux admins
- Endpoints HTTP et traduction des erreurs
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError
)
from app.modules.devis.calculator import PricingCalculator, compute_devis_total
from app.modules.devis.models import Devis, DevisLine, DevisServiceItem, DevisStatus
from app.modules.devis.schemas import (
    CalculationInput, DevisCreate, DevisFilters, DevisLineCreate, DevisServiceCreate
)
from app.modules.devis.service import DevisService
from app.modules.invoices.service import InvoiceService
from app.modules.machines.models import MachineType
from app.modules.machines.service import MachinePricingService, MaterialService


CURRENT_YEAR = datetime.now(timezone.utc).year


# ===== TESTS DU CALCUL DE LIGNE =====

class TestPricingCalculator:
    """Règles de chiffrage par type de machine"""

    def test_cnc_minutes_times_price(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.CNC, minutes=Decimal("60"))
        )
        assert result.unit_price == Decimal("1.50")
        assert result.material_cost == Decimal("0.00")
        assert result.line_total == Decimal("90.00")
        assert result.breakdown == "60 min × 1.50 TND/min = 90.00 TND"

    def test_laser_adds_material_cost(self, db_session, pricing, material):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.LASER, minutes=Decimal("30"), material_id=material.id)
        )
        assert result.material_cost == Decimal("35.00")
        assert result.line_total == Decimal("95.00")
        assert result.breakdown == "(30 min × 2.00 TND/min) + 35.00 TND matière = 95.00 TND"

    def test_laser_without_material(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.LASER, minutes=Decimal("10"))
        )
        assert result.material_cost == Decimal("0.00")
        assert result.line_total == Decimal("20.00")

    def test_laser_unknown_material_costs_nothing(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.LASER, minutes=Decimal("10"), material_id=uuid4())
        )
        assert result.material_cost == Decimal("0.00")
        assert result.line_total == Decimal("20.00")

    def test_laser_deactivated_material_still_priced(self, db_session, pricing, material):
        """Désactiver une matière la retire des listes, pas du chiffrage par identifiant"""
        MaterialService(db_session).deactivate(material.id)
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.LASER, minutes=Decimal("10"), material_id=material.id)
        )
        assert result.material_cost == Decimal("35.00")
        assert result.line_total == Decimal("55.00")

    def test_deactivated_material_kept_on_line(self, db_session, make_devis, sample_client, material, admin_auth):
        MaterialService(db_session).deactivate(material.id)
        devis = make_devis(sample_client)

        line, _, total = DevisService(db_session).add_line(
            devis.id,
            DevisLineCreate(machine_type=MachineType.LASER, minutes=Decimal("10"), material_id=material.id),
            admin_auth
        )
        assert line.material_id == material.id
        assert line.material_cost == Decimal("35.00")
        assert total == Decimal("55.00")

    def test_champs_meters_times_price(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.CHAMPS, meters=Decimal("12.5"))
        )
        assert result.line_total == Decimal("62.50")
        assert result.breakdown == "12.5 m × 5.00 TND/m = 62.50 TND"

    def test_panneaux_quantity_times_price(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.PANNEAUX, quantity=Decimal("3"))
        )
        assert result.line_total == Decimal("75.00")
        assert result.breakdown == "3 unités × 25.00 TND/unité = 75.00 TND"

    @pytest.mark.parametrize("minutes", [None, Decimal("0"), Decimal("-5")])
    def test_cnc_requires_positive_minutes(self, db_session, pricing, minutes):
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(
                CalculationInput(machine_type=MachineType.CNC, minutes=minutes)
            )
        assert exc_info.value.field == "minutes"

    def test_champs_ignores_minutes(self, db_session, pricing):
        """La mesure attendue dépend de la machine"""
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(
                CalculationInput(machine_type=MachineType.CHAMPS, minutes=Decimal("10"))
            )
        assert exc_info.value.field == "meters"

    def test_panneaux_requires_quantity(self, db_session, pricing):
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(
                CalculationInput(machine_type=MachineType.PANNEAUX)
            )
        assert exc_info.value.field == "quantity"

    def test_missing_pricing_row(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(
                CalculationInput(machine_type=MachineType.CNC, minutes=Decimal("10"))
            )
        assert exc_info.value.field == "machine_type"

    def test_unknown_machine_type(self, db_session, pricing):
        data = CalculationInput.model_construct(machine_type="PLASMA", minutes=Decimal("10"))
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(data)
        assert exc_info.value.field == "machine_type"

    def test_rounds_half_away_from_zero(self, db_session, pricing):
        MachinePricingService(db_session).update_pricing(MachineType.CNC, Decimal("1.25"))
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.CNC, minutes=Decimal("1.3"))
        )
        # 1.3 x 1.25 = 1.625
        assert result.line_total == Decimal("1.63")

    def test_measure_rounded_to_hundredth(self, db_session, pricing):
        result = PricingCalculator(db_session).calculate_line(
            CalculationInput(machine_type=MachineType.CNC, minutes=Decimal("10.333"))
        )
        # 10.33 x 1.50 = 15.495
        assert result.line_total == Decimal("15.50")
        assert result.breakdown == "10.33 min × 1.50 TND/min = 15.50 TND"

    def test_measure_below_hundredth_rejected(self, db_session, pricing):
        with pytest.raises(ValidationError) as exc_info:
            PricingCalculator(db_session).calculate_line(
                CalculationInput(machine_type=MachineType.PANNEAUX, quantity=Decimal("0.004"))
            )
        assert exc_info.value.field == "quantity"

    def test_stored_line_matches_its_arithmetic(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client)
        line, _, _ = DevisService(db_session).add_line(
            devis.id, DevisLineCreate(machine_type=MachineType.CHAMPS, meters=Decimal("3.337")), admin_auth
        )
        assert line.meters == Decimal("3.34")
        assert line.line_total == Decimal("16.70")
        assert line.line_total == (line.meters * line.unit_price).quantize(Decimal("0.01"))

    def test_same_input_same_result(self, db_session, pricing, material):
        calculator = PricingCalculator(db_session)
        data = CalculationInput(machine_type=MachineType.LASER, minutes=Decimal("17"), material_id=material.id)
        assert calculator.calculate_line(data) == calculator.calculate_line(data)

    def test_compute_devis_total(self):
        total = compute_devis_total([Decimal("45.00"), Decimal("0.10")], [Decimal("50.00"), None])
        assert total == Decimal("95.10")


# ===== TESTS DU CYCLE DE VIE =====

class TestDevisCreation:
    """Création et numérotation"""

    def test_new_devis_is_draft(self, db_session, pricing, sample_client, admin_auth):
        devis = DevisService(db_session).create(DevisCreate(client_id=sample_client.id), admin_auth)
        assert devis.status == DevisStatus.DRAFT
        assert devis.total_amount == Decimal("0.00")
        assert devis.validated_at is None
        assert devis.created_by_id == admin_auth.user_id

    def test_references_follow_yearly_sequence(self, db_session, sample_client, admin_auth):
        service = DevisService(db_session)
        first = service.create(DevisCreate(client_id=sample_client.id), admin_auth)
        second = service.create(DevisCreate(client_id=sample_client.id), admin_auth)
        third = service.create(DevisCreate(client_id=sample_client.id), admin_auth)
        assert first.reference == f"DEV-{CURRENT_YEAR}-0001"
        assert second.reference == f"DEV-{CURRENT_YEAR}-0002"
        assert third.reference == f"DEV-{CURRENT_YEAR}-0003"

    def test_unknown_client(self, db_session, admin_auth):
        with pytest.raises(NotFoundError):
            DevisService(db_session).create(DevisCreate(client_id=uuid4()), admin_auth)


class TestDevisComposition:
    """Lignes, prestations et total"""

    def test_add_line_updates_total(self, db_session, pricing, sample_client, admin_auth):
        service = DevisService(db_session)
        devis = service.create(DevisCreate(client_id=sample_client.id), admin_auth)

        line, calculation, total = service.add_line(
            devis.id, DevisLineCreate(machine_type=MachineType.CNC, minutes=Decimal("30")), admin_auth
        )
        assert line.line_total == Decimal("45.00")
        assert calculation.line_total == Decimal("45.00")
        assert total == Decimal("45.00")

        _, _, total = service.add_line(
            devis.id, DevisLineCreate(machine_type=MachineType.PANNEAUX, quantity=Decimal("2")), admin_auth
        )
        assert total == Decimal("95.00")

    def test_total_matches_lines_and_services(self, db_session, make_devis, sample_client, fixed_services, material):
        devis = make_devis(
            sample_client,
            lines=[
                {"machine_type": MachineType.CNC, "minutes": Decimal("12.5")},
                {"machine_type": MachineType.LASER, "minutes": Decimal("7"), "material_id": material.id},
                {"machine_type": MachineType.CHAMPS, "meters": Decimal("3.2")},
            ],
            services=[fixed_services["design"], fixed_services["livraison"]],
        )
        expected = sum(l.line_total for l in devis.lines) + sum(s.price for s in devis.services)
        assert devis.total_amount == expected
        assert devis.total_amount == Decimal("18.75") + Decimal("49.00") + Decimal("16.00") + Decimal("80.00")

    def test_line_keeps_price_snapshot(self, db_session, make_devis, sample_client):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}])
        MachinePricingService(db_session).update_pricing(MachineType.CNC, Decimal("3.00"))

        db_session.expire_all()
        line = db_session.query(DevisLine).filter(DevisLine.devis_id == devis.id).one()
        assert line.unit_price == Decimal("1.50")
        assert line.line_total == Decimal("15.00")

    def test_remove_line_recomputes_total(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[
            {"machine_type": MachineType.CNC, "minutes": Decimal("10")},
            {"machine_type": MachineType.PANNEAUX, "quantity": Decimal("1")},
        ])
        cnc_line = next(l for l in devis.lines if l.machine_type == MachineType.CNC)

        updated = DevisService(db_session).remove_line(devis.id, cnc_line.id, admin_auth)
        assert len(updated.lines) == 1
        assert updated.total_amount == Decimal("25.00")

    def test_remove_unknown_line(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client)
        with pytest.raises(NotFoundError):
            DevisService(db_session).remove_line(devis.id, uuid4(), admin_auth)

    def test_add_service_snapshots_price(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(sample_client)
        item = DevisService(db_session).add_service(
            devis.id, DevisServiceCreate(service_id=fixed_services["finition"].id), admin_auth
        )
        assert item.price == Decimal("100.00")
        assert item.service_name == "Finition"
        db_session.expire_all()
        assert db_session.get(Devis, devis.id).total_amount == Decimal("100.00")

    def test_service_added_once(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(sample_client, services=[fixed_services["design"]])
        with pytest.raises(ValidationError):
            DevisService(db_session).add_service(
                devis.id, DevisServiceCreate(service_id=fixed_services["design"].id), admin_auth
            )
        assert db_session.query(DevisServiceItem).filter(DevisServiceItem.devis_id == devis.id).count() == 1

    def test_inactive_service_rejected(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        fixed_services["livraison"].deactivate()
        db_session.commit()
        devis = make_devis(sample_client)
        with pytest.raises(NotFoundError):
            DevisService(db_session).add_service(
                devis.id, DevisServiceCreate(service_id=fixed_services["livraison"].id), admin_auth
            )

    def test_remove_service_recomputes_total(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("20")}],
            services=[fixed_services["design"]],
        )
        item = devis.services[0]
        updated = DevisService(db_session).remove_service(devis.id, item.id, admin_auth)
        assert updated.services == []
        assert updated.total_amount == Decimal("30.00")

    def test_recalculate_is_idempotent(self, db_session, make_devis, sample_client, fixed_services):
        devis = make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CHAMPS, "meters": Decimal("4")}],
            services=[fixed_services["livraison"]],
        )
        service = DevisService(db_session)
        first = service.recalculate_total(devis.id)
        second = service.recalculate_total(devis.id)
        assert first == second == Decimal("50.00")


class TestEmployeeMachineRights:
    """Un employé ne chiffre que sur ses machines autorisées"""

    def test_authorized_machine(self, db_session, make_devis, sample_client, employee_auth):
        devis = make_devis(sample_client, auth=employee_auth)
        _, _, total = DevisService(db_session).add_line(
            devis.id, DevisLineCreate(machine_type=MachineType.CNC, minutes=Decimal("10")), employee_auth
        )
        assert total == Decimal("15.00")

    def test_unauthorized_machine(self, db_session, make_devis, sample_client, employee_auth):
        devis = make_devis(sample_client, auth=employee_auth)
        with pytest.raises(AuthorizationError):
            DevisService(db_session).add_line(
                devis.id, DevisLineCreate(machine_type=MachineType.CHAMPS, meters=Decimal("3")), employee_auth
            )
        assert db_session.query(DevisLine).filter(DevisLine.devis_id == devis.id).count() == 0

    def test_admin_uses_any_machine(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client)
        _, _, total = DevisService(db_session).add_line(
            devis.id, DevisLineCreate(machine_type=MachineType.CHAMPS, meters=Decimal("3")), admin_auth
        )
        assert total == Decimal("15.00")

    def test_employee_cannot_touch_other_devis(self, db_session, make_devis, sample_client, employee_auth):
        devis = make_devis(sample_client)
        with pytest.raises(AuthorizationError):
            DevisService(db_session).add_line(
                devis.id, DevisLineCreate(machine_type=MachineType.CNC, minutes=Decimal("5")), employee_auth
            )


class TestDevisStateMachine:
    """Transitions autorisées et interdites"""

    def test_validate_sets_timestamp(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}])
        validated = DevisService(db_session).validate(devis.id, admin_auth)
        assert validated.status == DevisStatus.VALIDATED
        assert validated.validated_at is not None

    def test_validate_requires_a_line(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(sample_client, services=[fixed_services["design"]])
        with pytest.raises(ValidationError):
            DevisService(db_session).validate(devis.id, admin_auth)
        db_session.expire_all()
        assert db_session.get(Devis, devis.id).status == DevisStatus.DRAFT

    def test_validate_twice(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        with pytest.raises(StateConflictError):
            DevisService(db_session).validate(devis.id, admin_auth)

    def test_employee_cannot_validate(self, db_session, make_devis, sample_client, employee_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], auth=employee_auth)
        with pytest.raises(AuthorizationError):
            DevisService(db_session).validate(devis.id, employee_auth)

    def test_add_line_after_validation(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        with pytest.raises(StateConflictError):
            DevisService(db_session).add_line(
                devis.id, DevisLineCreate(machine_type=MachineType.CNC, minutes=Decimal("5")), admin_auth
            )
        db_session.expire_all()
        assert db_session.get(Devis, devis.id).total_amount == Decimal("15.00")

    def test_services_frozen_after_validation(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}],
            services=[fixed_services["design"]],
            validate=True,
        )
        service = DevisService(db_session)
        with pytest.raises(StateConflictError):
            service.add_service(devis.id, DevisServiceCreate(service_id=fixed_services["finition"].id), admin_auth)
        with pytest.raises(StateConflictError):
            service.remove_service(devis.id, devis.services[0].id, admin_auth)
        with pytest.raises(StateConflictError):
            service.remove_line(devis.id, devis.lines[0].id, admin_auth)

    def test_notes_only_in_draft(self, db_session, make_devis, sample_client, admin_auth):
        service = DevisService(db_session)
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}])
        assert service.update_notes(devis.id, "Livraison samedi", admin_auth).notes == "Livraison samedi"

        service.validate(devis.id, admin_auth)
        with pytest.raises(StateConflictError):
            service.update_notes(devis.id, "Trop tard", admin_auth)

    def test_cancel_draft_and_validated(self, db_session, make_devis, sample_client, admin_auth):
        service = DevisService(db_session)
        draft = make_devis(sample_client)
        validated = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)

        assert service.cancel(draft.id, admin_auth).status == DevisStatus.CANCELLED
        assert service.cancel(validated.id, admin_auth).status == DevisStatus.CANCELLED

    def test_cancel_is_terminal(self, db_session, make_devis, sample_client, admin_auth):
        service = DevisService(db_session)
        devis = make_devis(sample_client)
        service.cancel(devis.id, admin_auth)
        with pytest.raises(StateConflictError):
            service.cancel(devis.id, admin_auth)
        with pytest.raises(StateConflictError):
            service.validate(devis.id, admin_auth)

    def test_cancel_invoiced(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        InvoiceService(db_session).create_from_devis([devis.id], admin_auth)

        with pytest.raises(StateConflictError):
            DevisService(db_session).cancel(devis.id, admin_auth)
        db_session.expire_all()
        assert db_session.get(Devis, devis.id).status == DevisStatus.INVOICED

    def test_delete_draft_removes_lines(self, db_session, make_devis, sample_client, fixed_services, admin_auth):
        devis = make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}],
            services=[fixed_services["design"]],
        )
        DevisService(db_session).delete(devis.id, admin_auth)
        assert db_session.get(Devis, devis.id) is None
        assert db_session.query(DevisLine).count() == 0
        assert db_session.query(DevisServiceItem).count() == 0

    def test_delete_invoiced(self, db_session, make_devis, sample_client, admin_auth):
        devis = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        InvoiceService(db_session).create_from_devis([devis.id], admin_auth)
        with pytest.raises(StateConflictError):
            DevisService(db_session).delete(devis.id, admin_auth)


class TestDevisListing:
    """Filtres et visibilité"""

    def test_employee_sees_own_devis(self, db_session, make_devis, sample_client, admin_auth, employee_auth):
        own = make_devis(sample_client, auth=employee_auth)
        make_devis(sample_client)

        service = DevisService(db_session)
        assert [d.id for d in service.get_all(employee_auth)] == [own.id]
        assert len(service.get_all(admin_auth)) == 2

    def test_filters(self, db_session, make_devis, sample_client, other_client, admin_auth):
        validated = make_devis(sample_client, lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}], validate=True)
        make_devis(sample_client)
        other = make_devis(other_client)

        service = DevisService(db_session)
        assert [d.id for d in service.get_all(admin_auth, DevisFilters(status=DevisStatus.VALIDATED))] == [validated.id]
        assert [d.id for d in service.get_all(admin_auth, DevisFilters(client_id=other_client.id))] == [other.id]

    def test_employee_cannot_read_other_devis(self, db_session, make_devis, sample_client, employee_auth):
        devis = make_devis(sample_client)
        with pytest.raises(AuthorizationError):
            DevisService(db_session).get_by_id(devis.id, employee_auth)


# ===== TESTS HTTP =====

class TestDevisEndpoints:
    """Routes /devis et codes d'erreur"""

    def test_requires_authentication(self, api):
        response = api.get("/devis/")
        assert response.status_code in (401, 403)

    def test_calculate_preview(self, api, pricing, employee_headers):
        response = api.post(
            "/devis/calculate",
            json={"machine_type": "CNC", "minutes": 60},
            headers=employee_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["line_total"]) == Decimal("90.00")
        assert body["breakdown"] == "60 min × 1.50 TND/min = 90.00 TND"

    def test_calculate_missing_measure(self, api, pricing, employee_headers):
        response = api.post("/devis/calculate", json={"machine_type": "CHAMPS"}, headers=employee_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["details"]["field"] == "meters"

    def test_full_draft_flow(self, api, pricing, sample_client, employee_headers, admin_headers):
        response = api.post("/devis/", json={"client_id": str(sample_client.id)}, headers=employee_headers)
        assert response.status_code == 201
        devis_id = response.json()["id"]
        assert response.json()["status"] == "DRAFT"

        response = api.post(
            f"/devis/{devis_id}/lines",
            json={"machine_type": "LASER", "minutes": 15, "description": "Découpe enseigne"},
            headers=employee_headers,
        )
        assert response.status_code == 201
        assert Decimal(response.json()["devis_total"]) == Decimal("30.00")

        response = api.post(f"/devis/{devis_id}/validate", headers=employee_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

        response = api.post(f"/devis/{devis_id}/validate", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "VALIDATED"

        response = api.post(
            f"/devis/{devis_id}/lines",
            json={"machine_type": "CNC", "minutes": 5},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "STATE_CONFLICT"
        assert response.json()["details"]["current_status"] == "VALIDATED"

    def test_unauthorized_machine_returns_403(self, api, make_devis, sample_client, employee_auth, employee_headers):
        devis = make_devis(sample_client, auth=employee_auth)
        response = api.post(
            f"/devis/{devis.id}/lines",
            json={"machine_type": "PANNEAUX", "quantity": 2},
            headers=employee_headers,
        )
        assert response.status_code == 403

    def test_unknown_devis_returns_404(self, api, admin_headers):
        response = api.get(f"/devis/{uuid4()}", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_detail_lists_lines_and_services(self, api, make_devis, sample_client, fixed_services, admin_headers):
        devis = make_devis(
            sample_client,
            lines=[{"machine_type": MachineType.CNC, "minutes": Decimal("10")}],
            services=[fixed_services["installation"]],
        )
        response = api.get(f"/devis/{devis.id}", headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert len(body["lines"]) == 1
        assert body["services"][0]["service_name"] == "Installation"
        assert Decimal(body["total_amount"]) == Decimal("165.00")
        assert body["invoice_reference"] is None

    def test_delete_is_admin_only(self, api, make_devis, sample_client, employee_auth, employee_headers, admin_headers):
        devis = make_devis(sample_client, auth=employee_auth)
        assert api.delete(f"/devis/{devis.id}", headers=employee_headers).status_code == 403
        assert api.delete(f"/devis/{devis.id}", headers=admin_headers).status_code == 204
