"""
Tests des tables de prix: tarifs machines, matières et prestations
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.machines.models import MachinePricing, MachineType
from app.modules.machines.schemas import FixedServiceCreate, FixedServiceUpdate, MaterialCreate, MaterialUpdate
from app.modules.machines.service import (
    DEFAULT_MACHINE_PRICING, FixedServiceService, MachinePricingService, MaterialService, PriceTableReader
)


# ===== TARIFS MACHINES =====

class TestMachinePricing:
    """Un tarif par machine, mis à jour en place"""

    def test_default_pricing(self, db_session):
        pricing = MachinePricingService(db_session).initialize_default_pricing()
        prices = {p.machine_type: p.price_per_unit for p in pricing}
        assert prices == {machine_type: price for machine_type, price, _ in DEFAULT_MACHINE_PRICING}

    def test_initialize_keeps_existing(self, db_session):
        service = MachinePricingService(db_session)
        service.update_pricing(MachineType.CNC, Decimal("1.80"))
        service.initialize_default_pricing()

        assert db_session.query(MachinePricing).count() == 4
        assert PriceTableReader(db_session).get_machine_pricing(MachineType.CNC).price_per_unit == Decimal("1.80")

    def test_upsert_single_row(self, db_session, pricing):
        service = MachinePricingService(db_session)
        service.update_pricing(MachineType.LASER, Decimal("2.25"), "Prix par minute (fibre)")
        updated = service.update_pricing(MachineType.LASER, Decimal("2.40"))

        assert updated.price_per_unit == Decimal("2.40")
        assert updated.description == "Prix par minute (fibre)"
        assert db_session.query(MachinePricing).filter(MachinePricing.machine_type == MachineType.LASER).count() == 1

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-1.50")])
    def test_price_must_be_positive(self, db_session, pricing, price):
        with pytest.raises(ValidationError):
            MachinePricingService(db_session).update_pricing(MachineType.CNC, price)


# ===== MATIÈRES ET PRESTATIONS =====

class TestMaterials:
    """Catalogue des matières"""

    def test_crud_and_deactivate(self, db_session):
        service = MaterialService(db_session)
        material = service.create(MaterialCreate(name="Plexiglas 3mm", price_per_unit=Decimal("48.00"), unit="plaque"))
        service.update(material.id, MaterialUpdate(price_per_unit=Decimal("52.00")))
        assert service.get_by_id(material.id).price_per_unit == Decimal("52.00")

        service.deactivate(material.id)
        assert service.get_all() == []
        # Retirée des listes mais toujours résolue par identifiant pour le chiffrage
        assert PriceTableReader(db_session).get_material(material.id).price_per_unit == Decimal("52.00")

    def test_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            MaterialService(db_session).get_by_id(uuid4())


class TestFixedServices:
    """Prestations forfaitaires"""

    def test_listing_sorted_active_only(self, db_session, fixed_services):
        service = FixedServiceService(db_session)
        service.deactivate(fixed_services["livraison"].id)
        assert [s.name for s in service.get_all()] == ["Design", "Finition", "Installation"]

    def test_update_keeps_name(self, db_session, fixed_services):
        updated = FixedServiceService(db_session).update(
            fixed_services["design"].id, FixedServiceUpdate(price=Decimal("60.00"), name=None)
        )
        assert updated.name == "Design"
        assert updated.price == Decimal("60.00")

    def test_create(self, db_session):
        created = FixedServiceService(db_session).create(FixedServiceCreate(name="Montage", price=Decimal("80")))
        assert created.is_active


# ===== TESTS HTTP =====

class TestMachineEndpoints:
    """Routes /machines, /materials, /services"""

    def test_pricing_visible_to_staff(self, api, pricing, employee_headers):
        response = api.get("/machines/pricing", headers=employee_headers)
        assert response.status_code == 200
        assert {p["machine_type"] for p in response.json()} == {"CNC", "LASER", "CHAMPS", "PANNEAUX"}

    def test_pricing_update_admin_only(self, api, pricing, employee_headers, admin_headers):
        payload = {"price_per_unit": "1.75"}
        assert api.put("/machines/pricing/CNC", json=payload, headers=employee_headers).status_code == 403

        response = api.put("/machines/pricing/CNC", json=payload, headers=admin_headers)
        assert response.status_code == 200
        assert Decimal(response.json()["price_per_unit"]) == Decimal("1.75")

    def test_zero_price_rejected(self, api, pricing, admin_headers):
        response = api.put("/machines/pricing/CNC", json={"price_per_unit": "0"}, headers=admin_headers)
        assert response.status_code == 422

    def test_my_machines(self, api, employee_headers, admin_headers):
        assert set(api.get("/machines/my", headers=employee_headers).json()) == {"CNC", "LASER"}
        assert api.get("/machines/my", headers=admin_headers).json() == ["CNC", "LASER", "CHAMPS", "PANNEAUX"]

    def test_deactivate_material(self, api, material, admin_headers, employee_headers):
        response = api.delete(f"/materials/{material.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert api.get("/materials/", headers=employee_headers).json() == []

    def test_create_service(self, api, admin_headers, employee_headers):
        payload = {"name": "Vernissage", "price": "120.00"}
        assert api.post("/services/", json=payload, headers=employee_headers).status_code == 403
        response = api.post("/services/", json=payload, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["name"] == "Vernissage"
