"""
Services des tables de prix: tarifs machines, matières et prestations forfaitaires.

Tables lues à chaque chiffrage et modifiées rarement (admin). Les lignes de
devis copient le prix au moment de l'ajout: modifier ou désactiver une
entrée ici ne change jamais un devis existant.
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from app.common.exceptions import NotFoundError, ValidationError
from app.modules.machines.models import MachinePricing, MachineType, Material, FixedService
from app.modules.machines.schemas import (
    MaterialCreate, MaterialUpdate, FixedServiceCreate, FixedServiceUpdate
)

logger = logging.getLogger(__name__)


DEFAULT_MACHINE_PRICING = [
    (MachineType.CNC, Decimal("1.50"), "Prix par minute"),
    (MachineType.LASER, Decimal("2.00"), "Prix par minute"),
    (MachineType.CHAMPS, Decimal("5.00"), "Prix par mètre"),
    (MachineType.PANNEAUX, Decimal("25.00"), "Prix par unité"),
]


class PriceTableReader:
    """Lecture des tables de prix pour le chiffrage (aucune écriture)."""

    def __init__(self, db: Session):
        self.db = db

    def get_machine_pricing(self, machine_type: MachineType) -> Optional[MachinePricing]:
        return self.db.query(MachinePricing).filter(
            MachinePricing.machine_type == machine_type
        ).first()

    def get_material(self, material_id: UUID) -> Optional[Material]:
        """Matière par identifiant, désactivée ou non (le drapeau ne filtre que les listes)"""
        return self.db.get(Material, material_id)

    def get_fixed_service(self, service_id: UUID) -> Optional[FixedService]:
        """Prestation active, ou None si inconnue ou désactivée"""
        return self.db.query(FixedService).filter(
            FixedService.id == service_id,
            FixedService.is_active.is_(True)
        ).first()


class MachinePricingService:
    def __init__(self, db: Session):
        self.db = db

    def get_all_pricing(self) -> List[MachinePricing]:
        return self.db.query(MachinePricing).order_by(MachinePricing.machine_type).all()

    def update_pricing(
        self,
        machine_type: MachineType,
        price_per_unit: Decimal,
        description: Optional[str] = None
    ) -> MachinePricing:
        """Crée ou met à jour le tarif d'une machine (upsert)"""
        if price_per_unit is None or Decimal(price_per_unit) <= 0:
            raise ValidationError("Le prix unitaire doit être supérieur à 0", field="price_per_unit")

        try:
            pricing = self.db.query(MachinePricing).filter(
                MachinePricing.machine_type == machine_type
            ).with_for_update().first()

            if pricing:
                pricing.price_per_unit = price_per_unit
                if description is not None:
                    pricing.description = description
            else:
                pricing = MachinePricing(
                    machine_type=machine_type,
                    price_per_unit=price_per_unit,
                    description=description
                )
                self.db.add(pricing)

            self.db.commit()
            self.db.refresh(pricing)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error updating pricing for {machine_type.value}", exc_info=True)
            raise

        logger.info(f"Pricing for {machine_type.value} set to {pricing.price_per_unit}")
        return pricing

    def initialize_default_pricing(self) -> List[MachinePricing]:
        """Insère les tarifs par défaut manquants, sans toucher aux existants"""
        existing = {p.machine_type for p in self.get_all_pricing()}
        for machine_type, price, description in DEFAULT_MACHINE_PRICING:
            if machine_type not in existing:
                self.db.add(MachinePricing(
                    machine_type=machine_type,
                    price_per_unit=price,
                    description=description
                ))
                logger.info(f"Default pricing created for {machine_type.value}")
        self.db.commit()
        return self.get_all_pricing()


class MaterialService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[Material]:
        return self.db.query(Material).filter(
            Material.is_active.is_(True)
        ).order_by(Material.name).all()

    def get_by_id(self, material_id: UUID) -> Material:
        material = self.db.query(Material).filter(Material.id == material_id).first()
        if not material:
            raise NotFoundError("Matière", material_id)
        return material

    def create(self, data: MaterialCreate) -> Material:
        material = Material(
            name=data.name,
            price_per_unit=data.price_per_unit,
            unit=data.unit,
            description=data.description
        )
        self.db.add(material)
        self.db.commit()
        self.db.refresh(material)
        return material

    def update(self, material_id: UUID, data: MaterialUpdate) -> Material:
        material = self.get_by_id(material_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(material, field, value)
        self.db.commit()
        self.db.refresh(material)
        return material

    def deactivate(self, material_id: UUID) -> Material:
        material = self.get_by_id(material_id)
        material.deactivate()
        self.db.commit()
        self.db.refresh(material)
        logger.info(f"Material {material.name} deactivated")
        return material


class FixedServiceService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[FixedService]:
        return self.db.query(FixedService).filter(
            FixedService.is_active.is_(True)
        ).order_by(FixedService.name).all()

    def get_by_id(self, service_id: UUID) -> FixedService:
        service = self.db.query(FixedService).filter(FixedService.id == service_id).first()
        if not service:
            raise NotFoundError("Prestation", service_id)
        return service

    def create(self, data: FixedServiceCreate) -> FixedService:
        service = FixedService(name=data.name, price=data.price, description=data.description)
        self.db.add(service)
        self.db.commit()
        self.db.refresh(service)
        return service

    def update(self, service_id: UUID, data: FixedServiceUpdate) -> FixedService:
        service = self.get_by_id(service_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "description":
                continue
            setattr(service, field, value)
        self.db.commit()
        self.db.refresh(service)
        return service

    def deactivate(self, service_id: UUID) -> FixedService:
        service = self.get_by_id(service_id)
        service.deactivate()
        self.db.commit()
        self.db.refresh(service)
        logger.info(f"Fixed service {service.name} deactivated")
        return service
