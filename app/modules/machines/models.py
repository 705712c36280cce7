from app.database.database import Base
from sqlalchemy import Column, String, Numeric, Enum, Text
from app.common.mixins import BaseMixin, ActiveFlagMixin
import enum


class MachineType(str, enum.Enum):
    CNC = "CNC"            # Prix à la minute
    LASER = "LASER"        # Prix à la minute + matière
    CHAMPS = "CHAMPS"      # Prix au mètre (plaqueuse de chants)
    PANNEAUX = "PANNEAUX"  # Prix à l'unité


class MachinePricing(Base, BaseMixin):
    """Tarif courant d'une machine. Une ligne par type, jamais supprimée (upsert)."""
    __tablename__ = "machine_pricing"

    machine_type = Column(Enum(MachineType, name="machine_type"), nullable=False, unique=True)
    price_per_unit = Column(Numeric(15, 2), nullable=False)
    description = Column(String(200), nullable=True)  # ex: "Prix par minute"


class Material(Base, BaseMixin, ActiveFlagMixin):
    __tablename__ = "materials"

    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price_per_unit = Column(Numeric(15, 2), nullable=False)
    unit = Column(String(30), nullable=False)  # ex: "plaque", "m²"


class FixedService(Base, BaseMixin, ActiveFlagMixin):
    """Prestation forfaitaire (design, finition, livraison, installation...)"""
    __tablename__ = "fixed_services"

    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(15, 2), nullable=False)
