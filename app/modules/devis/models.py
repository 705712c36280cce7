from app.database.database import Base
from sqlalchemy import Column, String, Text, Numeric, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from app.common.mixins import BaseMixin
from app.modules.machines.models import MachineType
import enum


class DevisStatus(str, enum.Enum):
    DRAFT = "DRAFT"            # Brouillon: lignes et prestations modifiables
    VALIDATED = "VALIDATED"    # Validé par un admin, facturable
    INVOICED = "INVOICED"      # Rattaché à une facture
    CANCELLED = "CANCELLED"    # Terminal


class Devis(Base, BaseMixin):
    __tablename__ = "devis"

    reference = Column(String(20), nullable=False, unique=True)  # DEV-2025-0001
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(Enum(DevisStatus, name="devis_status"), nullable=False, default=DevisStatus.DRAFT)
    notes = Column(Text, nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    validated_at = Column(DateTime(timezone=True), nullable=True)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    client = relationship("Client", back_populates="devis")
    created_by = relationship("User")
    invoice = relationship("Invoice", back_populates="devis")
    lines = relationship(
        "DevisLine", back_populates="devis", cascade="all, delete-orphan",
        order_by="DevisLine.created_at"
    )
    services = relationship(
        "DevisServiceItem", back_populates="devis", cascade="all, delete-orphan",
        order_by="DevisServiceItem.created_at"
    )

    @property
    def invoice_reference(self):
        return self.invoice.reference if self.invoice else None

    @property
    def line_count(self):
        return len(self.lines)

    @property
    def service_count(self):
        return len(self.services)


class DevisLine(Base, BaseMixin):
    """
    Ligne chiffrée: prix unitaire, coût matière et total sont copiés
    au moment de l'ajout et ne sont jamais recalculés.
    """
    __tablename__ = "devis_lines"

    devis_id = Column(UUID(as_uuid=True), ForeignKey("devis.id", ondelete="CASCADE"), nullable=False, index=True)
    machine_type = Column(Enum(MachineType, name="machine_type"), nullable=False)
    description = Column(Text, nullable=True)
    minutes = Column(Numeric(10, 2), nullable=True)   # CNC, LASER
    meters = Column(Numeric(10, 2), nullable=True)    # CHAMPS
    quantity = Column(Numeric(10, 2), nullable=True)  # PANNEAUX
    material_id = Column(UUID(as_uuid=True), ForeignKey("materials.id"), nullable=True)
    unit_price = Column(Numeric(15, 2), nullable=False)
    material_cost = Column(Numeric(15, 2), nullable=False, default=0)
    line_total = Column(Numeric(15, 2), nullable=False)

    # Relationships
    devis = relationship("Devis", back_populates="lines")
    material = relationship("Material")


class DevisServiceItem(Base, BaseMixin):
    """Prestation forfaitaire attachée à un devis, au prix du moment"""
    __tablename__ = "devis_services"

    devis_id = Column(UUID(as_uuid=True), ForeignKey("devis.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("fixed_services.id"), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)

    # Relationships
    devis = relationship("Devis", back_populates="services")
    service = relationship("FixedService")

    __table_args__ = (
        UniqueConstraint("devis_id", "service_id", name="uq_devis_service"),
    )

    @property
    def service_name(self):
        return self.service.name if self.service else None
