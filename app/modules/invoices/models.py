from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from app.common.mixins import BaseMixin, utcnow
from app.common.money import ZERO, round_money, sum_money


class Invoice(Base, BaseMixin):
    """
    Facture issue d'un ou plusieurs devis validés, ou créée directement
    avec des lignes libres. Le total est figé à la création.
    """
    __tablename__ = "invoices"

    reference = Column(String(20), nullable=False, unique=True)  # INV-2025-0001
    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # Relationships
    client = relationship("Client", back_populates="invoices")
    devis = relationship("Devis", back_populates="invoice", order_by="Devis.reference")
    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceItem.created_at"
    )
    payments = relationship(
        "Payment", back_populates="invoice", cascade="all, delete-orphan",
        order_by="Payment.payment_date.desc()"
    )

    @property
    def paid_amount(self):
        """Montant encaissé"""
        return sum_money(payment.amount for payment in self.payments)

    @property
    def balance(self):
        """Solde restant dû"""
        return round_money(self.total_amount) - self.paid_amount

    @property
    def is_paid(self):
        return self.balance == ZERO and round_money(self.total_amount) > ZERO


class InvoiceItem(Base, BaseMixin):
    """Ligne libre d'une facture directe"""
    __tablename__ = "invoice_items"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    total_price = Column(Numeric(15, 2), nullable=False)  # quantity * unit_price

    # Relationships
    invoice = relationship("Invoice", back_populates="items")


class Payment(Base, BaseMixin):
    __tablename__ = "payments"

    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    payment_method = Column(String(50), nullable=True)  # Espèces, chèque, virement...
    reference = Column(String(100), nullable=True)      # N° de chèque, de virement
    notes = Column(Text, nullable=True)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
