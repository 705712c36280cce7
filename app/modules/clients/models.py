from app.database.database import Base
from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship
from app.common.mixins import BaseMixin


class Client(Base, BaseMixin):
    __tablename__ = "clients"

    name = Column(String(200), nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(150), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    devis = relationship("Devis", back_populates="client", order_by="Devis.created_at.desc()")
    invoices = relationship("Invoice", back_populates="client", order_by="Invoice.created_at.desc()")
