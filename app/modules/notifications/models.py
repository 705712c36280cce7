from sqlalchemy import Column, String, Boolean, Text, ForeignKey, DateTime, Enum, false
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.database.database import Base
from app.common.mixins import utcnow
import enum


class NotificationType(str, enum.Enum):
    CLIENT_CREATED = "CLIENT_CREATED"
    CLIENT_UPDATED = "CLIENT_UPDATED"
    CLIENT_DELETED = "CLIENT_DELETED"
    DEVIS_CREATED = "DEVIS_CREATED"
    DEVIS_VALIDATED = "DEVIS_VALIDATED"
    DEVIS_CANCELLED = "DEVIS_CANCELLED"
    INVOICE_CREATED = "INVOICE_CREATED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    EXPENSE_CREATED = "EXPENSE_CREATED"
    EXPENSE_DELETED = "EXPENSE_DELETED"
    EMPLOYEE_CREATED = "EMPLOYEE_CREATED"
    EMPLOYEE_UPDATED = "EMPLOYEE_UPDATED"


class Notification(Base):
    """Événement métier destiné aux administrateurs"""
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    type = Column(Enum(NotificationType, name="notification_type"), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(50), nullable=True)   # "devis", "invoice", "client", ...
    entity_id = Column(UUID(as_uuid=True), nullable=True)
    triggered_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    is_read = Column(Boolean, default=False, server_default=false(), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def to_payload(self) -> dict:
        """Message JSON publié sur le canal temps réel"""
        return {
            "id": str(self.id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "triggered_by_id": str(self.triggered_by_id) if self.triggered_by_id else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
