from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
from app.database.database import Base
from app.common.mixins import TimestampMixin
from app.modules.machines.models import MachineType
import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"        # Gérant: validation, facturation, paiements
    EMPLOYEE = "EMPLOYEE"  # Opérateur machine: devis sur ses machines


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    username = Column(String(50), unique=True, nullable=False)
    password = Column(String, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(Enum(UserRole, name="user_role"), nullable=False, default=UserRole.EMPLOYEE)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    allowed_machines = relationship("UserMachine", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def machine_types(self):
        return sorted((um.machine for um in self.allowed_machines), key=lambda m: m.value)


class UserMachine(Base):
    """Machines qu'un employé est autorisé à chiffrer"""
    __tablename__ = "user_machines"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    machine = Column(Enum(MachineType, name="machine_type"), nullable=False)

    # Relationships
    user = relationship("User", back_populates="allowed_machines")

    __table_args__ = (
        UniqueConstraint("user_id", "machine", name="uq_user_machine"),
    )
