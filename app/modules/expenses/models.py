from app.database.database import Base
from sqlalchemy import Column, String, Text, Numeric, ForeignKey, Date
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import date
from app.common.mixins import BaseMixin


class Expense(Base, BaseMixin):
    __tablename__ = "expenses"

    description = Column(String(255), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    category = Column(String(100), nullable=False, index=True)  # Loyer, électricité, matières...
    date = Column(Date, nullable=False, default=date.today, index=True)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # Relationships
    created_by = relationship("User")
