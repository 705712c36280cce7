"""
Mixins communs aux modèles
"""
from sqlalchemy import Column, DateTime, Boolean, true
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from datetime import datetime, timezone
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin for models that need timestamp tracking"""

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)


class ActiveFlagMixin:
    """
    Suppression logique par drapeau is_active.

    Les lignes de devis conservent un instantané du prix: désactiver une
    entrée de catalogue n'affecte jamais les devis déjà chiffrés.
    """

    is_active = Column(Boolean, default=True, server_default=true(), nullable=False)

    def deactivate(self):
        self.is_active = False

    def restore(self):
        self.is_active = True


class BaseMixin(TimestampMixin):
    """Identifiant UUID + horodatage, pour la plupart des modèles métier"""

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, index=True)
