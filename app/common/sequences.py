"""
Numérotation annuelle des documents (DEV-2025-0001, INV-2025-0001, ...).

Un compteur par (préfixe, année), verrouillé puis incrémenté dans la
transaction qui crée le document: deux créations concurrentes ne peuvent
pas obtenir la même référence.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4
import logging

from sqlalchemy import Column, Integer, String, UniqueConstraint, DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database.database import Base
from app.common.mixins import utcnow

logger = logging.getLogger(__name__)


class ReferenceSequence(Base):
    """Compteur de références par préfixe et par année"""
    __tablename__ = "reference_sequences"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    prefix = Column(String(10), nullable=False)  # "DEV", "INV"
    year = Column(Integer, nullable=False)
    current_number = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_reference_sequence_prefix_year"),
    )


def format_reference(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:04d}"


def _lock_sequence(db: Session, prefix: str, year: int) -> Optional[ReferenceSequence]:
    return db.query(ReferenceSequence).filter(
        ReferenceSequence.prefix == prefix,
        ReferenceSequence.year == year
    ).with_for_update().first()


def next_reference(db: Session, prefix: str, model, year: Optional[int] = None) -> str:
    """
    Réserve la prochaine référence pour `prefix` dans l'année courante.

    `model` est la classe portant la colonne `reference`: à la première
    utilisation d'une année, le compteur démarre au nombre de références
    existantes pour ce préfixe (reprise des données numérotées par comptage).
    Ne commit pas: la réservation suit le sort de la transaction appelante.
    """
    year = year or datetime.now(timezone.utc).year

    sequence = _lock_sequence(db, prefix, year)
    if sequence is None:
        existing = db.query(func.count(model.id)).filter(
            model.reference.like(f"{prefix}-{year}-%")
        ).scalar() or 0
        try:
            with db.begin_nested():
                sequence = ReferenceSequence(prefix=prefix, year=year, current_number=existing)
                db.add(sequence)
        except IntegrityError:
            # Créé entre-temps par une transaction concurrente
            logger.info(f"Sequence {prefix}/{year} created concurrently, reloading")
            sequence = _lock_sequence(db, prefix, year)

    sequence.current_number += 1
    db.flush()

    reference = format_reference(prefix, year, sequence.current_number)
    logger.debug(f"Reserved reference {reference}")
    return reference
