"""
Cycle de vie des devis.

    DRAFT --validate--> VALIDATED --(facturation)--> INVOICED
      |                    |                            |
      +------cancel--------+-----> CANCELLED            +--(suppression facture)--> VALIDATED

Lignes, prestations et notes ne sont modifiables qu'en brouillon. Chaque
ajout ou retrait recalcule le total dans la même transaction que la
modification: aucun lecteur ne voit un total périmé.
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.orm import Session, selectinload, joinedload
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.config import settings
from app.common.exceptions import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError
)
from app.common.money import format_amount, round_measure
from app.common.sequences import next_reference
from app.modules.auth.schemas import AuthContext
from app.modules.clients.models import Client
from app.modules.devis.calculator import PricingCalculator, compute_devis_total
from app.modules.devis.models import Devis, DevisLine, DevisServiceItem, DevisStatus
from app.modules.devis.schemas import (
    CalculationInput, CalculationResult, DevisCreate, DevisFilters, DevisLineCreate, DevisServiceCreate
)
from app.modules.machines.service import PriceTableReader
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)

DEVIS_PREFIX = "DEV"


class DevisService:
    def __init__(self, db: Session):
        self.db = db
        self.calculator = PricingCalculator(db)

    # Lecture
    def get_by_id(self, devis_id: UUID, auth: Optional[AuthContext] = None) -> Devis:
        devis = self.db.query(Devis).options(
            joinedload(Devis.client),
            joinedload(Devis.created_by),
            joinedload(Devis.invoice),
            selectinload(Devis.lines),
            selectinload(Devis.services).joinedload(DevisServiceItem.service)
        ).filter(Devis.id == devis_id).first()

        if not devis:
            raise NotFoundError("Devis", devis_id)
        if auth is not None:
            self._check_access(devis, auth)
        return devis

    def get_all(self, auth: AuthContext, filters: Optional[DevisFilters] = None) -> List[Devis]:
        """
        Devis du plus récent au plus ancien. Un employé ne voit que
        les devis qu'il a créés.
        """
        filters = filters or DevisFilters()
        query = self.db.query(Devis).options(
            joinedload(Devis.client),
            joinedload(Devis.created_by),
            joinedload(Devis.invoice),
            selectinload(Devis.lines),
            selectinload(Devis.services)
        )

        if not auth.is_admin:
            query = query.filter(Devis.created_by_id == auth.user_id)
        if filters.client_id:
            query = query.filter(Devis.client_id == filters.client_id)
        if filters.status:
            query = query.filter(Devis.status == filters.status)
        if filters.date_from:
            query = query.filter(Devis.created_at >= filters.date_from)
        if filters.date_to:
            query = query.filter(Devis.created_at <= filters.date_to)

        return query.order_by(Devis.created_at.desc()).all()

    def calculate(self, data: CalculationInput) -> CalculationResult:
        """Aperçu du chiffrage d'une ligne, sans rien enregistrer"""
        return self.calculator.calculate_line(data)

    # Création
    def create(self, data: DevisCreate, auth: AuthContext) -> Devis:
        client = self.db.query(Client).filter(Client.id == data.client_id).first()
        if not client:
            raise NotFoundError("Client", data.client_id)

        try:
            devis = Devis(
                reference=next_reference(self.db, DEVIS_PREFIX, Devis),
                client_id=client.id,
                created_by_id=auth.user_id,
                status=DevisStatus.DRAFT,
                notes=data.notes,
                total_amount=Decimal("0")
            )
            self.db.add(devis)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error creating devis for client {client.id}", exc_info=True)
            raise

        logger.info(f"Devis {devis.reference} created by {auth.username}")
        self._notify(
            NotificationType.DEVIS_CREATED,
            "Nouveau devis",
            f"Devis {devis.reference} créé pour {client.name} par {auth.username}",
            devis, auth
        )
        return self.get_by_id(devis.id)

    # Composition (brouillon uniquement)
    def add_line(
        self,
        devis_id: UUID,
        data: DevisLineCreate,
        auth: AuthContext
    ) -> Tuple[DevisLine, CalculationResult, Decimal]:
        """
        Chiffre et ajoute une ligne; un employé doit être autorisé sur la machine.

        Returns:
            Tuple[DevisLine, CalculationResult, Decimal]: ligne créée, détail du calcul, nouveau total
        """
        devis = self._lock_draft(devis_id, auth)

        if not auth.can_use_machine(data.machine_type):
            logger.warning(f"{auth.username} not allowed on machine {data.machine_type.value}")
            self.db.rollback()
            raise AuthorizationError(
                f"Vous n'êtes pas autorisé à utiliser la machine {data.machine_type.value}"
            )

        try:
            calculation = self.calculator.calculate_line(data)
            material_id = data.material_id
            if material_id and not PriceTableReader(self.db).get_material(material_id):
                material_id = None

            line = DevisLine(
                machine_type=calculation.machine_type,
                description=data.description,
                minutes=round_measure(data.minutes),
                meters=round_measure(data.meters),
                quantity=round_measure(data.quantity),
                material_id=material_id,
                unit_price=calculation.unit_price,
                material_cost=calculation.material_cost,
                line_total=calculation.line_total
            )
            devis.lines.append(line)
            self._apply_total(devis)
            self.db.commit()
        except ValidationError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error adding line to devis {devis_id}", exc_info=True)
            raise

        self.db.refresh(line)
        logger.info(f"Line {calculation.machine_type.value} added to {devis.reference}, total {devis.total_amount}")
        return line, calculation, devis.total_amount

    def remove_line(self, devis_id: UUID, line_id: UUID, auth: AuthContext) -> Devis:
        devis = self._lock_draft(devis_id, auth)

        line = next((l for l in devis.lines if l.id == line_id), None)
        if not line:
            self.db.rollback()
            raise NotFoundError("Ligne de devis", line_id)

        try:
            devis.lines.remove(line)
            self._apply_total(devis)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error removing line {line_id} from devis {devis_id}", exc_info=True)
            raise

        logger.info(f"Line removed from {devis.reference}, total {devis.total_amount}")
        return self.get_by_id(devis_id)

    def add_service(self, devis_id: UUID, data: DevisServiceCreate, auth: AuthContext) -> DevisServiceItem:
        devis = self._lock_draft(devis_id, auth)

        service = PriceTableReader(self.db).get_fixed_service(data.service_id)
        if not service:
            self.db.rollback()
            raise NotFoundError("Prestation", data.service_id)

        if any(item.service_id == service.id for item in devis.services):
            self.db.rollback()
            raise ValidationError("Cette prestation est déjà ajoutée à ce devis", field="service_id")

        try:
            item = DevisServiceItem(service_id=service.id, price=service.price)
            devis.services.append(item)
            self._apply_total(devis)
            self.db.commit()
        except IntegrityError:
            # Ajout concurrent de la même prestation
            self.db.rollback()
            raise ValidationError("Cette prestation est déjà ajoutée à ce devis", field="service_id")
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error adding service to devis {devis_id}", exc_info=True)
            raise

        self.db.refresh(item)
        logger.info(f"Service {service.name} added to {devis.reference}, total {devis.total_amount}")
        return item

    def remove_service(self, devis_id: UUID, devis_service_id: UUID, auth: AuthContext) -> Devis:
        devis = self._lock_draft(devis_id, auth)

        item = next((s for s in devis.services if s.id == devis_service_id), None)
        if not item:
            self.db.rollback()
            raise NotFoundError("Prestation du devis", devis_service_id)

        try:
            devis.services.remove(item)
            self._apply_total(devis)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error removing service {devis_service_id} from devis {devis_id}", exc_info=True)
            raise

        return self.get_by_id(devis_id)

    def update_notes(self, devis_id: UUID, notes: Optional[str], auth: AuthContext) -> Devis:
        devis = self._lock_draft(devis_id, auth)
        devis.notes = notes
        self.db.commit()
        return self.get_by_id(devis_id)

    # Transitions
    def validate(self, devis_id: UUID, auth: AuthContext) -> Devis:
        self._require_admin(auth, "valider un devis")
        devis = self._lock(devis_id)

        if devis.status != DevisStatus.DRAFT:
            self.db.rollback()
            raise StateConflictError(
                f"Seul un devis en brouillon peut être validé (statut: {devis.status.value})",
                current_status=devis.status.value
            )
        if not devis.lines:
            self.db.rollback()
            raise ValidationError("Impossible de valider un devis sans ligne")

        devis.status = DevisStatus.VALIDATED
        devis.validated_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info(f"Devis {devis.reference} validated by {auth.username}")
        self._notify(
            NotificationType.DEVIS_VALIDATED,
            "Devis validé",
            f"Devis {devis.reference} validé ({format_amount(devis.total_amount)} {settings.CURRENCY})",
            devis, auth
        )
        return self.get_by_id(devis_id)

    def cancel(self, devis_id: UUID, auth: AuthContext) -> Devis:
        self._require_admin(auth, "annuler un devis")
        devis = self._lock(devis_id)

        if devis.status == DevisStatus.INVOICED:
            self.db.rollback()
            raise StateConflictError("Impossible d'annuler un devis facturé", current_status=devis.status.value)
        if devis.status == DevisStatus.CANCELLED:
            self.db.rollback()
            raise StateConflictError("Ce devis est déjà annulé", current_status=devis.status.value)

        devis.status = DevisStatus.CANCELLED
        self.db.commit()

        logger.info(f"Devis {devis.reference} cancelled by {auth.username}")
        self._notify(
            NotificationType.DEVIS_CANCELLED,
            "Devis annulé",
            f"Devis {devis.reference} annulé",
            devis, auth
        )
        return self.get_by_id(devis_id)

    def delete(self, devis_id: UUID, auth: AuthContext) -> None:
        self._require_admin(auth, "supprimer un devis")
        devis = self._lock(devis_id)

        if devis.status == DevisStatus.INVOICED:
            self.db.rollback()
            raise StateConflictError("Impossible de supprimer un devis facturé", current_status=devis.status.value)

        reference = devis.reference
        try:
            self.db.delete(devis)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error deleting devis {devis_id}", exc_info=True)
            raise
        logger.info(f"Devis {reference} deleted by {auth.username}")

    def recalculate_total(self, devis_id: UUID) -> Decimal:
        """Recalcule et enregistre le total à partir des lignes et prestations actuelles"""
        devis = self._lock(devis_id)
        total = self._apply_total(devis)
        self.db.commit()
        return total

    # Interne
    def _lock(self, devis_id: UUID) -> Devis:
        devis = self.db.query(Devis).filter(
            Devis.id == devis_id
        ).with_for_update().populate_existing().first()
        if not devis:
            raise NotFoundError("Devis", devis_id)
        return devis

    def _lock_draft(self, devis_id: UUID, auth: AuthContext) -> Devis:
        devis = self._lock(devis_id)
        try:
            self._check_access(devis, auth)
        except AuthorizationError:
            self.db.rollback()
            raise
        if devis.status != DevisStatus.DRAFT:
            self.db.rollback()
            raise StateConflictError(
                f"Le devis {devis.reference} n'est plus modifiable (statut: {devis.status.value})",
                current_status=devis.status.value
            )
        return devis

    @staticmethod
    def _apply_total(devis: Devis) -> Decimal:
        devis.total_amount = compute_devis_total(
            (line.line_total for line in devis.lines),
            (item.price for item in devis.services)
        )
        return devis.total_amount

    @staticmethod
    def _check_access(devis: Devis, auth: AuthContext) -> None:
        if not auth.is_admin and devis.created_by_id != auth.user_id:
            raise AuthorizationError("Ce devis appartient à un autre utilisateur")

    @staticmethod
    def _require_admin(auth: AuthContext, action: str) -> None:
        if not auth.is_admin:
            raise AuthorizationError(f"Seul un administrateur peut {action}")

    def _notify(self, notification_type: NotificationType, title: str, message: str, devis: Devis, auth: AuthContext):
        NotificationService(self.db).notify(
            notification_type, title, message,
            entity_type="devis",
            entity_id=devis.id,
            triggered_by_id=auth.user_id
        )
