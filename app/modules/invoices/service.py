"""
Facturation: consolidation de devis validés ou facture directe.

Une facture issue de devis fait passer tous ses devis en INVOICED dans
la même transaction que sa création; sa suppression (sans paiement) les
remet en VALIDATED. Le total est figé à la création.
"""
from typing import List, Optional
from uuid import UUID
import logging

from sqlalchemy.orm import Session, selectinload, joinedload
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.common.exceptions import AppError, NotFoundError, StateConflictError, ValidationError
from app.common.money import ZERO, round_money, round_measure, sum_money, format_amount
from app.common.sequences import next_reference
from app.modules.auth.schemas import AuthContext
from app.modules.clients.models import Client
from app.modules.devis.models import Devis, DevisStatus
from app.modules.invoices.models import Invoice, InvoiceItem
from app.modules.invoices.schemas import InvoiceDirectCreate
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)

INVOICE_PREFIX = "INV"


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[Invoice]:
        return self._query().order_by(Invoice.created_at.desc()).all()

    def get_by_id(self, invoice_id: UUID) -> Invoice:
        invoice = self._query().options(
            selectinload(Invoice.items)
        ).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Facture", invoice_id)
        return invoice

    def create_from_devis(
        self,
        devis_ids: List[UUID],
        auth: AuthContext,
        notes: Optional[str] = None
    ) -> Invoice:
        """
        Regroupe un ou plusieurs devis validés d'un même client en une facture.
        Tout ou rien: au moindre devis invalide, aucun devis ne change d'état.
        """
        ids = list(dict.fromkeys(devis_ids))
        if not ids:
            raise ValidationError("Au moins un devis est requis", field="devis_ids")

        try:
            devis_list = self.db.query(Devis).filter(
                Devis.id.in_(ids)
            ).order_by(Devis.id).with_for_update().populate_existing().all()

            found = {d.id for d in devis_list}
            missing = [str(devis_id) for devis_id in ids if devis_id not in found]
            if missing:
                raise NotFoundError(
                    "Devis", ", ".join(missing),
                    message=f"Devis introuvable(s): {', '.join(missing)}"
                )

            client_ids = {d.client_id for d in devis_list}
            if len(client_ids) > 1:
                raise ValidationError(
                    "Tous les devis doivent appartenir au même client",
                    field="devis_ids"
                )

            not_validated = [d.reference for d in devis_list if d.status != DevisStatus.VALIDATED]
            if not_validated:
                raise StateConflictError(
                    f"Les devis doivent être validés avant facturation: {', '.join(sorted(not_validated))}"
                )

            already_invoiced = [d.reference for d in devis_list if d.invoice_id is not None]
            if already_invoiced:
                raise StateConflictError(
                    f"Devis déjà facturé(s): {', '.join(sorted(already_invoiced))}"
                )

            invoice = Invoice(
                reference=next_reference(self.db, INVOICE_PREFIX, Invoice),
                client_id=client_ids.pop(),
                total_amount=sum_money(d.total_amount for d in devis_list),
                notes=notes
            )
            self.db.add(invoice)
            self.db.flush()

            for devis in devis_list:
                devis.status = DevisStatus.INVOICED
                devis.invoice_id = invoice.id

            self.db.commit()

        except AppError as e:
            self.db.rollback()
            logger.warning(f"Invoice from devis refused: {e.message}")
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("Error creating invoice from devis", exc_info=True)
            raise

        invoice = self.get_by_id(invoice.id)
        logger.info(
            f"Invoice {invoice.reference} created from {len(ids)} devis, total {invoice.total_amount}"
        )
        self._notify_created(invoice, auth)
        return invoice

    def create_direct(self, invoice_data: InvoiceDirectCreate, auth: AuthContext) -> Invoice:
        """Facture sans devis, à partir de lignes libres"""
        if not invoice_data.items:
            raise ValidationError("Au moins une ligne est requise", field="items")

        for index, item in enumerate(invoice_data.items):
            if round_measure(item.quantity) <= ZERO:
                raise ValidationError(
                    f"La quantité de la ligne {index + 1} doit être supérieure à 0",
                    field="items"
                )

        client = self.db.query(Client).filter(Client.id == invoice_data.client_id).first()
        if not client:
            raise NotFoundError("Client", invoice_data.client_id)

        try:
            items = []
            for item in invoice_data.items:
                quantity = round_measure(item.quantity)
                unit_price = round_money(item.unit_price)
                items.append(InvoiceItem(
                    description=item.description,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=round_money(quantity * unit_price)
                ))
            invoice = Invoice(
                reference=next_reference(self.db, INVOICE_PREFIX, Invoice),
                client_id=client.id,
                total_amount=sum_money(item.total_price for item in items),
                notes=invoice_data.notes,
                items=items
            )
            self.db.add(invoice)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error creating direct invoice for client {client.id}", exc_info=True)
            raise

        invoice = self.get_by_id(invoice.id)
        logger.info(f"Direct invoice {invoice.reference} created, total {invoice.total_amount}")
        self._notify_created(invoice, auth)
        return invoice

    def delete(self, invoice_id: UUID) -> None:
        """
        Supprime une facture sans paiement et remet ses devis en VALIDATED.
        """
        try:
            invoice = self.db.query(Invoice).filter(
                Invoice.id == invoice_id
            ).with_for_update().populate_existing().first()
            if not invoice:
                raise NotFoundError("Facture", invoice_id)

            if invoice.payments:
                raise ValidationError(
                    "Impossible de supprimer une facture ayant des paiements. "
                    "Supprimez d'abord les paiements.",
                    details={"payment_count": len(invoice.payments)}
                )

            linked = self.db.query(Devis).filter(
                Devis.invoice_id == invoice.id
            ).with_for_update().populate_existing().all()
            for devis in linked:
                devis.status = DevisStatus.VALIDATED
                devis.invoice_id = None
            self.db.flush()

            reference = invoice.reference
            self.db.delete(invoice)
            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error deleting invoice {invoice_id}", exc_info=True)
            raise

        logger.info(f"Invoice {reference} deleted, {len(linked)} devis reverted to VALIDATED")

    def _query(self):
        return self.db.query(Invoice).options(
            joinedload(Invoice.client),
            selectinload(Invoice.payments),
            selectinload(Invoice.devis)
        )

    def _notify_created(self, invoice: Invoice, auth: AuthContext):
        NotificationService(self.db).notify(
            NotificationType.INVOICE_CREATED,
            "Nouvelle facture",
            f"Facture {invoice.reference} créée ({format_amount(invoice.total_amount)} {settings.CURRENCY})",
            entity_type="invoice",
            entity_id=invoice.id,
            triggered_by_id=auth.user_id
        )
