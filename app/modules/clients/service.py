from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_
from typing import List, Optional
from uuid import UUID
import logging

from app.common.exceptions import NotFoundError, ValidationError
from app.common.money import sum_money
from app.modules.clients.models import Client
from app.modules.clients.schemas import (
    ClientCreate, ClientUpdate, ClientListItem, ClientOut,
    ClientBalance, BalanceSummary, BalanceInvoice, BalancePayment, ClientDevisSummary
)
from app.modules.devis.models import Devis, DevisStatus
from app.modules.invoices.models import Invoice
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)


class ClientService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[ClientListItem]:
        """Clients du plus récent au plus ancien, avec leur nombre de devis"""
        rows = self.db.query(Client, func.count(Devis.id)).outerjoin(
            Devis, Devis.client_id == Client.id
        ).group_by(Client.id).order_by(Client.created_at.desc()).all()

        return [
            ClientListItem(**ClientOut.model_validate(client).model_dump(), devis_count=count)
            for client, count in rows
        ]

    def get_by_id(self, client_id: UUID) -> Client:
        client = self.db.query(Client).options(
            selectinload(Client.devis)
        ).filter(Client.id == client_id).first()
        if not client:
            raise NotFoundError("Client", client_id)
        return client

    def search(self, query: str) -> List[Client]:
        """Recherche insensible à la casse sur le nom, le téléphone et l'email"""
        pattern = f"%{query.strip()}%"
        return self.db.query(Client).filter(
            or_(
                Client.name.ilike(pattern),
                Client.phone.ilike(pattern),
                Client.email.ilike(pattern)
            )
        ).order_by(Client.name).all()

    def create(self, client_data: ClientCreate, created_by: Optional[UUID] = None) -> Client:
        client = Client(**client_data.model_dump())
        self.db.add(client)
        self.db.commit()
        self.db.refresh(client)
        logger.info(f"Client {client.name} created")

        NotificationService(self.db).notify(
            NotificationType.CLIENT_CREATED,
            "Nouveau client",
            f"Client {client.name} ajouté",
            entity_type="client",
            entity_id=client.id,
            triggered_by_id=created_by
        )
        return client

    def update(self, client_id: UUID, client_data: ClientUpdate, updated_by: Optional[UUID] = None) -> Client:
        client = self.get_by_id(client_id)

        update_data = client_data.model_dump(exclude_unset=True)
        if "name" in update_data and update_data["name"] is None:
            del update_data["name"]
        for field, value in update_data.items():
            setattr(client, field, value)

        self.db.commit()
        self.db.refresh(client)

        NotificationService(self.db).notify(
            NotificationType.CLIENT_UPDATED,
            "Client modifié",
            f"Fiche du client {client.name} mise à jour",
            entity_type="client",
            entity_id=client.id,
            triggered_by_id=updated_by
        )
        return client

    def delete(self, client_id: UUID, deleted_by: Optional[UUID] = None) -> None:
        client = self.get_by_id(client_id)

        devis_count = self.db.query(Devis).filter(Devis.client_id == client_id).count()
        invoice_count = self.db.query(Invoice).filter(Invoice.client_id == client_id).count()
        if devis_count or invoice_count:
            logger.warning(f"Refused to delete client {client.name}: {devis_count} devis, {invoice_count} invoices")
            raise ValidationError(
                "Impossible de supprimer un client ayant des devis ou des factures",
                details={"devis_count": devis_count, "invoice_count": invoice_count}
            )

        name = client.name
        self.db.delete(client)
        self.db.commit()
        logger.info(f"Client {name} deleted")

        NotificationService(self.db).notify(
            NotificationType.CLIENT_DELETED,
            "Client supprimé",
            f"Client {name} supprimé",
            entity_type="client",
            entity_id=client_id,
            triggered_by_id=deleted_by
        )

    def get_client_balance(self, client_id: UUID) -> ClientBalance:
        """
        Situation financière du client.

        Solde par facture = total - paiements; solde global = somme des
        totaux facturés - somme de tous les paiements. Les devis en attente
        sont les brouillons et devis validés pas encore facturés.
        """
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise NotFoundError("Client", client_id)

        invoices = self.db.query(Invoice).options(
            selectinload(Invoice.payments),
            selectinload(Invoice.devis)
        ).filter(Invoice.client_id == client_id).order_by(Invoice.created_at.desc()).all()

        pending = self.db.query(Devis).filter(
            Devis.client_id == client_id,
            Devis.status.in_([DevisStatus.DRAFT, DevisStatus.VALIDATED]),
            Devis.invoice_id.is_(None)
        ).order_by(Devis.created_at.desc()).all()

        invoice_rows = [
            BalanceInvoice(
                id=invoice.id,
                reference=invoice.reference,
                total_amount=invoice.total_amount,
                paid_amount=invoice.paid_amount,
                balance=invoice.balance,
                created_at=invoice.created_at,
                devis_count=len(invoice.devis),
                payments=[BalancePayment.model_validate(p) for p in invoice.payments]
            )
            for invoice in invoices
        ]

        total_invoiced = sum_money(invoice.total_amount for invoice in invoices)
        total_paid = sum_money(invoice.paid_amount for invoice in invoices)

        return ClientBalance(
            client_id=client.id,
            client_name=client.name,
            summary=BalanceSummary(
                total_invoiced=total_invoiced,
                total_paid=total_paid,
                outstanding_balance=total_invoiced - total_paid,
                pending_devis_total=sum_money(d.total_amount for d in pending)
            ),
            invoices=invoice_rows,
            pending_devis=[ClientDevisSummary.model_validate(d) for d in pending]
        )
