"""
Encaissements sur facture.

La somme des paiements d'une facture ne dépasse jamais son total: le
plafond est vérifié sous verrou de la facture, à la création comme à la
modification (en excluant le paiement modifié).
"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List
from uuid import UUID
import logging

from sqlalchemy.orm import Session, joinedload
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.common.exceptions import AppError, NotFoundError, ValidationError
from app.common.money import ZERO, round_money, sum_money, format_amount
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.models import Invoice, Payment
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService
from app.modules.payments.schemas import PaymentCreate, PaymentUpdate, PaymentStats, PaymentDetail

logger = logging.getLogger(__name__)


class PaymentService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, invoice_id: UUID, payment_data: PaymentCreate, auth: AuthContext) -> Payment:
        """Enregistre un paiement dans la limite du solde restant"""
        amount = self._positive_amount(payment_data.amount)

        try:
            invoice = self._lock_invoice(invoice_id)

            remaining = round_money(invoice.total_amount) - sum_money(p.amount for p in invoice.payments)
            if amount > remaining:
                raise ValidationError(
                    f"Le montant du paiement ({format_amount(amount)}) dépasse "
                    f"le solde restant ({format_amount(remaining)})",
                    field="amount",
                    details={"amount": str(amount), "remaining": str(remaining)}
                )

            payment = Payment(
                invoice_id=invoice.id,
                amount=amount,
                payment_date=payment_data.payment_date or datetime.now(timezone.utc),
                payment_method=payment_data.payment_method,
                reference=payment_data.reference,
                notes=payment_data.notes
            )
            self.db.add(payment)
            self.db.commit()

        except AppError as e:
            self.db.rollback()
            logger.warning(f"Payment refused on invoice {invoice_id}: {e.message}")
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error recording payment on invoice {invoice_id}", exc_info=True)
            raise

        self.db.refresh(payment)
        logger.info(f"Payment of {payment.amount} recorded on invoice {invoice_id}")

        NotificationService(self.db).notify(
            NotificationType.PAYMENT_RECEIVED,
            "Paiement reçu",
            f"Paiement de {format_amount(payment.amount)} {settings.CURRENCY} "
            f"sur la facture {payment.invoice.reference}",
            entity_type="payment",
            entity_id=payment.id,
            triggered_by_id=auth.user_id
        )
        return payment

    def get_by_invoice(self, invoice_id: UUID) -> List[Payment]:
        if not self.db.query(Invoice.id).filter(Invoice.id == invoice_id).first():
            raise NotFoundError("Facture", invoice_id)
        return self.db.query(Payment).filter(
            Payment.invoice_id == invoice_id
        ).order_by(Payment.payment_date.desc()).all()

    def get_by_id(self, payment_id: UUID) -> Payment:
        payment = self.db.query(Payment).options(
            joinedload(Payment.invoice).joinedload(Invoice.client)
        ).filter(Payment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Paiement", payment_id)
        return payment

    def get_detail(self, payment_id: UUID) -> PaymentDetail:
        payment = self.get_by_id(payment_id)
        return PaymentDetail(
            id=payment.id,
            invoice_id=payment.invoice_id,
            amount=payment.amount,
            payment_date=payment.payment_date,
            payment_method=payment.payment_method,
            reference=payment.reference,
            notes=payment.notes,
            created_at=payment.created_at,
            invoice_reference=payment.invoice.reference,
            client_id=payment.invoice.client_id,
            client_name=payment.invoice.client.name
        )

    def update(self, payment_id: UUID, payment_data: PaymentUpdate) -> Payment:
        """Modifie un paiement; le nouveau montant est plafonné par les autres paiements"""
        update_data = payment_data.model_dump(exclude_unset=True)

        try:
            payment = self.get_by_id(payment_id)
            invoice = self._lock_invoice(payment.invoice_id)

            if update_data.get("amount") is not None:
                amount = self._positive_amount(update_data["amount"])
                others = sum_money(p.amount for p in invoice.payments if p.id != payment.id)
                max_allowed = round_money(invoice.total_amount) - others
                if amount > max_allowed:
                    raise ValidationError(
                        f"Le montant du paiement ({format_amount(amount)}) dépasse "
                        f"le maximum autorisé ({format_amount(max_allowed)})",
                        field="amount",
                        details={"amount": str(amount), "max_allowed": str(max_allowed)}
                    )
                update_data["amount"] = amount
            else:
                update_data.pop("amount", None)

            if "payment_date" in update_data and update_data["payment_date"] is None:
                del update_data["payment_date"]

            for field, value in update_data.items():
                setattr(payment, field, value)
            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error updating payment {payment_id}", exc_info=True)
            raise

        self.db.refresh(payment)
        logger.info(f"Payment {payment_id} updated")
        return payment

    def delete(self, payment_id: UUID) -> None:
        payment = self.get_by_id(payment_id)
        self.db.delete(payment)
        self.db.commit()
        logger.info(f"Payment {payment_id} deleted")

    def get_payment_stats(self, invoice_id: UUID) -> PaymentStats:
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Facture", invoice_id)

        total_amount = round_money(invoice.total_amount)
        total_paid = sum_money(p.amount for p in invoice.payments)
        remaining = total_amount - total_paid

        if total_amount > ZERO:
            percent_paid = (total_paid / total_amount * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        else:
            percent_paid = ZERO

        return PaymentStats(
            invoice_id=invoice.id,
            invoice_reference=invoice.reference,
            total_amount=total_amount,
            total_paid=total_paid,
            remaining=remaining,
            percent_paid=percent_paid,
            payment_count=len(invoice.payments),
            is_paid=remaining == ZERO and total_amount > ZERO
        )

    def _lock_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).filter(
            Invoice.id == invoice_id
        ).with_for_update().populate_existing().first()
        if not invoice:
            raise NotFoundError("Facture", invoice_id)
        return invoice

    @staticmethod
    def _positive_amount(value) -> Decimal:
        amount = round_money(value) if value is not None else None
        if amount is None or amount <= ZERO:
            raise ValidationError("Le montant du paiement doit être supérieur à 0", field="amount")
        return amount
