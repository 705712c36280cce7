from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin
from app.modules.auth.schemas import AuthContext
from app.modules.payments.service import PaymentService
from app.modules.payments.schemas import (
    PaymentCreate, PaymentUpdate, PaymentOut, PaymentDetail, PaymentStats
)

payments_router = APIRouter(prefix="/payments", tags=["Payments"])


@payments_router.post("/invoice/{invoice_id}", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def create_payment(
    invoice_id: UUID,
    payment_data: PaymentCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Enregistrer un paiement. Refusé s'il dépasse le solde restant de la facture.
    """
    return PaymentService(db).create(invoice_id, payment_data, auth_context)


@payments_router.get("/invoice/{invoice_id}", response_model=List[PaymentOut])
def list_invoice_payments(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return PaymentService(db).get_by_invoice(invoice_id)


@payments_router.get("/invoice/{invoice_id}/stats", response_model=PaymentStats)
def get_payment_stats(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Total, encaissé, restant, pourcentage payé et statut soldé"""
    return PaymentService(db).get_payment_stats(invoice_id)


@payments_router.get("/{payment_id}", response_model=PaymentDetail)
def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return PaymentService(db).get_detail(payment_id)


@payments_router.put("/{payment_id}", response_model=PaymentOut)
def update_payment(
    payment_id: UUID,
    payment_data: PaymentUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return PaymentService(db).update(payment_id, payment_data)


@payments_router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    PaymentService(db).delete(payment_id)
