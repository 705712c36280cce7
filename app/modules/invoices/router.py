from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin
from app.modules.auth.schemas import AuthContext
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    InvoiceFromDevisCreate, InvoiceDirectCreate, InvoiceOut, InvoiceDetail
)

invoices_router = APIRouter(prefix="/invoices", tags=["Invoices"])


@invoices_router.get("/", response_model=List[InvoiceOut])
def list_invoices(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return InvoiceService(db).get_all()


@invoices_router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Facture avec ses lignes, ses devis et ses paiements"""
    return InvoiceService(db).get_by_id(invoice_id)


@invoices_router.post("/from-devis", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice_from_devis(
    data: InvoiceFromDevisCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Facture regroupant des devis validés d'un même client.

    Échoue sans rien modifier si un devis est introuvable, non validé,
    déjà facturé ou appartient à un autre client.
    """
    return InvoiceService(db).create_from_devis(data.devis_ids, auth_context, data.notes)


@invoices_router.post("/from-devis/{devis_id}", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice_from_single_devis(
    devis_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return InvoiceService(db).create_from_devis([devis_id], auth_context)


@invoices_router.post("/direct", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_direct_invoice(
    data: InvoiceDirectCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return InvoiceService(db).create_direct(data, auth_context)


@invoices_router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Refusé si la facture a des paiements; les devis liés redeviennent validés"""
    InvoiceService(db).delete(invoice_id)
