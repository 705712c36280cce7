from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin, require_staff
from app.modules.auth.schemas import AuthContext
from app.modules.devis.models import DevisStatus
from app.modules.devis.service import DevisService
from app.modules.devis.schemas import (
    CalculationInput, CalculationResult, DevisCreate, DevisFilters, DevisNotesUpdate,
    DevisLineCreate, DevisServiceCreate, DevisServiceOut, DevisListItem, DevisDetail,
    DevisLineOut, AddLineResult
)

devis_router = APIRouter(prefix="/devis", tags=["Devis"])


@devis_router.get("/", response_model=List[DevisListItem])
def list_devis(
    client_id: Optional[UUID] = Query(None),
    status: Optional[DevisStatus] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    """
    Liste des devis, filtrable par client, statut et période de création.
    Un employé ne voit que ses propres devis.
    """
    filters = DevisFilters(client_id=client_id, status=status, date_from=date_from, date_to=date_to)
    return DevisService(db).get_all(auth_context, filters)


@devis_router.post("/calculate", response_model=CalculationResult)
def calculate_line(
    data: CalculationInput,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    """Aperçu du prix d'une ligne avant de l'ajouter"""
    return DevisService(db).calculate(data)


@devis_router.get("/{devis_id}", response_model=DevisDetail)
def get_devis(
    devis_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).get_by_id(devis_id, auth_context)


@devis_router.post("/", response_model=DevisDetail, status_code=status.HTTP_201_CREATED)
def create_devis(
    data: DevisCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).create(data, auth_context)


@devis_router.post("/{devis_id}/lines", response_model=AddLineResult, status_code=status.HTTP_201_CREATED)
def add_line(
    devis_id: UUID,
    data: DevisLineCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    line, calculation, total = DevisService(db).add_line(devis_id, data, auth_context)
    return AddLineResult(
        line=DevisLineOut.model_validate(line),
        calculation=calculation,
        devis_total=total
    )


@devis_router.delete("/{devis_id}/lines/{line_id}", response_model=DevisDetail)
def remove_line(
    devis_id: UUID,
    line_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).remove_line(devis_id, line_id, auth_context)


@devis_router.post("/{devis_id}/services", response_model=DevisServiceOut, status_code=status.HTTP_201_CREATED)
def add_service(
    devis_id: UUID,
    data: DevisServiceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).add_service(devis_id, data, auth_context)


@devis_router.delete("/{devis_id}/services/{devis_service_id}", response_model=DevisDetail)
def remove_service(
    devis_id: UUID,
    devis_service_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).remove_service(devis_id, devis_service_id, auth_context)


@devis_router.patch("/{devis_id}/notes", response_model=DevisDetail)
def update_notes(
    devis_id: UUID,
    data: DevisNotesUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return DevisService(db).update_notes(devis_id, data.notes, auth_context)


@devis_router.post("/{devis_id}/validate", response_model=DevisDetail)
def validate_devis(
    devis_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Brouillon -> validé. Le devis doit contenir au moins une ligne."""
    return DevisService(db).validate(devis_id, auth_context)


@devis_router.post("/{devis_id}/cancel", response_model=DevisDetail)
def cancel_devis(
    devis_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Annulation, impossible une fois le devis facturé"""
    return DevisService(db).cancel(devis_id, auth_context)


@devis_router.delete("/{devis_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_devis(
    devis_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    DevisService(db).delete(devis_id, auth_context)
