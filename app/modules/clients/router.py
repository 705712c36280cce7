from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin, require_staff
from app.modules.auth.schemas import AuthContext
from app.modules.clients.service import ClientService
from app.modules.clients.schemas import (
    ClientCreate, ClientUpdate, ClientOut, ClientListItem, ClientDetail, ClientBalance
)

clients_router = APIRouter(prefix="/clients", tags=["Clients"])


@clients_router.get("/", response_model=List[ClientListItem])
def list_clients(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return ClientService(db).get_all()


@clients_router.get("/search", response_model=List[ClientOut])
def search_clients(
    q: str = Query(..., min_length=1, description="Nom, téléphone ou email"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    return ClientService(db).search(q)


@clients_router.get("/{client_id}", response_model=ClientDetail)
def get_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_staff)
):
    """Fiche client avec l'historique de ses devis"""
    return ClientService(db).get_by_id(client_id)


@clients_router.get("/{client_id}/balance", response_model=ClientBalance)
def get_client_balance(
    client_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Situation financière: factures, paiements, solde restant
    et devis non encore facturés.
    """
    return ClientService(db).get_client_balance(client_id)


@clients_router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    client_data: ClientCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ClientService(db).create(client_data, created_by=auth_context.user_id)


@clients_router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: UUID,
    client_data: ClientUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ClientService(db).update(client_id, client_data, updated_by=auth_context.user_id)


@clients_router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """Refusé tant que le client a des devis ou des factures"""
    ClientService(db).delete(client_id, deleted_by=auth_context.user_id)
