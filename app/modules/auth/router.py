from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.service import AuthService
from app.modules.auth.dependencies import require_admin
from app.dependencies.userDependencies import user_dependency
from app.modules.auth.schemas import (
    LoginRequest, TokenResponse, UserOut, UserCreate, UserUpdate,
    AssignMachinesRequest, AuthContext
)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
users_router = APIRouter(prefix="/users", tags=["Users"])


@auth_router.post("/login", response_model=TokenResponse)
def login(credentials: LoginRequest, db: Session = Depends(get_db)):
    """
    Connexion par nom d'utilisateur et mot de passe.
    """
    user, token = AuthService(db).authenticate(credentials.username, credentials.password)
    return TokenResponse(access_token=token, user=UserOut.model_validate(user))


@auth_router.get("/me", response_model=UserOut)
def me(current_user: user_dependency):
    return current_user


@users_router.get("/", response_model=List[UserOut])
def list_users(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return AuthService(db).list_users()


@users_router.post("/", response_model=UserOut, status_code=201)
def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Créer un compte (admin ou employé) avec ses machines autorisées.
    """
    return AuthService(db).create_user(user_data, created_by=auth_context.user_id)


@users_router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: UUID,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return AuthService(db).update_user(user_id, user_data, updated_by=auth_context.user_id)


@users_router.put("/{user_id}/machines", response_model=UserOut)
def assign_machines(
    user_id: UUID,
    payload: AssignMachinesRequest,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    """
    Remplace la liste des machines que l'employé peut chiffrer.
    """
    return AuthService(db).assign_machines(user_id, payload.machines, updated_by=auth_context.user_id)


@users_router.delete("/{user_id}", response_model=UserOut)
def deactivate_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return AuthService(db).deactivate_user(user_id)
