"""
Dépendances d'authentification pour FastAPI.
"""
from typing import List
from uuid import UUID
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, selectinload
import jwt

from app.database.database import get_db
from app.common.exceptions import AuthorizationError
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import decode_access_token

# Security scheme
security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Utilisateur courant à partir du token JWT.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token invalide ou expiré",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(credentials.credentials)
        subject: str = payload.get("sub")
        if subject is None:
            raise credentials_exception
        user_id = UUID(subject)
    except (jwt.PyJWTError, ValueError):
        raise credentials_exception

    user = db.query(User).options(
        selectinload(User.allowed_machines)
    ).filter(User.id == user_id).first()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


def get_auth_context(user: User = Depends(get_current_user)) -> AuthContext:
    """
    Contexte d'identité transmis aux services: id, rôle et machines autorisées.
    Le rôle est relu en base à chaque requête.
    """
    return AuthContext(
        user_id=user.id,
        username=user.username,
        role=user.role,
        allowed_machines=user.machine_types
    )


def require_role(allowed_roles: List[UserRole]):
    """
    Dépendance exigeant un des rôles donnés.
    """
    def role_checker(auth_context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if auth_context.role not in allowed_roles:
            raise AuthorizationError(
                f"Rôle requis: {', '.join(role.value for role in allowed_roles)}"
            )
        return auth_context
    return role_checker


require_admin = require_role([UserRole.ADMIN])
require_staff = require_role([UserRole.ADMIN, UserRole.EMPLOYEE])
