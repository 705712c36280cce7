from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import SQLAlchemyError

from app.common.exceptions import AuthenticationError, NotFoundError, ValidationError
from app.modules.auth.models import User, UserMachine
from app.modules.auth.schemas import UserCreate, UserUpdate
from app.modules.auth.utils import hash_password, verify_password, create_access_token
from app.modules.machines.models import MachineType
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)


class AuthService:
    """
    Authentification et gestion des comptes (admin et opérateurs machine).
    """

    def __init__(self, db: Session):
        self.db = db

    def authenticate(self, username: str, password: str) -> Tuple[User, str]:
        """
        Vérifie les identifiants et émet un token d'accès.

        Returns:
            Tuple[User, str]: utilisateur connecté et token JWT
        """
        user = self._query().filter(User.username == username).first()

        # Même message pour un compte inconnu, inactif ou un mauvais mot de passe
        if not user or not user.is_active or not verify_password(password, user.password):
            logger.warning(f"Failed login attempt for '{username}'")
            raise AuthenticationError("Identifiants invalides")

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)

        token = create_access_token({
            "sub": str(user.id),
            "username": user.username,
            "role": user.role.value
        })
        logger.info(f"User {user.username} logged in")
        return user, token

    def get_user(self, user_id: UUID) -> User:
        user = self._query().filter(User.id == user_id).first()
        if not user:
            raise NotFoundError("Utilisateur", user_id)
        return user

    def list_users(self) -> List[User]:
        return self._query().order_by(User.created_at.desc()).all()

    def create_user(self, user_data: UserCreate, created_by: Optional[UUID] = None) -> User:
        existing_user = self.db.query(User).filter(User.username == user_data.username).first()
        if existing_user:
            raise ValidationError("Ce nom d'utilisateur existe déjà", field="username")

        user = User(
            username=user_data.username,
            password=hash_password(user_data.password),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            role=user_data.role,
            allowed_machines=[UserMachine(machine=m) for m in self._unique(user_data.allowed_machines)]
        )
        try:
            self.db.add(user)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error creating user {user_data.username}", exc_info=True)
            raise

        user = self.get_user(user.id)
        logger.info(f"User {user.username} created with role {user.role.value}")

        NotificationService(self.db).notify(
            NotificationType.EMPLOYEE_CREATED,
            "Nouvel employé",
            f"Compte {user.username} ({user.full_name}) créé",
            entity_type="user",
            entity_id=user.id,
            triggered_by_id=created_by
        )
        return user

    def update_user(self, user_id: UUID, user_data: UserUpdate, updated_by: Optional[UUID] = None) -> User:
        user = self.get_user(user_id)

        if user_data.first_name:
            user.first_name = user_data.first_name
        if user_data.last_name:
            user.last_name = user_data.last_name
        if user_data.role:
            user.role = user_data.role
        if user_data.password:
            user.password = hash_password(user_data.password)

        self.db.commit()
        user = self.get_user(user_id)

        NotificationService(self.db).notify(
            NotificationType.EMPLOYEE_UPDATED,
            "Employé modifié",
            f"Compte {user.username} mis à jour",
            entity_type="user",
            entity_id=user.id,
            triggered_by_id=updated_by
        )
        return user

    def assign_machines(
        self,
        user_id: UUID,
        machines: List[MachineType],
        updated_by: Optional[UUID] = None
    ) -> User:
        """Remplace l'ensemble des machines autorisées de l'utilisateur"""
        user = self.get_user(user_id)

        try:
            user.allowed_machines.clear()
            # Les anciennes affectations doivent être supprimées avant de réinsérer la même machine
            self.db.flush()
            user.allowed_machines.extend(UserMachine(machine=m) for m in self._unique(machines))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error assigning machines to user {user_id}", exc_info=True)
            raise

        user = self.get_user(user_id)
        logger.info(
            f"Machines for {user.username}: {', '.join(m.value for m in user.machine_types) or 'none'}"
        )

        NotificationService(self.db).notify(
            NotificationType.EMPLOYEE_UPDATED,
            "Machines attribuées",
            f"Machines de {user.username} mises à jour",
            entity_type="user",
            entity_id=user.id,
            triggered_by_id=updated_by
        )
        return user

    def deactivate_user(self, user_id: UUID) -> User:
        user = self.get_user(user_id)
        user.is_active = False
        self.db.commit()
        logger.info(f"User {user.username} deactivated")
        return self.get_user(user_id)

    def _query(self):
        return self.db.query(User).options(selectinload(User.allowed_machines))

    @staticmethod
    def _unique(machines: List[MachineType]) -> List[MachineType]:
        return list(dict.fromkeys(machines))
