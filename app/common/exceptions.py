"""
Exceptions métier typées.

Les services ne lèvent jamais d'HTTPException: ils lèvent une de ces erreurs,
et app.main les traduit en réponse HTTP (status_code + code + détails).

    AppError (base)
    |
    +-- NotFoundError        NOT_FOUND         404  identifiant inconnu
    +-- ValidationError      VALIDATION_ERROR  400  entrée invalide / règle métier violée
    +-- StateConflictError   STATE_CONFLICT    409  opération interdite dans l'état courant
    +-- AuthorizationError   FORBIDDEN         403  rôle ou machine non autorisé
    +-- AuthenticationError  UNAUTHORIZED      401  identifiants invalides
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base de toutes les erreurs métier récupérables."""

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None, message: Optional[str] = None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity} introuvable",
            {"entity": entity, "id": str(entity_id) if entity_id is not None else None},
        )


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.field = field
        payload = dict(details or {})
        if field:
            payload["field"] = field
        super().__init__(message, payload)


class StateConflictError(AppError):
    code = "STATE_CONFLICT"
    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        self.current_status = current_status
        super().__init__(message, {"current_status": current_status} if current_status else None)


class AuthorizationError(AppError):
    code = "FORBIDDEN"
    status_code = 403


class AuthenticationError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401
