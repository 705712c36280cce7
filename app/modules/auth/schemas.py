from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.modules.auth.models import UserRole
from app.modules.machines.models import MachineType


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    id: UUID
    username: str
    first_name: str
    last_name: str
    role: UserRole
    is_active: bool
    allowed_machines: List[MachineType] = Field(default_factory=list, validation_alias="machine_types")
    last_login: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.EMPLOYEE
    allowed_machines: List[MachineType] = Field(default_factory=list)


class UserUpdate(BaseModel):
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[UserRole] = None


class AssignMachinesRequest(BaseModel):
    machines: List[MachineType]


class AuthContext(BaseModel):
    """Identité et droits de l'appelant, résolus à chaque requête"""
    user_id: UUID
    username: str
    role: UserRole
    allowed_machines: List[MachineType] = []

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_use_machine(self, machine_type: MachineType) -> bool:
        return self.is_admin or machine_type in self.allowed_machines
