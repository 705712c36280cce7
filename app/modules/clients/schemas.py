from pydantic import BaseModel, Field, EmailStr, field_validator
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.common.validators import validate_tunisia_phone, format_tunisia_phone
from app.modules.devis.models import DevisStatus


class ClientBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v is None or not v.strip():
            return None
        if not validate_tunisia_phone(v):
            raise ValueError("Numéro de téléphone tunisien invalide")
        return format_tunisia_phone(v)


class ClientCreate(ClientBase):
    pass


class ClientUpdate(ClientBase):
    name: Optional[str] = Field(None, min_length=1, max_length=200)


class ClientOut(BaseModel):
    id: UUID
    name: str
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClientListItem(ClientOut):
    devis_count: int = 0


class ClientDevisSummary(BaseModel):
    id: UUID
    reference: str
    status: DevisStatus
    total_amount: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class ClientDetail(ClientOut):
    devis: List[ClientDevisSummary] = []


# Balance
class BalancePayment(BaseModel):
    id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: Optional[str]
    reference: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class BalanceInvoice(BaseModel):
    id: UUID
    reference: str
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    created_at: datetime
    devis_count: int
    payments: List[BalancePayment]


class BalanceSummary(BaseModel):
    total_invoiced: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    pending_devis_total: Decimal


class ClientBalance(BaseModel):
    client_id: UUID
    client_name: str
    summary: BalanceSummary
    invoices: List[BalanceInvoice]
    pending_devis: List[ClientDevisSummary]
