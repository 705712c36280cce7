from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.modules.devis.models import DevisStatus


class InvoiceFromDevisCreate(BaseModel):
    devis_ids: List[UUID] = Field(..., min_length=1)
    notes: Optional[str] = None


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class InvoiceDirectCreate(BaseModel):
    client_id: UUID
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None


class InvoiceItemOut(BaseModel):
    id: UUID
    description: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class InvoiceDevisRef(BaseModel):
    id: UUID
    reference: str
    status: DevisStatus
    total_amount: Decimal

    class Config:
        from_attributes = True


class InvoiceClientRef(BaseModel):
    id: UUID
    name: str

    class Config:
        from_attributes = True


class InvoicePaymentOut(BaseModel):
    id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: Optional[str]
    reference: Optional[str]
    notes: Optional[str]

    class Config:
        from_attributes = True


class InvoiceOut(BaseModel):
    id: UUID
    reference: str
    client_id: UUID
    client: InvoiceClientRef
    total_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    is_paid: bool
    notes: Optional[str]
    devis: List[InvoiceDevisRef] = []
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    items: List[InvoiceItemOut] = []
    payments: List[InvoicePaymentOut] = []
