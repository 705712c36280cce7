from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    invoice_id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: Optional[str]
    reference: Optional[str]
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentDetail(PaymentOut):
    invoice_reference: str
    client_id: UUID
    client_name: str


class PaymentStats(BaseModel):
    invoice_id: UUID
    invoice_reference: str
    total_amount: Decimal
    total_paid: Decimal
    remaining: Decimal
    percent_paid: Decimal
    payment_count: int
    is_paid: bool
