from pydantic import BaseModel, Field
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.modules.devis.models import DevisStatus
from app.modules.machines.models import MachineType


# Calculation
class CalculationInput(BaseModel):
    machine_type: MachineType
    minutes: Optional[Decimal] = None
    meters: Optional[Decimal] = None
    quantity: Optional[Decimal] = None
    material_id: Optional[UUID] = None


class CalculationResult(BaseModel):
    machine_type: MachineType
    unit_price: Decimal
    material_cost: Decimal
    line_total: Decimal
    breakdown: str


# Devis
class DevisCreate(BaseModel):
    client_id: UUID
    notes: Optional[str] = None


class DevisNotesUpdate(BaseModel):
    notes: Optional[str] = None


class DevisLineCreate(CalculationInput):
    description: Optional[str] = None


class DevisServiceCreate(BaseModel):
    service_id: UUID


class DevisFilters(BaseModel):
    client_id: Optional[UUID] = None
    status: Optional[DevisStatus] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class DevisLineOut(BaseModel):
    id: UUID
    machine_type: MachineType
    description: Optional[str]
    minutes: Optional[Decimal]
    meters: Optional[Decimal]
    quantity: Optional[Decimal]
    material_id: Optional[UUID]
    unit_price: Decimal
    material_cost: Decimal
    line_total: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class DevisServiceOut(BaseModel):
    id: UUID
    service_id: UUID
    service_name: Optional[str]
    price: Decimal

    class Config:
        from_attributes = True


class ClientRef(BaseModel):
    id: UUID
    name: str
    phone: Optional[str]

    class Config:
        from_attributes = True


class UserRef(BaseModel):
    id: UUID
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class DevisOut(BaseModel):
    id: UUID
    reference: str
    client_id: UUID
    created_by_id: UUID
    status: DevisStatus
    notes: Optional[str]
    total_amount: Decimal
    validated_at: Optional[datetime]
    invoice_id: Optional[UUID]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DevisListItem(DevisOut):
    client: ClientRef
    created_by: UserRef
    invoice_reference: Optional[str] = None
    line_count: int
    service_count: int


class DevisDetail(DevisOut):
    client: ClientRef
    created_by: UserRef
    invoice_reference: Optional[str] = None
    lines: List[DevisLineOut] = []
    services: List[DevisServiceOut] = []


class AddLineResult(BaseModel):
    line: DevisLineOut
    calculation: CalculationResult
    devis_total: Decimal
