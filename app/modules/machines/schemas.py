from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.modules.machines.models import MachineType


# Machine pricing
class MachinePricingUpdate(BaseModel):
    price_per_unit: Decimal = Field(..., gt=0, description="Prix unitaire (minute, mètre ou unité)")
    description: Optional[str] = Field(None, max_length=200)


class MachinePricingOut(BaseModel):
    id: UUID
    machine_type: MachineType
    price_per_unit: Decimal
    description: Optional[str]
    updated_at: datetime

    class Config:
        from_attributes = True


# Materials
class MaterialCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    price_per_unit: Decimal = Field(..., ge=0)
    unit: str = Field(..., min_length=1, max_length=30)
    description: Optional[str] = None


class MaterialUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    price_per_unit: Optional[Decimal] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1, max_length=30)
    description: Optional[str] = None


class MaterialOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    price_per_unit: Decimal
    unit: str
    is_active: bool

    class Config:
        from_attributes = True


# Fixed services
class FixedServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    price: Decimal = Field(..., ge=0)
    description: Optional[str] = None


class FixedServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    price: Optional[Decimal] = Field(None, ge=0)
    description: Optional[str] = None


class FixedServiceOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    price: Decimal
    is_active: bool

    class Config:
        from_attributes = True
