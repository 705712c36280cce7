from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID
import datetime as dt


class ExpenseCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal
    category: str = Field(..., min_length=1, max_length=100)
    date: Optional[dt.date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    date: Optional[dt.date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ExpenseFilters(BaseModel):
    category: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None


class ExpenseOut(BaseModel):
    id: UUID
    description: str
    amount: Decimal
    category: str
    date: dt.date
    reference: Optional[str]
    notes: Optional[str]
    created_by_id: UUID
    created_at: dt.datetime

    class Config:
        from_attributes = True


class ExpenseStats(BaseModel):
    total_amount: Decimal
    count: int
    by_category: Dict[str, Decimal]
