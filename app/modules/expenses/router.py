from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import date

from app.database.database import get_db
from app.modules.auth.dependencies import require_admin
from app.modules.auth.schemas import AuthContext
from app.modules.expenses.service import ExpenseService
from app.modules.expenses.schemas import (
    ExpenseCreate, ExpenseUpdate, ExpenseOut, ExpenseFilters, ExpenseStats
)

expenses_router = APIRouter(prefix="/expenses", tags=["Expenses"])


@expenses_router.get("/", response_model=List[ExpenseOut])
def list_expenses(
    category: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    filters = ExpenseFilters(category=category, start_date=start_date, end_date=end_date)
    return ExpenseService(db).get_all(filters)


@expenses_router.get("/stats", response_model=ExpenseStats)
def get_expense_stats(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ExpenseService(db).get_stats(start_date, end_date)


@expenses_router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ExpenseService(db).get_by_id(expense_id)


@expenses_router.post("/", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_data: ExpenseCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ExpenseService(db).create(expense_data, auth_context)


@expenses_router.put("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: UUID,
    expense_data: ExpenseUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    return ExpenseService(db).update(expense_id, expense_data)


@expenses_router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin)
):
    ExpenseService(db).delete(expense_id, auth_context)
