from sqlalchemy.orm import Session
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.common.exceptions import NotFoundError, ValidationError
from app.common.money import ZERO, round_money, sum_money, format_amount
from app.modules.auth.schemas import AuthContext
from app.modules.expenses.models import Expense
from app.modules.expenses.schemas import ExpenseCreate, ExpenseUpdate, ExpenseFilters, ExpenseStats
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self, filters: Optional[ExpenseFilters] = None) -> List[Expense]:
        filters = filters or ExpenseFilters()
        query = self._filtered(filters.start_date, filters.end_date)
        if filters.category:
            query = query.filter(Expense.category == filters.category)
        return query.order_by(Expense.date.desc(), Expense.created_at.desc()).all()

    def get_by_id(self, expense_id: UUID) -> Expense:
        expense = self.db.query(Expense).filter(Expense.id == expense_id).first()
        if not expense:
            raise NotFoundError("Dépense", expense_id)
        return expense

    def create(self, expense_data: ExpenseCreate, auth: AuthContext) -> Expense:
        expense = Expense(
            description=expense_data.description,
            amount=self._positive_amount(expense_data.amount),
            category=expense_data.category,
            date=expense_data.date or date.today(),
            reference=expense_data.reference,
            notes=expense_data.notes,
            created_by_id=auth.user_id
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        logger.info(f"Expense '{expense.description}' of {expense.amount} recorded")

        NotificationService(self.db).notify(
            NotificationType.EXPENSE_CREATED,
            "Nouvelle dépense",
            f"Dépense \"{expense.description}\" de {format_amount(expense.amount)} {settings.CURRENCY} ajoutée",
            entity_type="expense",
            entity_id=expense.id,
            triggered_by_id=auth.user_id
        )
        return expense

    def update(self, expense_id: UUID, expense_data: ExpenseUpdate) -> Expense:
        expense = self.get_by_id(expense_id)

        update_data = expense_data.model_dump(exclude_unset=True)
        if update_data.get("amount") is not None:
            update_data["amount"] = self._positive_amount(update_data["amount"])

        for field, value in update_data.items():
            # Seules les informations facultatives peuvent être effacées
            if value is None and field not in ("reference", "notes"):
                continue
            setattr(expense, field, value)

        self.db.commit()
        self.db.refresh(expense)
        return expense

    def delete(self, expense_id: UUID, auth: AuthContext) -> None:
        expense = self.get_by_id(expense_id)
        description, amount = expense.description, expense.amount
        self.db.delete(expense)
        self.db.commit()
        logger.info(f"Expense '{description}' deleted")

        NotificationService(self.db).notify(
            NotificationType.EXPENSE_DELETED,
            "Dépense supprimée",
            f"Dépense \"{description}\" de {format_amount(amount)} {settings.CURRENCY} supprimée",
            entity_type="expense",
            entity_id=expense_id,
            triggered_by_id=auth.user_id
        )

    def get_stats(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> ExpenseStats:
        """Total et répartition par catégorie sur la période"""
        rows = self._filtered(start_date, end_date).with_entities(Expense.category, Expense.amount).all()

        by_category = defaultdict(lambda: ZERO)
        for category, amount in rows:
            by_category[category] += round_money(amount)

        return ExpenseStats(
            total_amount=sum_money(amount for _, amount in rows),
            count=len(rows),
            by_category=dict(by_category)
        )

    def _filtered(self, start_date: Optional[date], end_date: Optional[date]):
        query = self.db.query(Expense)
        if start_date:
            query = query.filter(Expense.date >= start_date)
        if end_date:
            query = query.filter(Expense.date <= end_date)
        return query

    @staticmethod
    def _positive_amount(value) -> Decimal:
        amount = round_money(value) if value is not None else None
        if amount is None or amount <= ZERO:
            raise ValidationError("Le montant doit être supérieur à 0", field="amount")
        return amount
