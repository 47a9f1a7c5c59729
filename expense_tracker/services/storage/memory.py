"""
In-Memory Storage Implementation

Used by the test-suite and as the fallback when Google Sheets is not
configured. Data lives for the lifetime of the process only.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from expense_tracker.models.audit import AuditEvent
from expense_tracker.models.expense import Expense, ExpenseCategory
from expense_tracker.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
)


class InMemoryExpenseStorage(ExpenseStorageInterface):
    """Dictionary-backed expense storage."""

    def __init__(self, expenses: Optional[list[Expense]] = None):
        self._expenses: dict[str, Expense] = {}
        for expense in expenses or []:
            self._expenses[expense.id] = expense.model_copy()

    async def save_expense(self, expense: Expense) -> bool:
        if expense.id in self._expenses:
            raise DuplicateError(f"Expense already exists: {expense.id}")
        self._expenses[expense.id] = expense.model_copy()
        return True

    async def get_expense_by_id(self, expense_id: str) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return expense.model_copy() if expense else None

    async def update_expense(self, expense: Expense) -> bool:
        if expense.id not in self._expenses:
            raise NotFoundError(f"Expense not found: {expense.id}")
        self._expenses[expense.id] = expense.model_copy(
            update={"updated_at": datetime.utcnow()}
        )
        return True

    async def delete_expense(self, expense_id: str) -> bool:
        return self._expenses.pop(expense_id, None) is not None

    async def list_expenses(
        self,
        user_id: str,
        reimbursed: Optional[bool] = None,
        category: Optional[ExpenseCategory] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Expense]:
        expenses = []
        for expense in self._expenses.values():
            if expense.user_id != user_id:
                continue
            if reimbursed is not None and expense.reimbursed != reimbursed:
                continue
            if category and expense.category != category:
                continue
            if date_from and expense.date < date_from:
                continue
            if date_to and expense.date > date_to:
                continue
            expenses.append(expense.model_copy())

        # Newest first
        expenses.sort(key=lambda e: e.date, reverse=True)
        return expenses

    async def mark_reimbursed(self, expense_id: str) -> bool:
        expense = self._expenses.get(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        if not expense.reimbursed:
            self._expenses[expense_id] = expense.model_copy(
                update={"reimbursed": True, "updated_at": datetime.utcnow()}
            )
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
