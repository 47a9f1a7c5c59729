"""
Data Models Package

This package contains all Pydantic models used in the expense tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseDraft,
    ExpenseStatusFilter,
    ExpenseTotals,
    MonthlyGroup,
    ValidationIssue,
)
from expense_tracker.models.reimbursement import (
    MarkReimbursedResult,
    MatchLimits,
    MatchSearchResult,
    ReimbursementMatch,
    ReimbursementRequest,
    ReimbursementSearchOutcome,
    SearchStatus,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "Expense",
    "ExpenseCategory",
    "ExpenseDraft",
    "ExpenseStatusFilter",
    "ExpenseTotals",
    "MonthlyGroup",
    "ValidationIssue",
    # Reimbursement models
    "MarkReimbursedResult",
    "MatchLimits",
    "MatchSearchResult",
    "ReimbursementMatch",
    "ReimbursementRequest",
    "ReimbursementSearchOutcome",
    "SearchStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
