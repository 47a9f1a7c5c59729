"""
Core Expense Models

These models define the schemas for expense records flowing through the system.

DESIGN DECISION: Expense records are owned by the storage layer. Everything
else (matching, summaries, the UI) consumes them read-only. Amounts are
Decimal so that sums of currency values compare exactly.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD_AND_DINING = "Food & Dining"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    BILLS_AND_UTILITIES = "Bills & Utilities"
    HEALTHCARE = "Healthcare"
    TRAVEL = "Travel"
    EDUCATION = "Education"
    BUSINESS = "Business"
    OTHER = "Other"


class ExpenseStatusFilter(str, Enum):
    """Which expenses a listing shows."""
    ALL = "all"
    PENDING = "pending"
    REIMBURSED = "reimbursed"

    @property
    def reimbursed_filter(self) -> Optional[bool]:
        """Value for the storage `reimbursed` filter (None = no filter)."""
        if self is ExpenseStatusFilter.ALL:
            return None
        return self is ExpenseStatusFilter.REIMBURSED


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(BaseModel):
    """
    A single expense record.

    The amount carries no sign constraint: refunds recorded as negative
    amounts and zero-value entries are accepted and take part in
    reimbursement sums like any other amount.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique, stable expense identifier"
    )
    description: str = Field(
        default="",
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        description="Amount spent, in major currency units"
    )
    date: dt.date = Field(
        ...,
        description="Day the expense was incurred"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER,
        description="Expense category"
    )
    reimbursed: bool = Field(
        default=False,
        description="Has this expense been paid back?"
    )
    user_id: str = Field(
        default="",
        description="Owner of the expense"
    )
    created_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )
    updated_at: dt.datetime = Field(
        default_factory=dt.datetime.utcnow
    )


class ExpenseDraft(BaseModel):
    """
    User-entered data for a new or edited expense.

    The ledger flow assigns the identifier and timestamps.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
    )
    date: dt.date
    category: ExpenseCategory = ExpenseCategory.OTHER
    reimbursed: bool = False


# =============================================================================
# SUMMARY MODELS
# =============================================================================

class ExpenseTotals(BaseModel):
    """Totals over a set of expenses."""

    total: Decimal = Decimal("0")
    reimbursed: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")


class MonthlyGroup(BaseModel):
    """Expenses incurred in one calendar month, with their totals."""

    month_year: str = Field(
        ...,
        description="Month label, e.g. 'January 2025'"
    )
    expenses: list[Expense] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    reimbursed: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in user input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_numeric', 'not_positive')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )
