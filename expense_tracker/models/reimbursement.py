"""
Reimbursement Matching Models

Matches are ephemeral: they exist for the duration of one search and are
never persisted. The only thing that reaches storage is the list of expense
ids the user chose to mark as reimbursed.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from expense_tracker.models.expense import Expense, ValidationIssue


class MatchLimits(BaseModel):
    """
    Bounds on the combination search.

    These are the only mechanism keeping worst-case latency in check
    (e.g. fifty expenses sharing a single amount).
    """
    model_config = ConfigDict(frozen=True)

    max_total_matches: int = Field(default=100, ge=1)
    max_combinations_per_amount: int = Field(default=20, ge=1)
    max_combination_size: int = Field(default=10, ge=1)
    exact_match_epsilon: Decimal = Field(default=Decimal("0.001"), gt=0)


class ReimbursementMatch(BaseModel):
    """
    A combination of pending expenses whose total is close to a target.

    CRITICAL: An expense never appears twice in the same match.
    """

    expenses: list[Expense] = Field(
        ...,
        min_length=1,
        description="Expenses making up this match, oldest first"
    )
    total: Decimal = Field(
        ...,
        description="Sum of the expense amounts"
    )
    exact_match: bool = Field(
        ...,
        description="Does the total equal the target (within a currency epsilon)?"
    )

    @model_validator(mode='after')
    def validate_unique_expenses(self) -> 'ReimbursementMatch':
        """Reject matches that reuse an expense."""
        ids = self.expense_ids
        if len(set(ids)) != len(ids):
            raise ValueError("A match cannot contain the same expense twice")
        return self

    @property
    def expense_ids(self) -> list[str]:
        return [expense.id for expense in self.expenses]

    @property
    def id_key(self) -> frozenset[str]:
        """Identity of the match for deduplication (order does not matter)."""
        return frozenset(self.expense_ids)

    def difference_from(self, target_amount: Decimal) -> Decimal:
        """Signed difference between this match's total and a target."""
        return self.total - target_amount


class MatchSearchResult(BaseModel):
    """Ranked output of one reimbursement search."""

    matches: list[ReimbursementMatch] = Field(default_factory=list)
    target_amount: Decimal
    tolerance: Decimal
    candidate_count: int = Field(
        default=0,
        ge=0,
        description="Number of pending expenses the search considered"
    )
    limit_reached: bool = Field(
        default=False,
        description="Did a search bound cut the results short?"
    )

    @property
    def has_matches(self) -> bool:
        return len(self.matches) > 0

    @property
    def exact_matches(self) -> list[ReimbursementMatch]:
        return [match for match in self.matches if match.exact_match]


class ReimbursementRequest(BaseModel):
    """A validated request to look for reimbursement matches."""

    target_amount: Decimal = Field(
        ...,
        gt=0,
        description="Reimbursement total the user is trying to account for"
    )
    tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum allowed difference from the target"
    )


class SearchStatus(str, Enum):
    """
    Outcome of a reimbursement search.

    Finding nothing is a normal outcome, not an error.
    """
    MATCHES_FOUND = "matches_found"
    NO_MATCH = "no_match"
    INVALID_TARGET = "invalid_target"


class ReimbursementSearchOutcome(BaseModel):
    """What the user sees after asking for reimbursement matches."""

    status: SearchStatus
    message: str
    request: Optional[ReimbursementRequest] = None
    result: Optional[MatchSearchResult] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def matches(self) -> list[ReimbursementMatch]:
        return self.result.matches if self.result else []


class MarkReimbursedResult(BaseModel):
    """
    Result of marking a chosen match's expenses as reimbursed.

    Each expense is updated independently, so a batch can partially fail.
    Retry and rollback are left to the caller.
    """

    succeeded_ids: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(
        default_factory=dict,
        description="Expense id -> error message for updates that failed"
    )

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    @property
    def partially_succeeded(self) -> bool:
        return bool(self.failed) and bool(self.succeeded_ids)

    @property
    def failed_ids(self) -> list[str]:
        return list(self.failed)
