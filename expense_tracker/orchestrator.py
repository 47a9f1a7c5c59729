"""
Main Orchestrator for Expense Tracker

This module ties together all the components and defines the
end-to-end flows for:
1. Reimbursement search (amount → validate → load pending → match → respond)
2. Settling a match (chosen match → mark each expense reimbursed)
3. Ledger upkeep (add, edit, copy, delete and toggle expenses; summaries)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The matching engine only ever sees validated input
- Nothing is marked reimbursed without the user choosing a match
- Every step is audited

The matching engine is pure and never touches storage. Everything with a
side effect lives here.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.audit import AuditLogger, create_correlation_id
from expense_tracker.config import get_settings
from expense_tracker.matching import search_reimbursement_matches
from expense_tracker.models.expense import (
    Expense,
    ExpenseDraft,
    ExpenseStatusFilter,
    ExpenseTotals,
    MonthlyGroup,
)
from expense_tracker.models.reimbursement import (
    MarkReimbursedResult,
    MatchLimits,
    ReimbursementMatch,
    ReimbursementSearchOutcome,
    SearchStatus,
)
from expense_tracker.services.storage import (
    AuditStorageInterface,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    InMemoryAuditStorage,
    InMemoryExpenseStorage,
    NotFoundError,
)
from expense_tracker.summaries import calculate_totals, group_expenses_by_month
from expense_tracker.validation import ReimbursementRequestValidator


logger = structlog.get_logger(__name__)


class ReimbursementFlow:
    """
    Orchestrates the reimbursement flow.

    Flow:
    1. Validate → Reject unusable amounts with a readable message
    2. Load → Fetch the user's pending expenses
    3. Match → Run the bounded combination search
    4. Review → Present ranked matches (PAUSE - user picks one)
    5. Settle → Mark each expense of the chosen match as reimbursed

    The user choosing a match (step 4) is MANDATORY.
    The system NEVER settles a match on its own.
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[ReimbursementRequestValidator] = None,
        limits: Optional[MatchLimits] = None,
    ):
        self._expense_storage = expense_storage
        self._audit_logger = audit_logger
        self._validator = validator or ReimbursementRequestValidator()
        self._limits = limits or get_settings().matching.to_limits()

    async def find_matches(
        self,
        user_id: str,
        raw_target,
        raw_tolerance=None,
        correlation_id: Optional[UUID] = None,
    ) -> ReimbursementSearchOutcome:
        """
        Search a user's pending expenses for a reimbursement amount.

        Returns an outcome in every case except a storage failure,
        which is audited and re-raised.
        """
        correlation_id = correlation_id or create_correlation_id()

        # Step 1: Validate user input
        request, issues = self._validator.validate(raw_target, raw_tolerance)
        if request is None:
            if self._audit_logger:
                await self._audit_logger.log_target_rejected(
                    raw_value=str(raw_target),
                    reasons=[issue.message for issue in issues],
                    correlation_id=correlation_id,
                )
            return ReimbursementSearchOutcome(
                status=SearchStatus.INVALID_TARGET,
                message=self._validator.get_user_friendly_summary(issues),
                issues=issues,
            )

        # Step 2: Load pending expenses
        try:
            pending = await self._expense_storage.list_pending_expenses(user_id)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="expense_storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        # Step 3: Match
        result = search_reimbursement_matches(
            pending,
            request.target_amount,
            request.tolerance,
            self._limits,
        )

        # Audit
        if self._audit_logger:
            if result.has_matches:
                await self._audit_logger.log_search_completed(
                    target_amount=result.target_amount,
                    tolerance=result.tolerance,
                    candidate_count=result.candidate_count,
                    match_count=len(result.matches),
                    exact_count=len(result.exact_matches),
                    limit_reached=result.limit_reached,
                    correlation_id=correlation_id,
                )
            else:
                await self._audit_logger.log_search_empty(
                    target_amount=result.target_amount,
                    tolerance=result.tolerance,
                    candidate_count=result.candidate_count,
                    correlation_id=correlation_id,
                )

        if not result.has_matches:
            return ReimbursementSearchOutcome(
                status=SearchStatus.NO_MATCH,
                message="No matching expense combinations found",
                request=request,
                result=result,
                issues=issues,
            )

        return ReimbursementSearchOutcome(
            status=SearchStatus.MATCHES_FOUND,
            message=f"Found {len(result.matches)} possible match(es)",
            request=request,
            result=result,
            issues=issues,
        )

    async def mark_match_reimbursed(
        self,
        match: ReimbursementMatch,
        correlation_id: Optional[UUID] = None,
    ) -> MarkReimbursedResult:
        """
        Mark every expense of a chosen match as reimbursed.

        Each expense is updated on its own; one failure does not stop the
        remaining updates.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_match_selected(
                expense_ids=match.expense_ids,
                total=match.total,
                exact_match=match.exact_match,
                correlation_id=correlation_id,
            )

        result = MarkReimbursedResult()
        for expense_id in match.expense_ids:
            try:
                await self._expense_storage.mark_reimbursed(expense_id)
            except Exception as e:
                result.failed[expense_id] = str(e)
                if self._audit_logger:
                    await self._audit_logger.log_mark_reimbursed_failed(
                        expense_id=expense_id,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                continue

            result.succeeded_ids.append(expense_id)
            if self._audit_logger:
                await self._audit_logger.log_expense_marked_reimbursed(
                    expense_id=expense_id,
                    correlation_id=correlation_id,
                )

        return result


def describe_mark_result(result: MarkReimbursedResult) -> str:
    """Message shown after settling a match."""
    succeeded = len(result.succeeded_ids)
    noun = "expense" if succeeded == 1 else "expenses"

    if result.all_succeeded:
        return f"Marked {succeeded} {noun} as reimbursed"
    if result.partially_succeeded:
        return (
            f"Marked {succeeded} {noun} as reimbursed, "
            f"{len(result.failed)} failed: {', '.join(result.failed_ids)}"
        )
    return "Failed to mark expenses as reimbursed"


def _display(value) -> str:
    """Audit-friendly text for a field value."""
    if isinstance(value, Enum):
        return value.value
    return str(value)


class ExpenseLedgerFlow:
    """
    Orchestrates everyday expense bookkeeping.

    Keeps the audit trail for changes the user makes outside of a
    reimbursement search.
    """

    def __init__(
        self,
        expense_storage: ExpenseStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._expense_storage = expense_storage
        self._audit_logger = audit_logger

    async def add_expense(
        self,
        user_id: str,
        draft: ExpenseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """Store a new expense and return it with its assigned id."""
        correlation_id = correlation_id or create_correlation_id()

        expense = Expense(
            id=str(uuid4()),
            user_id=user_id,
            description=draft.description,
            amount=draft.amount,
            date=draft.date,
            category=draft.category,
            reimbursed=draft.reimbursed,
        )

        try:
            await self._expense_storage.save_expense(expense)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="save_failed",
                    error_message=str(e),
                    details={"expense_id": expense.id},
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                expense_id=expense.id,
                description=expense.description,
                amount=expense.amount,
                correlation_id=correlation_id,
            )

        return expense

    async def update_expense(
        self,
        expense_id: str,
        draft: ExpenseDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Replace the user-editable fields of an existing expense.

        Identity, owner and created_at are kept. An edit that changes
        nothing writes nothing.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        expense = await self._expense_storage.get_expense_by_id(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        edited = draft.model_dump()
        changes = {
            field: {"from": _display(getattr(expense, field)), "to": _display(value)}
            for field, value in edited.items()
            if getattr(expense, field) != value
        }
        if not changes:
            return expense

        updated = expense.model_copy(update=edited)
        await self._expense_storage.update_expense(updated)

        if self._audit_logger:
            await self._audit_logger.log_expense_updated(
                expense_id=expense_id,
                changes=changes,
                correlation_id=correlation_id or create_correlation_id(),
            )

        return updated

    async def duplicate_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Store a copy of an expense under a new id.

        The copy starts out pending, whatever the source's status.

        Raises:
            NotFoundError: If the source expense doesn't exist
        """
        correlation_id = correlation_id or create_correlation_id()

        source = await self._expense_storage.get_expense_by_id(expense_id)
        if source is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        copy = Expense(
            id=str(uuid4()),
            user_id=source.user_id,
            description=source.description,
            amount=source.amount,
            date=source.date,
            category=source.category,
            reimbursed=False,
        )
        await self._expense_storage.save_expense(copy)

        if self._audit_logger:
            await self._audit_logger.log_expense_duplicated(
                source_id=expense_id,
                expense_id=copy.id,
                correlation_id=correlation_id,
            )

        return copy

    async def delete_expense(
        self,
        expense_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete an expense. Returns False if it did not exist."""
        deleted = await self._expense_storage.delete_expense(expense_id)

        if deleted and self._audit_logger:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                correlation_id=correlation_id or create_correlation_id(),
            )

        return deleted

    async def set_reimbursed(
        self,
        expense_id: str,
        reimbursed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Manually flip an expense between reimbursed and pending.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        expense = await self._expense_storage.get_expense_by_id(expense_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")

        if expense.reimbursed == reimbursed:
            return expense

        updated = expense.model_copy(update={"reimbursed": reimbursed})
        await self._expense_storage.update_expense(updated)

        if self._audit_logger:
            await self._audit_logger.log_reimbursed_status_changed(
                expense_id=expense_id,
                reimbursed=reimbursed,
                correlation_id=correlation_id or create_correlation_id(),
            )

        return updated

    async def list_expenses(
        self,
        user_id: str,
        status: ExpenseStatusFilter = ExpenseStatusFilter.ALL,
    ) -> list[Expense]:
        """A user's expenses, newest first, optionally only pending or reimbursed."""
        return await self._expense_storage.list_expenses(
            user_id, reimbursed=status.reimbursed_filter
        )

    async def monthly_summary(
        self,
        user_id: str,
        status: ExpenseStatusFilter = ExpenseStatusFilter.ALL,
    ) -> list[MonthlyGroup]:
        """A user's expenses grouped by calendar month, newest month first."""
        expenses = await self.list_expenses(user_id, status)
        return group_expenses_by_month(expenses)

    async def totals(self, user_id: str) -> ExpenseTotals:
        """Overall, reimbursed and pending totals for a user."""
        expenses = await self._expense_storage.list_expenses(user_id)
        return calculate_totals(expenses)


def create_app_components(
    use_storage: bool = True,
) -> tuple[ReimbursementFlow, ExpenseLedgerFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (reimbursement_flow, ledger_flow, sheets_client)
    """
    sheets_client = None
    expense_storage: ExpenseStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            expense_storage = InMemoryExpenseStorage()
            audit_storage = InMemoryAuditStorage()
    else:
        expense_storage = InMemoryExpenseStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    reimbursement_flow = ReimbursementFlow(
        expense_storage=expense_storage,
        audit_logger=audit_logger,
    )

    ledger_flow = ExpenseLedgerFlow(
        expense_storage=expense_storage,
        audit_logger=audit_logger,
    )

    return reimbursement_flow, ledger_flow, sheets_client
