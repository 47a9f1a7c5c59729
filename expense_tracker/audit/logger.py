"""
Audit Logger

DESIGN DECISION: Every action that changes expense data or decides what
the user sees is logged. This provides:
1. Traceability of which expenses were settled by which reimbursement
2. Debugging capability when a search returns surprising matches
3. A history the user can read back from the AuditLog sheet

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to tie a search to the marks that follow it
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_target_rejected(
        self,
        raw_value: str,
        reasons: list[str],
        correlation_id: UUID,
    ) -> None:
        """Log a rejected reimbursement amount."""
        event = AuditEventBuilder.target_amount_rejected(
            raw_value=raw_value,
            reasons=reasons,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_search_completed(
        self,
        target_amount: Decimal,
        tolerance: Decimal,
        candidate_count: int,
        match_count: int,
        exact_count: int,
        limit_reached: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a search that produced matches."""
        event = AuditEventBuilder.match_search_completed(
            target_amount=target_amount,
            tolerance=tolerance,
            candidate_count=candidate_count,
            match_count=match_count,
            exact_count=exact_count,
            limit_reached=limit_reached,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_search_empty(
        self,
        target_amount: Decimal,
        tolerance: Decimal,
        candidate_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a search with no matches."""
        event = AuditEventBuilder.match_search_empty(
            target_amount=target_amount,
            tolerance=tolerance,
            candidate_count=candidate_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_match_selected(
        self,
        expense_ids: list[str],
        total: Decimal,
        exact_match: bool,
        correlation_id: UUID,
    ) -> None:
        """Log the match the user chose to settle."""
        event = AuditEventBuilder.match_selected(
            expense_ids=expense_ids,
            total=total,
            exact_match=exact_match,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_marked_reimbursed(
        self,
        expense_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_marked_reimbursed(
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_mark_reimbursed_failed(
        self,
        expense_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.mark_reimbursed_failed(
            expense_id=expense_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_added(
        self,
        expense_id: str,
        description: str,
        amount: Decimal,
        correlation_id: UUID,
    ) -> None:
        """Log expense creation."""
        event = AuditEventBuilder.expense_added(
            expense_id=expense_id,
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_updated(
        self,
        expense_id: str,
        changes: dict[str, dict[str, str]],
        correlation_id: UUID,
    ) -> None:
        """Log an edit, with the before and after value of each changed field."""
        event = AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            changes=changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_duplicated(
        self,
        source_id: str,
        expense_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_duplicated(
            source_id=source_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_deleted(
        self,
        expense_id: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_reimbursed_status_changed(
        self,
        expense_id: str,
        reimbursed: bool,
        correlation_id: UUID,
    ) -> None:
        """Log a manual reimbursed/pending toggle."""
        event = AuditEventBuilder.reimbursed_status_changed(
            expense_id=expense_id,
            reimbursed=reimbursed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a reimbursement search).
    Pass it through all subsequent operations.
    """
    return uuid4()
