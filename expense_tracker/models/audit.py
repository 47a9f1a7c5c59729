"""
Audit Models for the Expense Tracker

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of which expenses were marked reimbursed, and why
2. Debugging information when a search or a storage write goes wrong
3. A history the user can look back on

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Reimbursement search
    TARGET_AMOUNT_REJECTED = "target_amount_rejected"
    MATCH_SEARCH_COMPLETED = "match_search_completed"
    MATCH_SEARCH_EMPTY = "match_search_empty"

    # Reimbursement persistence
    MATCH_SELECTED = "match_selected"
    EXPENSE_MARKED_REIMBURSED = "expense_marked_reimbursed"
    MARK_REIMBURSED_FAILED = "mark_reimbursed_failed"

    # Expense ledger
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DUPLICATED = "expense_duplicated"
    EXPENSE_DELETED = "expense_deleted"
    REIMBURSED_STATUS_CHANGED = "reimbursed_status_changed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'search')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one search and the marks that follow)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.match_search_completed(...)
        event = AuditEventBuilder.expense_marked_reimbursed(expense_id, correlation_id)
    """

    @staticmethod
    def target_amount_rejected(
        raw_value: str,
        reasons: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TARGET_AMOUNT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="search",
            correlation_id=correlation_id,
            description=f"Reimbursement amount rejected: {raw_value!r}",
            details={
                "raw_value": raw_value,
                "reasons": reasons,
            },
            is_user_action=True,
        )

    @staticmethod
    def match_search_completed(
        target_amount: Decimal,
        tolerance: Decimal,
        candidate_count: int,
        match_count: int,
        exact_count: int,
        limit_reached: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCH_SEARCH_COMPLETED,
            entity_type="search",
            correlation_id=correlation_id,
            description=(
                f"Found {match_count} match(es) for {target_amount} "
                f"among {candidate_count} pending expenses"
            ),
            details={
                "target_amount": str(target_amount),
                "tolerance": str(tolerance),
                "candidate_count": candidate_count,
                "match_count": match_count,
                "exact_count": exact_count,
                "limit_reached": limit_reached,
            },
        )

    @staticmethod
    def match_search_empty(
        target_amount: Decimal,
        tolerance: Decimal,
        candidate_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCH_SEARCH_EMPTY,
            entity_type="search",
            correlation_id=correlation_id,
            description=f"No matching expense combination for {target_amount}",
            details={
                "target_amount": str(target_amount),
                "tolerance": str(tolerance),
                "candidate_count": candidate_count,
            },
        )

    @staticmethod
    def match_selected(
        expense_ids: list[str],
        total: Decimal,
        exact_match: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MATCH_SELECTED,
            entity_type="match",
            correlation_id=correlation_id,
            description=f"User chose {len(expense_ids)} expense(s) totalling {total}",
            details={
                "expense_ids": expense_ids,
                "total": str(total),
                "exact_match": exact_match,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_marked_reimbursed(
        expense_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_MARKED_REIMBURSED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} marked as reimbursed",
        )

    @staticmethod
    def mark_reimbursed_failed(
        expense_id: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MARK_REIMBURSED_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Failed to mark expense {expense_id} as reimbursed",
            error_message=error_message,
        )

    @staticmethod
    def expense_added(
        expense_id: str,
        description: str,
        amount: Decimal,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {description} - {amount}",
            details={
                "description": description,
                "amount": str(amount),
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        expense_id: str,
        changes: dict[str, dict[str, str]],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} edited: {', '.join(changes)}",
            details={
                "changes": changes,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_duplicated(
        source_id: str,
        expense_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DUPLICATED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} copied from {source_id}",
            details={
                "source_id": source_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def reimbursed_status_changed(
        expense_id: str,
        reimbursed: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REIMBURSED_STATUS_CHANGED,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=(
                f"Expense {expense_id} marked as "
                f"{'reimbursed' if reimbursed else 'pending'}"
            ),
            details={
                "reimbursed": reimbursed,
            },
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
