"""
Reimbursement Request Validation

DESIGN DECISION: The matching engine is a pure function that assumes a
positive, finite target amount. All checking of user input happens here,
at the boundary, before the engine is called.

IMPORTANT: Validation NEVER silently fixes issues.
It normalises formatting ("$1,234.50" -> 1234.50) but reports anything
that is not a usable amount back to the user.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from expense_tracker.config import get_settings
from expense_tracker.models.expense import ValidationIssue
from expense_tracker.models.reimbursement import ReimbursementRequest


RawAmount = Union[str, int, float, Decimal, None]


def _parse_amount(
    raw: RawAmount,
    field: str,
    label: str,
) -> tuple[Optional[Decimal], Optional[ValidationIssue]]:
    """
    Parse a user-entered amount.

    Returns: (amount, issue) - exactly one of them is None
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None, ValidationIssue(
            field=field,
            issue_type="missing",
            message=f"Please enter the {label}",
            severity="error",
            suggested_fix="Type the amount shown on your deposit or payslip",
        )

    try:
        if isinstance(raw, bool):
            raise InvalidOperation(raw)
        if isinstance(raw, str):
            text = raw.strip().lstrip("$").replace(",", "").strip()
            amount = Decimal(text)
        elif isinstance(raw, float):
            amount = Decimal(str(raw))
        else:
            amount = Decimal(raw)
    except (InvalidOperation, TypeError, ValueError):
        amount = None

    if amount is None or not amount.is_finite():
        return None, ValidationIssue(
            field=field,
            issue_type="not_numeric",
            message=f"The {label} ({raw!r}) is not a valid amount",
            severity="error",
            suggested_fix="Use digits only, e.g. 520.21",
        )

    return amount, None


class ReimbursementRequestValidator:
    """
    Validates what the user typed before a reimbursement search runs.

    Rejects:
    - empty or non-numeric targets
    - zero or negative targets
    - negative tolerances
    """

    def __init__(self, default_tolerance: Optional[Decimal] = None):
        """
        Initialize validator.

        Args:
            default_tolerance: Tolerance used when the user gives none.
                               Defaults to the configured matching tolerance.
        """
        if default_tolerance is None:
            default_tolerance = get_settings().matching.default_tolerance
        self._default_tolerance = Decimal(default_tolerance)

    def validate(
        self,
        raw_target: RawAmount,
        raw_tolerance: RawAmount = None,
    ) -> tuple[Optional[ReimbursementRequest], list[ValidationIssue]]:
        """
        Validate a search request.

        Returns:
            (request, issues) - request is None when any error was found
        """
        issues = []

        target, issue = _parse_amount(raw_target, "target_amount", "reimbursement amount")
        if issue:
            issues.append(issue)
        elif target <= 0:
            issues.append(ValidationIssue(
                field="target_amount",
                issue_type="not_positive",
                message="The reimbursement amount must be greater than zero",
                severity="error",
                suggested_fix="Enter the amount you were paid back",
            ))

        tolerance = self._default_tolerance
        if raw_tolerance is not None and not (isinstance(raw_tolerance, str) and not raw_tolerance.strip()):
            tolerance, issue = _parse_amount(raw_tolerance, "tolerance", "tolerance")
            if issue:
                issues.append(issue)
            elif tolerance < 0:
                issues.append(ValidationIssue(
                    field="tolerance",
                    issue_type="negative",
                    message="The tolerance cannot be negative",
                    severity="error",
                    suggested_fix="Use 0 to only accept exact matches",
                ))

        if any(issue.severity == "error" for issue in issues):
            return None, issues

        return ReimbursementRequest(target_amount=target, tolerance=tolerance), issues

    def get_user_friendly_summary(self, issues: list[ValidationIssue]) -> str:
        """Text shown to the user when a request was rejected."""
        if not issues:
            return ""

        lines = ["❌ Please enter a valid amount:"]
        for issue in issues:
            lines.append(f"   • {issue.message}")
            if issue.suggested_fix:
                lines.append(f"     💡 {issue.suggested_fix}")

        return "\n".join(lines)
