"""Input validation package."""

from expense_tracker.validation.validator import ReimbursementRequestValidator

__all__ = ["ReimbursementRequestValidator"]
