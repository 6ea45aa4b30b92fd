"""Shared domain error messages and error types."""


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class MalformedTemplateError(ValidationError):
    """Stored recurrence template violates its own invariants."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class StoreError(DomainError):
    """Underlying store rejected or failed an operation."""


def template_not_found(template_id: int) -> str:
    """Return message for missing recurrence template."""
    return f"Recurrence {template_id} not found"


def transaction_not_found(transaction_id: int) -> str:
    """Return message for missing transaction."""
    return f"Transaction {transaction_id} not found"


def missing_day_of_month(frequency: str) -> str:
    """Return message for a month-anchored frequency without its anchor."""
    return f"Frequency {frequency} requires a day of month (1-31)"


def missing_day_of_week(frequency: str) -> str:
    """Return message for a week-anchored frequency without its anchor."""
    return f"Frequency {frequency} requires a day of week (0=Sunday..6=Saturday)"


def batch_too_large(size: int, limit: int) -> str:
    """Return message when a batch insert exceeds the store ceiling."""
    return f"Batch of {size} transactions exceeds the store limit of {limit}"


def template_failure(template_id: int, error: Exception) -> str:
    """Return operator-facing message for a template that failed to generate."""
    return f"Template {template_id}: {error}"


def invalid_base_amount(amount) -> str:
    """Return message for a template whose amount is missing or not positive."""
    return f"Base amount must be greater than zero (got {amount})"
