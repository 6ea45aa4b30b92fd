"""Domain layer for treasury application."""

# Services import the database layer, which imports domain entities, so the
# services are resolved lazily to avoid circular imports
_SERVICES = {
    "TransactionService": "treasury.domain.transaction",
    "RecurrenceService": "treasury.domain.recurrence",
    "RecurrenceGenerator": "treasury.domain.generation",
    "DuplicateCleanupService": "treasury.domain.duplicates",
}

__all__ = list(_SERVICES)


def __getattr__(name):
    if name in _SERVICES:
        import importlib

        return getattr(importlib.import_module(_SERVICES[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
