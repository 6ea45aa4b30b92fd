"""Administrative cleanup of duplicated transactions and templates.

Repairs data left behind by overlapping generation runs before duplicate
detection existed. Within each group of equivalent records the oldest one is
kept and the rest are deleted.
"""

from collections import defaultdict
from datetime import datetime
from typing import Callable, Hashable, Iterable, TypeVar

from treasury.database.base import Database
from treasury.domain.entities import CleanupReport, RecurrenceTemplate, Transaction
from treasury.domain.generation import BATCH_CHUNK_SIZE, delete_in_chunks
from treasury.domain.schedule import day_key
from treasury.logging_config import get_logger

logger = get_logger("duplicates")

T = TypeVar("T", Transaction, RecurrenceTemplate)


def transaction_key(txn: Transaction) -> tuple:
    """Group key of transactions describing the same entry on the same day."""
    return (
        txn.company_id,
        txn.direction.value,
        txn.amount,
        txn.description,
        day_key(txn.due_date),
    )


def template_key(template: RecurrenceTemplate) -> tuple:
    """Group key of templates describing the same obligation."""
    return (
        template.company_id,
        template.name,
        template.direction.value,
        template.frequency.value,
    )


def find_duplicates(items: Iterable[T], key: Callable[[T], Hashable]) -> list[T]:
    """Return every item except the oldest of each group sharing ``key``."""
    groups: dict[Hashable, list[T]] = defaultdict(list)
    for item in items:
        groups[key(item)].append(item)

    duplicates: list[T] = []
    for group_key, group in groups.items():
        if len(group) < 2:
            continue
        group.sort(key=lambda item: (item.created_at or datetime.min, item.id))
        duplicates.extend(group[1:])
        logger.info("Found %d copies of %s, keeping %s", len(group), group_key, group[0].id)
    return duplicates


class DuplicateCleanupService:
    """Service removing duplicated transactions and recurrence templates."""

    def __init__(self, db: Database, chunk_size: int = BATCH_CHUNK_SIZE):
        """Initialize duplicate cleanup service.

        Args:
            db: Database instance
            chunk_size: Maximum transactions per batch delete
        """
        self.db = db
        self.chunk_size = chunk_size

    def cleanup(self, owner_id: str) -> CleanupReport:
        """Delete an owner's duplicated transactions and templates.

        Transactions of a deleted template stay in the ledger, unlinked.

        Args:
            owner_id: Owner whose records are cleaned

        Returns:
            CleanupReport with analyzed and deleted counts
        """
        report = CleanupReport()

        transactions = self.db.list_transactions(owner_id=owner_id)
        report.transactions_analyzed = len(transactions)
        duplicate_ids = [txn.id for txn in find_duplicates(transactions, transaction_key)]
        report.transactions_deleted = delete_in_chunks(self.db, duplicate_ids, self.chunk_size)

        templates = self.db.list_templates(owner_id=owner_id)
        report.templates_analyzed = len(templates)
        for template in find_duplicates(templates, template_key):
            self.db.unlink_transactions(template.id)
            self.db.delete_template(template.id)
            report.templates_deleted += 1

        logger.info(
            "Cleanup for %s: %d/%d transactions and %d/%d templates deleted",
            owner_id,
            report.transactions_deleted,
            report.transactions_analyzed,
            report.templates_deleted,
            report.templates_analyzed,
        )
        return report
