"""Abstract database interface."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Sequence
from datetime import date
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from treasury.domain.entities import (
    Direction,
    NewTransaction,
    RecurrenceStatus,
    RecurrenceTemplate,
    RecurrenceVersion,
    Transaction,
    TransactionStatus,
)


class Database(ABC):
    """Abstract database interface for treasury.

    Combines the recurrence template store and the transaction store that
    the recurrence engine depends on.
    """

    # Largest number of rows a single batch write may contain
    MAX_BATCH_SIZE = 500

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    # Recurrence template operations
    @abstractmethod
    def create_template(
        self,
        owner_id: str,
        company_id: str,
        direction: Direction,
        name: str,
        base_amount: Decimal,
        frequency: str,
        start_date: date,
        **fields: Any,
    ) -> int:
        """Create a recurrence template. Returns template ID.

        Extra keyword arguments are optional template fields (category,
        day_of_month, end_date, status, ...).
        """
        pass

    @abstractmethod
    def get_template(self, template_id: int) -> Optional[RecurrenceTemplate]:
        """Get recurrence template by ID."""
        pass

    @abstractmethod
    def list_templates(
        self,
        owner_id: Optional[str] = None,
        company_id: Optional[str] = None,
        status: Optional[RecurrenceStatus] = None,
        direction: Optional[Direction] = None,
    ) -> list[RecurrenceTemplate]:
        """List recurrence templates with optional filters, ordered by name."""
        pass

    @abstractmethod
    def list_active_template_ids(
        self, owner_id: Optional[str] = None, company_id: Optional[str] = None
    ) -> list[int]:
        """List IDs of templates eligible for generation, including legacy active rows.

        Rows are not mapped here, so one malformed row cannot hide the others.
        """
        pass

    @abstractmethod
    def update_template(self, template_id: int, **changes: Any) -> None:
        """Update template fields by name."""
        pass

    @abstractmethod
    def update_template_bookkeeping(
        self,
        template_id: int,
        last_generated_date: Optional[date],
        next_occurrence_date: Optional[date],
    ) -> None:
        """Record the outcome of a generation pass on a template."""
        pass

    @abstractmethod
    def update_template_status(self, template_id: int, status: RecurrenceStatus) -> None:
        """Change the lifecycle status of a template."""
        pass

    @abstractmethod
    def delete_template(self, template_id: int) -> None:
        """Delete a template."""
        pass

    # Amount version operations
    @abstractmethod
    def create_version(
        self,
        recurrence_id: int,
        amount: Decimal,
        effective_from: date,
        change_reason: str = "",
        created_by: str = "",
    ) -> int:
        """Record a new amount version of a template. Returns version ID.

        In the same commit the current version is closed the day before
        ``effective_from`` and the template's base amount becomes ``amount``.

        Raises:
            NotFoundError: If the template doesn't exist
        """
        pass

    @abstractmethod
    def get_version(self, version_id: int) -> Optional[RecurrenceVersion]:
        """Get amount version by ID."""
        pass

    @abstractmethod
    def list_versions(self, recurrence_id: int) -> list[RecurrenceVersion]:
        """List amount versions of a template, oldest first."""
        pass

    @abstractmethod
    def delete_latest_version(self, recurrence_id: int) -> Optional[RecurrenceVersion]:
        """Delete the active version and reopen its predecessor.

        The template's base amount goes back to the predecessor's amount.

        Returns:
            The reopened version, or None when the deleted one was the first

        Raises:
            NotFoundError: If the template has no versions
        """
        pass

    # Transaction operations
    @abstractmethod
    def create_transaction(self, new_transaction: NewTransaction) -> int:
        """Create a single transaction. Returns transaction ID."""
        pass

    @abstractmethod
    def insert_transactions(self, new_transactions: Sequence[NewTransaction]) -> list[int]:
        """Insert transactions as one atomic batch. Returns IDs in input order.

        Raises:
            StoreError: If the batch exceeds MAX_BATCH_SIZE or the write fails
        """
        pass

    @abstractmethod
    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        """Get transaction by ID."""
        pass

    @abstractmethod
    def list_transactions(
        self,
        owner_id: Optional[str] = None,
        company_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[TransactionStatus] = None,
        recurrence_id: Optional[int] = None,
    ) -> list[Transaction]:
        """List transactions with optional filters, ordered by due date."""
        pass

    @abstractmethod
    def list_transactions_by_recurrence(self, recurrence_id: int) -> list[Transaction]:
        """List every transaction linked to a recurrence template."""
        pass

    @abstractmethod
    def find_matching_transactions(
        self,
        owner_id: str,
        company_id: str,
        direction: Direction,
        amount: Decimal,
        third_party_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> list[Transaction]:
        """Find transactions describing the same obligation.

        Matches owner, company, direction and amount, plus the third party
        when given, otherwise the description.
        """
        pass

    @abstractmethod
    def update_transaction(self, transaction_id: int, **changes: Any) -> None:
        """Update transaction fields by name."""
        pass

    @abstractmethod
    def update_transactions(self, transaction_ids: Sequence[int], **changes: Any) -> int:
        """Apply the same field changes to transactions as one atomic batch.

        Returns:
            Number of transactions updated

        Raises:
            StoreError: If the batch exceeds MAX_BATCH_SIZE or the write fails
        """
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction."""
        pass

    @abstractmethod
    def delete_transactions(self, transaction_ids: Sequence[int]) -> int:
        """Delete transactions as one atomic batch. Returns number deleted."""
        pass

    @abstractmethod
    def unlink_transactions(self, recurrence_id: int) -> int:
        """Detach every transaction from a template. Returns number unlinked."""
        pass
