"""Transaction domain service."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from treasury.database.base import Database
from treasury.domain.clock import Clock, SystemClock
from treasury.domain.entities import (
    Certainty,
    Direction,
    Frequency,
    GenerationResult,
    MigrationReport,
    NewTransaction,
    RecurrenceStatus,
    Transaction as TransactionEntity,
    TransactionStatus,
)
from treasury.domain.errors import NotFoundError, ValidationError, transaction_not_found
from treasury.domain.generation import DEFAULT_MONTHS_AHEAD, RecurrenceGenerator
from treasury.domain.schedule import (
    installment_end_date,
    instance_label,
    next_occurrence,
    weekday_index,
)
from treasury.logging_config import get_logger

logger = get_logger("transaction")

# Edits to these fields detach an instance from its template's schedule
_OVERRIDE_FIELDS = frozenset({"amount", "due_date"})


def series_name(description: str, category: str, direction: Direction) -> str:
    """Name a template started from a transaction."""
    label = "Income" if direction == Direction.INCOME else "Expense"
    return description.strip() or f"{category or 'Uncategorized'} - {label}"


def _require_positive(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


class TransactionService:
    """Service for managing transactions."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        generator: Optional[RecurrenceGenerator] = None,
    ):
        """Initialize transaction service.

        Args:
            db: Database instance
            clock: Clock supplying "today" (defaults to the system clock)
            generator: Generator used when a transaction starts a recurrence
        """
        self.db = db
        self.clock = clock or SystemClock()
        self.generator = generator or RecurrenceGenerator(db, self.clock)

    def create_transaction(
        self,
        owner_id: str,
        company_id: str,
        direction: Direction | str,
        amount: Decimal,
        due_date: date,
        description: str = "",
        category: str = "",
        third_party_id: Optional[str] = None,
        third_party_name: str = "",
        account_id: Optional[str] = None,
        notes: str = "",
        certainty: Certainty | str = Certainty.HIGH,
        status: TransactionStatus | str = TransactionStatus.PENDING,
        paid_date: Optional[date] = None,
        recurrence: Frequency | str = Frequency.NONE,
        recurrence_end_date: Optional[date] = None,
        installments: Optional[int] = None,
    ) -> tuple[int, Optional[GenerationResult]]:
        """Create a transaction.

        A transaction with a recurrence other than NONE also creates a
        recurrence template anchored on its due date, becomes that template's
        first instance and triggers generation of the following occurrences.

        Args:
            owner_id: Owning user
            company_id: Owning company
            direction: INCOME or EXPENSE
            amount: Positive amount
            due_date: Due date
            description: Optional description
            category: Optional category label
            third_party_id: Optional counterparty identifier
            third_party_name: Optional counterparty display name
            account_id: Optional account identifier
            notes: Optional notes
            certainty: Confidence tier
            status: Settlement status
            paid_date: Optional payment date
            recurrence: Frequency of a new recurring series
            recurrence_end_date: Explicit last day of the series
            installments: Number of occurrences, used when no end date is given

        Returns:
            Tuple of (transaction ID, generation result or None for one-off
            transactions)

        Raises:
            ValidationError: If amount, enums or series bounds are invalid
        """
        try:
            direction = Direction(direction)
            recurrence = Frequency(recurrence)
            certainty = Certainty(certainty)
            status = TransactionStatus(status)
        except ValueError as e:
            raise ValidationError(str(e))
        amount = _require_positive(amount)

        if recurrence == Frequency.NONE:
            txn_id = self.db.create_transaction(
                NewTransaction(
                    owner_id=owner_id,
                    company_id=company_id,
                    account_id=account_id,
                    direction=direction,
                    amount=amount,
                    status=status,
                    due_date=due_date,
                    paid_date=paid_date,
                    category=category,
                    description=description,
                    third_party_id=third_party_id,
                    third_party_name=third_party_name,
                    notes=notes,
                    certainty=certainty,
                )
            )
            return txn_id, None

        end_date = recurrence_end_date
        if end_date is None and installments is not None:
            if installments < 2:
                raise ValidationError("A recurring transaction needs at least 2 installments")
            end_date = installment_end_date(due_date, recurrence, installments)
        if end_date is not None and end_date <= due_date:
            raise ValidationError("Recurrence end date must be after the due date")

        entry = NewTransaction(
            owner_id=owner_id,
            company_id=company_id,
            account_id=account_id,
            direction=direction,
            amount=amount,
            status=status,
            due_date=due_date,
            paid_date=paid_date,
            category=category,
            description=series_name(description, category, direction),
            third_party_id=third_party_id,
            third_party_name=third_party_name,
            notes=notes,
            recurrence=recurrence,
            certainty=certainty,
        )
        template_id = self._start_series(entry, entry.description, recurrence, end_date)
        txn_id = self.db.create_transaction(
            replace(
                entry,
                recurrence_id=template_id,
                is_recurrence_instance=True,
                instance_date=instance_label(due_date),
            )
        )
        logger.info("Transaction %s started recurrence %s", txn_id, template_id)

        result = self._continue_series(template_id, due_date, recurrence)
        return txn_id, result

    def _start_series(
        self,
        entry: NewTransaction | TransactionEntity,
        name: str,
        frequency: Frequency,
        end_date: Optional[date] = None,
    ) -> int:
        """Create an ACTIVE template anchored on the entry's due date."""
        due_date = entry.due_date
        return self.db.create_template(
            owner_id=entry.owner_id,
            company_id=entry.company_id,
            direction=entry.direction,
            name=name,
            base_amount=entry.amount,
            frequency=frequency,
            start_date=due_date,
            day_of_month=due_date.day,
            day_of_week=weekday_index(due_date),
            end_date=end_date,
            generate_months_ahead=DEFAULT_MONTHS_AHEAD,
            category=entry.category,
            third_party_id=entry.third_party_id,
            third_party_name=entry.third_party_name,
            account_id=entry.account_id,
            certainty=entry.certainty,
            notes=entry.notes,
            status=RecurrenceStatus.ACTIVE,
        )

    def _continue_series(self, template_id: int, due_date: date, frequency: Frequency) -> GenerationResult:
        """Record the linked first instance and generate the occurrences after it."""
        self.db.update_template_bookkeeping(
            template_id,
            last_generated_date=due_date,
            next_occurrence_date=next_occurrence(
                due_date, frequency, due_date.day, weekday_index(due_date)
            ),
        )
        # The first instance is linked already, so generation skips its day
        return self.generator.generate(self.db.get_template(template_id))

    def migrate_recurring_transactions(self, owner_id: str) -> MigrationReport:
        """Give recurring transactions without a template one of their own.

        Entries recorded before templates existed carry a frequency but no
        template link. Each becomes the first instance of a new ACTIVE
        template anchored on its due date, and the occurrences after it are
        generated. A failing entry is reported without stopping the run.

        Args:
            owner_id: Owner whose transactions are migrated

        Returns:
            MigrationReport with counts and per-transaction errors
        """
        report = MigrationReport()
        orphans = [
            txn
            for txn in self.db.list_transactions(owner_id=owner_id)
            if txn.recurrence != Frequency.NONE
            and txn.recurrence_id is None
            and not txn.is_recurrence_instance
        ]
        logger.info("Migrating %d unlinked recurring transactions of %s", len(orphans), owner_id)

        for txn in orphans:
            try:
                name = series_name(txn.description, txn.category, txn.direction)
                template_id = self._start_series(txn, name, txn.recurrence)
                report.recurrences_created += 1
                self.db.update_transaction(
                    txn.id,
                    recurrence_id=template_id,
                    is_recurrence_instance=True,
                    instance_date=instance_label(txn.due_date),
                )
                result = self._continue_series(template_id, txn.due_date, txn.recurrence)
            except Exception as e:
                logger.exception("Failed to migrate transaction %s", txn.id)
                report.errors.append(f"Transaction {txn.id}: {e}")
                continue

            report.processed += 1
            report.transactions_generated += result.generated_count

        return report

    def get_transaction(self, transaction_id: int) -> Optional[TransactionEntity]:
        """Get transaction by ID.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entity or None if not found
        """
        return self.db.get_transaction(transaction_id)

    def list_transactions(
        self,
        owner_id: Optional[str] = None,
        company_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[TransactionStatus | str] = None,
        recurrence_id: Optional[int] = None,
    ) -> list[TransactionEntity]:
        """List transactions with optional filters, ordered by due date."""
        if start_date and end_date and start_date > end_date:
            raise ValidationError("Start date must be before or equal to end date")
        return self.db.list_transactions(
            owner_id=owner_id,
            company_id=company_id,
            start_date=start_date,
            end_date=end_date,
            status=TransactionStatus(status) if status is not None else None,
            recurrence_id=recurrence_id,
        )

    def update_transaction(self, transaction_id: int, **changes: Any) -> None:
        """Update transaction fields.

        Changing the amount or due date of a recurrence instance marks it as
        overridden, which protects it from regeneration.

        Args:
            transaction_id: Transaction ID to update
            **changes: Field values to change

        Raises:
            NotFoundError: If transaction doesn't exist
            ValidationError: If a field is unknown or a value is invalid
        """
        txn = self.db.get_transaction(transaction_id)
        if txn is None:
            raise NotFoundError(transaction_not_found(transaction_id))

        if "amount" in changes:
            changes["amount"] = _require_positive(changes["amount"])
        if "status" in changes:
            try:
                changes["status"] = TransactionStatus(changes["status"])
            except ValueError as e:
                raise ValidationError(str(e))

        if txn.recurrence_id is not None and any(
            name in _OVERRIDE_FIELDS and value != getattr(txn, name)
            for name, value in changes.items()
        ):
            changes["overridden_from_recurrence"] = True

        if not changes:
            return
        self.db.update_transaction(transaction_id, **changes)

    def mark_paid(self, transaction_id: int, paid_date: Optional[date] = None) -> None:
        """Mark a transaction COMPLETED on ``paid_date`` (defaults to today)."""
        self.update_transaction(
            transaction_id,
            status=TransactionStatus.COMPLETED,
            paid_date=paid_date or self.clock.today(),
        )

    def delete_transaction(self, transaction_id: int) -> None:
        """Delete a transaction.

        Raises:
            NotFoundError: If transaction doesn't exist
        """
        if self.db.get_transaction(transaction_id) is None:
            raise NotFoundError(transaction_not_found(transaction_id))
        self.db.delete_transaction(transaction_id)
