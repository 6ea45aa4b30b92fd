"""Recurrence template domain service."""

from dataclasses import fields, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from treasury.database.base import Database
from treasury.domain.clock import Clock, SystemClock
from treasury.domain.entities import (
    AmountChange,
    Certainty,
    Direction,
    Frequency,
    GenerationOptions,
    GenerationResult,
    MONTH_ANCHORED,
    RecurrenceStatus,
    RecurrenceTemplate,
    RecurrenceVersion,
    TemplateUpdate,
    TransactionStatus,
    WEEK_ANCHORED,
)
from treasury.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    missing_day_of_month,
    missing_day_of_week,
    template_not_found,
)
from treasury.domain.generation import (
    BATCH_CHUNK_SIZE,
    DEFAULT_MONTHS_AHEAD,
    RecurrenceGenerator,
    delete_in_chunks,
)
from treasury.domain.schedule import first_occurrence
from treasury.logging_config import get_logger

logger = get_logger("recurrence")

MIN_MONTHS_AHEAD = 1
MAX_MONTHS_AHEAD = 24

# Edits to these fields invalidate already generated future instances
REGENERATION_FIELDS = frozenset(
    {
        "frequency",
        "day_of_month",
        "day_of_week",
        "start_date",
        "base_amount",
        "generate_months_ahead",
    }
)

# Maintained by the generator, never edited directly
_READ_ONLY_FIELDS = frozenset(
    {"id", "created_at", "updated_at", "last_generated_date", "next_occurrence_date"}
)

_ENUM_FIELDS = {
    "direction": Direction,
    "frequency": Frequency,
    "certainty": Certainty,
    "status": RecurrenceStatus,
}


def _coerce_enum(enum_cls: type[Enum], value: Any, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'. Expected one of: {allowed}")


def validate_template(template: RecurrenceTemplate) -> None:
    """Check a template against the rules enforced on create and update.

    Raises:
        ValidationError: If any field is out of range or inconsistent
    """
    if not template.name or not template.name.strip():
        raise ValidationError("Recurrence name is required")
    if Decimal(template.base_amount) <= 0:
        raise ValidationError("Amount must be greater than zero")
    if template.frequency == Frequency.NONE:
        raise ValidationError("A recurrence needs a frequency other than NONE")

    if template.frequency in MONTH_ANCHORED:
        if template.day_of_month is None:
            raise ValidationError(missing_day_of_month(template.frequency.value))
    if template.day_of_month is not None and not 1 <= template.day_of_month <= 31:
        raise ValidationError("Day of month must be between 1 and 31")

    if template.frequency in WEEK_ANCHORED:
        if template.day_of_week is None:
            raise ValidationError(missing_day_of_week(template.frequency.value))
    if template.day_of_week is not None and not 0 <= template.day_of_week <= 6:
        raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")

    if template.end_date is not None and template.end_date <= template.start_date:
        raise ValidationError("End date must be after start date")

    if not MIN_MONTHS_AHEAD <= template.generate_months_ahead <= MAX_MONTHS_AHEAD:
        raise ValidationError(
            f"Months ahead must be between {MIN_MONTHS_AHEAD} and {MAX_MONTHS_AHEAD}"
        )


class RecurrenceService:
    """Service for managing recurrence templates."""

    def __init__(
        self,
        db: Database,
        clock: Optional[Clock] = None,
        generator: Optional[RecurrenceGenerator] = None,
    ):
        """Initialize recurrence service.

        Args:
            db: Database instance
            clock: Clock supplying "today" (defaults to the system clock)
            generator: Generator used for immediate generation
        """
        self.db = db
        self.clock = clock or SystemClock()
        self.generator = generator or RecurrenceGenerator(db, self.clock)

    def create_template(
        self,
        owner_id: str,
        company_id: str,
        direction: Direction | str,
        name: str,
        base_amount: Decimal,
        frequency: Frequency | str,
        start_date: date,
        day_of_month: Optional[int] = None,
        day_of_week: Optional[int] = None,
        end_date: Optional[date] = None,
        generate_months_ahead: int = DEFAULT_MONTHS_AHEAD,
        category: str = "",
        third_party_id: Optional[str] = None,
        third_party_name: str = "",
        account_id: Optional[str] = None,
        certainty: Certainty | str = Certainty.HIGH,
        notes: str = "",
        status: RecurrenceStatus | str = RecurrenceStatus.ACTIVE,
    ) -> tuple[int, GenerationResult]:
        """Create a recurrence template and generate its first window.

        Args:
            owner_id: Owning user
            company_id: Owning company
            direction: INCOME or EXPENSE
            name: Display name, also used as instance description
            base_amount: Positive amount of each occurrence
            frequency: Recurrence frequency (not NONE)
            start_date: First day the series may occur
            day_of_month: Anchor day for monthly, quarterly and yearly series
            day_of_week: Anchor weekday (0 = Sunday) for weekly series
            end_date: Optional last day of the series
            generate_months_ahead: Sliding window for open ended series
            category: Optional category label
            third_party_id: Optional counterparty identifier
            third_party_name: Optional counterparty display name
            account_id: Optional account identifier
            certainty: Confidence tier
            notes: Optional notes
            status: Initial status; only ACTIVE templates generate

        Returns:
            Tuple of (template ID, generation result)

        Raises:
            ValidationError: If the template is invalid
        """
        template = RecurrenceTemplate(
            id=0,
            owner_id=owner_id,
            company_id=company_id,
            direction=_coerce_enum(Direction, direction, "direction"),
            name=name.strip() if name else "",
            base_amount=Decimal(base_amount),
            frequency=_coerce_enum(Frequency, frequency, "frequency"),
            start_date=start_date,
            category=category,
            third_party_id=third_party_id,
            third_party_name=third_party_name,
            account_id=account_id,
            certainty=_coerce_enum(Certainty, certainty, "certainty"),
            notes=notes,
            day_of_month=day_of_month,
            day_of_week=day_of_week,
            end_date=end_date,
            generate_months_ahead=generate_months_ahead,
            status=_coerce_enum(RecurrenceStatus, status, "status"),
        )
        validate_template(template)

        template_id = self.db.create_template(
            owner_id=template.owner_id,
            company_id=template.company_id,
            direction=template.direction,
            name=template.name,
            base_amount=template.base_amount,
            frequency=template.frequency,
            start_date=template.start_date,
            day_of_month=template.day_of_month,
            day_of_week=template.day_of_week,
            end_date=template.end_date,
            generate_months_ahead=template.generate_months_ahead,
            category=template.category,
            third_party_id=template.third_party_id,
            third_party_name=template.third_party_name,
            account_id=template.account_id,
            certainty=template.certainty,
            notes=template.notes,
            status=template.status,
            next_occurrence_date=first_occurrence(
                template.start_date,
                template.frequency,
                template.day_of_month,
                template.day_of_week,
            ),
        )
        logger.info("Created recurrence %s (%s, %s)", template_id, template.name, template.frequency.value)

        if template.status != RecurrenceStatus.ACTIVE:
            return template_id, GenerationResult(recurrence_id=template_id)
        return template_id, self.generator.generate(self.require_template(template_id))

    def get_template(self, template_id: int) -> Optional[RecurrenceTemplate]:
        """Get recurrence template by ID."""
        return self.db.get_template(template_id)

    def require_template(self, template_id: int) -> RecurrenceTemplate:
        """Get recurrence template by ID.

        Raises:
            NotFoundError: If template doesn't exist
        """
        template = self.db.get_template(template_id)
        if template is None:
            raise NotFoundError(template_not_found(template_id))
        return template

    def list_templates(
        self,
        owner_id: Optional[str] = None,
        company_id: Optional[str] = None,
        status: Optional[RecurrenceStatus | str] = None,
        direction: Optional[Direction | str] = None,
    ) -> list[RecurrenceTemplate]:
        """List recurrence templates ordered by name."""
        if status is not None:
            status = _coerce_enum(RecurrenceStatus, status, "status")
        if direction is not None:
            direction = _coerce_enum(Direction, direction, "direction")
        return self.db.list_templates(
            owner_id=owner_id, company_id=company_id, status=status, direction=direction
        )

    def update_template(self, template_id: int, **changes: Any) -> TemplateUpdate:
        """Update template fields, regenerating future instances when needed.

        Changing the schedule or amount of an ACTIVE template deletes its
        future PENDING instances that were not edited by hand and generates
        them again. Moving an ACTIVE template to PAUSED or ENDED deletes those
        instances without regenerating.

        Args:
            template_id: Template ID to update
            **changes: Field values to change

        Returns:
            TemplateUpdate describing deletions and regeneration

        Raises:
            NotFoundError: If template doesn't exist
            ValidationError: If a field is unknown or the result is invalid
        """
        existing = self.require_template(template_id)

        editable = {f.name for f in fields(RecurrenceTemplate)} - _READ_ONLY_FIELDS
        for name, value in list(changes.items()):
            if name not in editable:
                raise ValidationError(f"Field '{name}' cannot be updated")
            if name in _ENUM_FIELDS:
                changes[name] = _coerce_enum(_ENUM_FIELDS[name], value, name.replace("_", " "))
            elif name == "base_amount":
                changes[name] = Decimal(value)

        merged = replace(existing, **changes)
        validate_template(merged)

        needs_regeneration = any(
            name in REGENERATION_FIELDS and value != getattr(existing, name)
            for name, value in changes.items()
        )

        outcome = TemplateUpdate(template_id=template_id)
        if (
            "status" in changes
            and changes["status"] in (RecurrenceStatus.PAUSED, RecurrenceStatus.ENDED)
            and existing.status == RecurrenceStatus.ACTIVE
        ):
            outcome.deleted_count += self.delete_future_occurrences(template_id)

        if changes:
            self.db.update_template(template_id, **changes)

        if needs_regeneration and merged.status == RecurrenceStatus.ACTIVE:
            outcome.deleted_count += self.delete_future_occurrences(template_id)
            outcome.generation = self.generator.generate(self.require_template(template_id))
            outcome.regenerated = True

        logger.info(
            "Updated recurrence %s: %d deleted, regenerated=%s",
            template_id,
            outcome.deleted_count,
            outcome.regenerated,
        )
        return outcome

    def pause_template(self, template_id: int) -> int:
        """Pause a template. Returns number of future instances deleted."""
        return self.update_template(template_id, status=RecurrenceStatus.PAUSED).deleted_count

    def end_template(self, template_id: int) -> int:
        """End a template. Returns number of future instances deleted."""
        return self.update_template(template_id, status=RecurrenceStatus.ENDED).deleted_count

    def resume_template(self, template_id: int) -> GenerationResult:
        """Reactivate a template and generate its current window.

        Raises:
            NotFoundError: If template doesn't exist
            ConflictError: If the template's end date already passed
        """
        template = self.require_template(template_id)
        if template.end_date is not None and template.end_date < self.clock.today():
            raise ConflictError(
                f"Recurrence {template_id} ended on {template.end_date} and cannot be resumed"
            )

        self.db.update_template_status(template_id, RecurrenceStatus.ACTIVE)
        return self.generator.generate(self.require_template(template_id))

    def delete_template(
        self,
        template_id: int,
        delete_transactions: bool = False,
        pending_only: bool = True,
    ) -> int:
        """Delete a template and either delete or unlink its transactions.

        Args:
            template_id: Template ID to delete
            delete_transactions: Delete linked transactions instead of
                unlinking them
            pending_only: When deleting, only delete PENDING transactions;
                the others are unlinked

        Returns:
            Number of transactions deleted, or unlinked when not deleting

        Raises:
            NotFoundError: If template doesn't exist
        """
        self.require_template(template_id)

        if delete_transactions:
            linked = self.db.list_transactions_by_recurrence(template_id)
            ids = [
                txn.id
                for txn in linked
                if not pending_only or txn.status == TransactionStatus.PENDING
            ]
            affected = delete_in_chunks(self.db, ids)
            # Kept history must not point at a missing template
            self.db.unlink_transactions(template_id)
        else:
            affected = self.db.unlink_transactions(template_id)

        self.db.delete_template(template_id)
        logger.info(
            "Deleted recurrence %s, %d transactions %s",
            template_id,
            affected,
            "deleted" if delete_transactions else "unlinked",
        )
        return affected

    def delete_future_occurrences(self, template_id: int, from_date: Optional[date] = None) -> int:
        """Delete future PENDING instances that were not edited by hand.

        Args:
            template_id: Template ID
            from_date: First due date to delete (defaults to today)

        Returns:
            Number of transactions deleted
        """
        from_date = from_date or self.clock.today()
        ids = [
            txn.id
            for txn in self.db.list_transactions_by_recurrence(template_id)
            if txn.status == TransactionStatus.PENDING
            and txn.due_date >= from_date
            and not txn.overridden_from_recurrence
        ]
        return delete_in_chunks(self.db, ids)

    def preview(
        self,
        template_id: int,
        as_of: Optional[date] = None,
        months_ahead: Optional[int] = None,
    ) -> list[date]:
        """Return the dates a generation pass would consider, without writing."""
        template = self.require_template(template_id)
        return self.generator.candidate_dates(
            template, as_of, GenerationOptions(months_ahead=months_ahead)
        )

    def change_amount(
        self,
        template_id: int,
        amount: Decimal,
        effective_from: Optional[date] = None,
        change_reason: str = "",
        update_transactions: bool = True,
    ) -> AmountChange:
        """Record a new amount for a template from a given day on.

        The previous version closes the day before ``effective_from`` and
        the template's base amount changes. Unless disabled, linked PENDING
        transactions due on or after ``effective_from`` that were not edited
        by hand take the new amount too.

        Args:
            template_id: Template ID
            amount: New positive amount
            effective_from: First day of the new amount (defaults to today)
            change_reason: Optional free-text reason
            update_transactions: Also reprice future pending transactions

        Returns:
            AmountChange with the new version and the repriced count

        Raises:
            NotFoundError: If template doesn't exist
            ValidationError: If the amount is not positive or the date does
                not follow the current version
        """
        template = self.require_template(template_id)
        amount = Decimal(amount)
        if amount <= 0:
            raise ValidationError("Base amount must be greater than zero")
        effective_from = effective_from or self.clock.today()

        versions = self.db.list_versions(template_id)
        if versions and effective_from <= versions[-1].effective_from:
            raise ValidationError(
                f"Effective date must be after {versions[-1].effective_from.isoformat()}, "
                f"when version {versions[-1].version_number} took effect"
            )

        version_id = self.db.create_version(
            template_id,
            amount,
            effective_from,
            change_reason=change_reason,
            created_by=template.owner_id,
        )

        updated = 0
        if update_transactions:
            ids = [
                txn.id
                for txn in self.db.list_transactions_by_recurrence(template_id)
                if txn.status == TransactionStatus.PENDING
                and txn.due_date >= effective_from
                and not txn.overridden_from_recurrence
            ]
            for offset in range(0, len(ids), BATCH_CHUNK_SIZE):
                updated += self.db.update_transactions(
                    ids[offset : offset + BATCH_CHUNK_SIZE],
                    amount=amount,
                    recurrence_version_id=version_id,
                )

        logger.info(
            "Recurrence %s amount set to %s from %s, %d transactions repriced",
            template_id,
            amount,
            effective_from,
            updated,
        )
        return AmountChange(version=self.db.get_version(version_id), updated_count=updated)

    def list_versions(self, template_id: int) -> list[RecurrenceVersion]:
        """List the amount history of a template, oldest first."""
        self.require_template(template_id)
        return self.db.list_versions(template_id)

    def revert_amount(self, template_id: int) -> Optional[RecurrenceVersion]:
        """Drop the latest amount version and restore the previous amount.

        Transactions already repriced keep their amount.

        Returns:
            The version in effect again, or None when no earlier version exists

        Raises:
            NotFoundError: If the template doesn't exist or has no versions
        """
        self.require_template(template_id)
        restored = self.db.delete_latest_version(template_id)
        logger.info("Recurrence %s amount version reverted", template_id)
        return restored
