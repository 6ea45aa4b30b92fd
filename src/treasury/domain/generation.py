"""Recurrence generation orchestrator.

Materializes the upcoming occurrences of recurrence templates as PENDING
ledger transactions. Every pass recomputes the full candidate window from the
template start date and re-reads existing transactions right before writing,
which keeps repeated or overlapping runs (scheduled job, dashboard refresh,
creation side effect) from creating the same occurrence twice. No lock is
taken, so two runs racing on the same template can still both write a day.
"""

from datetime import date
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

from treasury.database.base import Database
from treasury.domain.clock import Clock, SystemClock
from treasury.domain.entities import (
    Frequency,
    GenerationOptions,
    GenerationResult,
    MONTH_ANCHORED,
    NewTransaction,
    RecurrenceStatus,
    RecurrenceTemplate,
    RegenerationSummary,
    TransactionStatus,
    WEEK_ANCHORED,
)
from treasury.domain.errors import (
    MalformedTemplateError,
    invalid_base_amount,
    missing_day_of_month,
    missing_day_of_week,
    template_failure,
)
from treasury.domain.schedule import (
    day_key,
    instance_label,
    next_occurrence,
    occurrence_dates,
)
from treasury.logging_config import get_logger

logger = get_logger("generation")

DEFAULT_MONTHS_AHEAD = 6

# Stays under Database.MAX_BATCH_SIZE to leave headroom
BATCH_CHUNK_SIZE = 450


def check_template_shape(template: RecurrenceTemplate) -> None:
    """Verify a stored template carries the anchors its frequency needs.

    Raises:
        MalformedTemplateError: If the template cannot be expanded into dates
    """
    frequency = template.frequency
    if frequency == Frequency.NONE:
        raise MalformedTemplateError("Frequency NONE cannot generate occurrences")

    if frequency in MONTH_ANCHORED:
        if not template.day_of_month:
            raise MalformedTemplateError(missing_day_of_month(frequency.value))
        if not 1 <= template.day_of_month <= 31:
            raise MalformedTemplateError(f"Invalid day of month {template.day_of_month}")

    if frequency in WEEK_ANCHORED:
        if template.day_of_week is None:
            raise MalformedTemplateError(missing_day_of_week(frequency.value))
        if not 0 <= template.day_of_week <= 6:
            raise MalformedTemplateError(f"Invalid day of week {template.day_of_week}")

    if template.base_amount is None or template.base_amount <= 0:
        raise MalformedTemplateError(invalid_base_amount(template.base_amount))


def build_instance(template: RecurrenceTemplate, due_date: date) -> NewTransaction:
    """Build the PENDING transaction for one occurrence of a template."""
    return NewTransaction(
        owner_id=template.owner_id,
        company_id=template.company_id,
        account_id=template.account_id,
        direction=template.direction,
        amount=template.base_amount,
        status=TransactionStatus.PENDING,
        due_date=due_date,
        category=template.category,
        description=template.name,
        third_party_id=template.third_party_id,
        third_party_name=template.third_party_name,
        notes=template.notes,
        recurrence=template.frequency,
        certainty=template.certainty,
        recurrence_id=template.id,
        is_recurrence_instance=True,
        instance_date=instance_label(due_date),
        overridden_from_recurrence=False,
    )


def commit_in_chunks(
    db: Database, new_transactions: Sequence[NewTransaction], chunk_size: int = BATCH_CHUNK_SIZE
) -> list[int]:
    """Insert transactions in atomic batches of at most ``chunk_size`` rows.

    A failing chunk is rolled back by the store and the error propagates;
    chunks committed before it stay committed.

    Returns:
        IDs of all inserted transactions, in input order
    """
    ids: list[int] = []
    for offset in range(0, len(new_transactions), chunk_size):
        chunk = new_transactions[offset : offset + chunk_size]
        ids.extend(db.insert_transactions(chunk))
        logger.debug("Committed chunk of %d transactions", len(chunk))
    return ids


def delete_in_chunks(db: Database, transaction_ids: Sequence[int], chunk_size: int = BATCH_CHUNK_SIZE) -> int:
    """Delete transactions in atomic batches of at most ``chunk_size`` rows.

    Returns:
        Number of transactions deleted
    """
    deleted = 0
    for offset in range(0, len(transaction_ids), chunk_size):
        deleted += db.delete_transactions(transaction_ids[offset : offset + chunk_size])
    return deleted


class RecurrenceGenerator:
    """Generates ledger transactions from recurrence templates."""

    def __init__(self, db: Database, clock: Optional[Clock] = None, chunk_size: int = BATCH_CHUNK_SIZE):
        """Initialize recurrence generator.

        Args:
            db: Database instance
            clock: Clock supplying "today" (defaults to the system clock)
            chunk_size: Maximum transactions per batch write
        """
        self.db = db
        self.clock = clock or SystemClock()
        self.chunk_size = chunk_size

    def horizon_for(
        self, template: RecurrenceTemplate, as_of: date, options: GenerationOptions
    ) -> date:
        """Return the last date a generation pass may cover.

        Bounded series are generated to their end date in one pass; open
        ended ones slide a window of ``months_ahead`` months from ``as_of``.
        """
        if template.end_date is not None:
            return template.end_date
        months = options.months_ahead or template.generate_months_ahead or DEFAULT_MONTHS_AHEAD
        return as_of + relativedelta(months=months)

    def candidate_dates(
        self,
        template: RecurrenceTemplate,
        as_of: Optional[date] = None,
        options: Optional[GenerationOptions] = None,
    ) -> list[date]:
        """Compute the occurrence dates a generation pass would consider."""
        options = options or GenerationOptions()
        as_of = as_of or self.clock.today()
        check_template_shape(template)

        # Always from start_date; the covered-day check absorbs the overlap
        return occurrence_dates(
            template.start_date,
            template.end_date,
            template.frequency,
            template.day_of_month,
            template.day_of_week,
            horizon=self.horizon_for(template, as_of, options),
            today=as_of,
        )

    def covered_days(self, template: RecurrenceTemplate) -> set[str]:
        """Return YYYY-MM-DD keys of days that already have a transaction.

        Includes transactions linked to the template and, as a safety net
        against duplicate templates for one obligation, transactions with the
        same owner, company, direction, amount and counterparty (or
        description when there is no counterparty).
        """
        linked = self.db.list_transactions_by_recurrence(template.id)
        similar = self.db.find_matching_transactions(
            owner_id=template.owner_id,
            company_id=template.company_id,
            direction=template.direction,
            amount=template.base_amount,
            third_party_id=template.third_party_id,
            description=None if template.third_party_id else template.name,
        )
        return {day_key(txn.due_date) for txn in [*linked, *similar]}

    def generate(
        self,
        template: RecurrenceTemplate,
        as_of: Optional[date] = None,
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """Create the missing transactions of one template.

        Args:
            template: Recurrence template to expand
            as_of: Reference day (defaults to the clock's today)
            options: Window and duplicate-detection options

        Returns:
            GenerationResult with generated and skipped counts

        Raises:
            MalformedTemplateError: If the template lacks required anchors
            StoreError: If a batch write fails
        """
        options = options or GenerationOptions()
        as_of = as_of or self.clock.today()
        result = GenerationResult(recurrence_id=template.id)

        if template.end_date is not None and template.end_date < as_of:
            if template.status != RecurrenceStatus.ENDED:
                self.db.update_template_status(template.id, RecurrenceStatus.ENDED)
                logger.info("Recurrence %s ended on %s", template.id, template.end_date)
            return result

        dates = self.candidate_dates(template, as_of, options)
        logger.debug(
            "Recurrence %s candidates: %s",
            template.id,
            ", ".join(day_key(d) for d in dates),
        )
        if not dates:
            return result

        covered = self.covered_days(template) if options.skip_existing else set()

        pending: list[NewTransaction] = []
        for due_date in dates:
            if day_key(due_date) in covered:
                result.skipped_count += 1
                continue
            pending.append(build_instance(template, due_date))

        result.transaction_ids = commit_in_chunks(self.db, pending, self.chunk_size)
        result.generated_count = len(result.transaction_ids)
        if pending:
            result.last_generated_date = pending[-1].due_date

        # Informational only; the next pass starts from start_date again
        last_candidate = dates[-1]
        self.db.update_template_bookkeeping(
            template.id,
            last_generated_date=last_candidate,
            next_occurrence_date=next_occurrence(
                last_candidate,
                template.frequency,
                template.day_of_month,
                template.day_of_week,
            ),
        )

        logger.info(
            "Recurrence %s: %d created, %d skipped",
            template.id,
            result.generated_count,
            result.skipped_count,
        )
        return result

    def regenerate_all(
        self,
        owner_id: Optional[str] = None,
        company_id: Optional[str] = None,
        months_ahead: Optional[int] = None,
        as_of: Optional[date] = None,
    ) -> RegenerationSummary:
        """Generate transactions for every active template.

        A failing template is logged and reported in ``errors`` without
        stopping the run; this method itself never raises.

        Args:
            owner_id: Optional owner filter
            company_id: Optional company filter
            months_ahead: Optional override of each template's window
            as_of: Reference day (defaults to the clock's today)

        Returns:
            RegenerationSummary with totals, per-template details and errors
        """
        summary = RegenerationSummary()
        as_of = as_of or self.clock.today()
        options = GenerationOptions(months_ahead=months_ahead, skip_existing=True)

        try:
            template_ids = self.db.list_active_template_ids(owner_id=owner_id, company_id=company_id)
        except Exception as e:
            logger.exception("Could not list active recurrences")
            summary.errors.append(f"Could not list active recurrences: {e}")
            return summary

        logger.info("Regenerating %d active recurrences as of %s", len(template_ids), as_of)

        for template_id in template_ids:
            summary.recurrences_processed += 1
            try:
                # Mapping happens here so a malformed row fails on its own
                template = self.db.get_template(template_id)
                if template is None:
                    # Deleted since the listing
                    continue
                result = self.generate(template, as_of, options)
            except Exception as e:
                logger.exception("Failed to generate recurrence %s", template_id)
                summary.errors.append(template_failure(template_id, e))
                continue

            summary.details.append(result)
            summary.total_generated += result.generated_count
            summary.total_skipped += result.skipped_count

        logger.info(
            "Regeneration summary: %d created, %d skipped, %d errors",
            summary.total_generated,
            summary.total_skipped,
            len(summary.errors),
        )
        return summary
