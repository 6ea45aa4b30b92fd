"""Tests for the recurrence generation orchestrator."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from treasury.database.models import Recurrence as ORMRecurrence
from treasury.domain import generation
from treasury.domain.entities import (
    Direction,
    Frequency,
    GenerationOptions,
    RecurrenceStatus,
    TransactionStatus,
)
from treasury.domain.errors import MalformedTemplateError, StoreError
from treasury.domain.generation import commit_in_chunks

TODAY = date(2025, 1, 10)

MONTHLY_DATES = [date(2025, m, 15) for m in range(1, 7)]


def _linked(db, template_id):
    return db.list_transactions_by_recurrence(template_id)


class TestGenerate:
    """Tests for RecurrenceGenerator.generate."""

    def test_generates_window(self, temp_db, generator, make_template):
        template = make_template()

        result = generator.generate(template)

        assert result.recurrence_id == template.id
        assert result.generated_count == 6
        assert result.skipped_count == 0
        assert result.last_generated_date == date(2025, 6, 15)
        assert len(result.transaction_ids) == 6

        transactions = _linked(temp_db, template.id)
        assert [t.due_date for t in transactions] == MONTHLY_DATES
        first = transactions[0]
        assert first.status == TransactionStatus.PENDING
        assert first.is_recurrence_instance
        assert first.instance_date == "2025-01"
        assert first.description == "Rent"
        assert first.amount == Decimal("1200.00")
        assert first.direction == Direction.EXPENSE
        assert first.recurrence == Frequency.MONTHLY
        assert not first.overridden_from_recurrence

    def test_updates_bookkeeping(self, temp_db, generator, make_template):
        template = make_template()

        generator.generate(template)

        stored = temp_db.get_template(template.id)
        assert stored.last_generated_date == date(2025, 6, 15)
        assert stored.next_occurrence_date == date(2025, 7, 15)

    def test_is_idempotent(self, temp_db, generator, make_template):
        template = make_template()
        generator.generate(template)

        result = generator.generate(temp_db.get_template(template.id))

        assert result.generated_count == 0
        assert result.skipped_count == 6
        assert result.last_generated_date is None
        assert len(_linked(temp_db, template.id)) == 6

    def test_window_slides_with_today(self, temp_db, generator, make_template):
        template = make_template()
        generator.generate(template)

        result = generator.generate(temp_db.get_template(template.id), as_of=date(2025, 2, 20))

        assert result.generated_count == 2
        assert result.skipped_count == 4
        assert [t.due_date for t in _linked(temp_db, template.id)][-2:] == [
            date(2025, 7, 15),
            date(2025, 8, 15),
        ]

    def test_months_ahead_option_overrides_template(self, generator, make_template):
        template = make_template(generate_months_ahead=12)

        result = generator.generate(template, options=GenerationOptions(months_ahead=2))

        assert result.generated_count == 2

    def test_bounded_series_generates_to_end_date(self, generator, make_template):
        template = make_template(end_date=date(2026, 12, 31))

        result = generator.generate(template)

        assert result.generated_count == 24
        assert result.last_generated_date == date(2026, 12, 15)

    def test_elapsed_end_date_marks_template_ended(self, temp_db, generator, make_template):
        template = make_template(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))

        result = generator.generate(template)

        assert result.generated_count == 0
        assert result.skipped_count == 0
        assert temp_db.get_template(template.id).status == RecurrenceStatus.ENDED
        assert _linked(temp_db, template.id) == []

    def test_end_date_today_still_generates(self, generator, make_template):
        template = make_template(
            start_date=date(2024, 1, 1), end_date=TODAY, day_of_month=10
        )

        result = generator.generate(template)

        assert result.generated_count == 1
        assert result.last_generated_date == TODAY

    def test_cross_template_duplicate_by_third_party(self, temp_db, generator, make_template):
        first = make_template(third_party_id="landlord", name="Office rent")
        second = make_template(third_party_id="landlord", name="Rent (copy)")
        generator.generate(first)

        result = generator.generate(second)

        assert result.generated_count == 0
        assert result.skipped_count == 6
        assert len(temp_db.list_transactions(owner_id="alice")) == 6

    def test_cross_template_duplicate_by_description(self, temp_db, generator, make_template):
        first = make_template()
        second = make_template()
        generator.generate(first)

        result = generator.generate(second)

        assert result.generated_count == 0
        assert len(temp_db.list_transactions(owner_id="alice")) == 6

    def test_different_amount_is_not_a_duplicate(self, temp_db, generator, make_template):
        generator.generate(make_template())

        result = generator.generate(make_template(base_amount=Decimal("900.00")))

        assert result.generated_count == 6
        assert len(temp_db.list_transactions(owner_id="alice")) == 12

    def test_other_company_is_not_a_duplicate(self, generator, make_template):
        generator.generate(make_template())

        result = generator.generate(make_template(company_id="globex"))

        assert result.generated_count == 6

    def test_skip_existing_disabled(self, temp_db, generator, make_template):
        template = make_template()
        generator.generate(template)

        result = generator.generate(template, options=GenerationOptions(skip_existing=False))

        assert result.generated_count == 6
        assert len(_linked(temp_db, template.id)) == 12

    def test_weekly_template(self, temp_db, generator, make_template):
        template = make_template(
            frequency=Frequency.WEEKLY, day_of_month=None, day_of_week=1, generate_months_ahead=1
        )

        result = generator.generate(template)

        assert result.generated_count == 5
        assert all(t.due_date.weekday() == 0 for t in _linked(temp_db, template.id))

    def test_missing_day_of_month_is_malformed(self, generator, make_template):
        template = make_template(day_of_month=None)

        with pytest.raises(MalformedTemplateError):
            generator.generate(template)

    def test_missing_day_of_week_is_malformed(self, generator, make_template):
        template = make_template(frequency=Frequency.BIWEEKLY, day_of_week=None)

        with pytest.raises(MalformedTemplateError):
            generator.generate(template)

    def test_none_frequency_is_malformed(self, generator, make_template):
        template = make_template(frequency=Frequency.NONE)

        with pytest.raises(MalformedTemplateError):
            generator.generate(template)

    def test_zero_amount_is_malformed(self, temp_db, generator, make_template):
        template = make_template(base_amount=Decimal("0"))

        with pytest.raises(MalformedTemplateError):
            generator.generate(template)

        assert _linked(temp_db, template.id) == []


class TestChunkedCommit:
    """Tests for batch writes."""

    def test_thousand_candidates_commit_in_three_chunks(
        self, temp_db, generator, make_template, monkeypatch
    ):
        candidates = [TODAY + timedelta(days=i) for i in range(1000)]
        monkeypatch.setattr(generation, "occurrence_dates", lambda *args, **kwargs: candidates)

        chunk_sizes = []
        original_insert = temp_db.insert_transactions

        def spy(rows):
            chunk_sizes.append(len(rows))
            return original_insert(rows)

        monkeypatch.setattr(temp_db, "insert_transactions", spy)
        template = make_template(frequency=Frequency.DAILY, day_of_month=None, start_date=TODAY)

        result = generator.generate(template)

        assert result.generated_count == 1000
        assert chunk_sizes == [450, 450, 100]
        assert len(_linked(temp_db, template.id)) == 1000

    def test_failed_chunk_keeps_earlier_chunks(self, temp_db, generator, make_template, monkeypatch):
        candidates = [TODAY + timedelta(days=i) for i in range(600)]
        monkeypatch.setattr(generation, "occurrence_dates", lambda *args, **kwargs: candidates)

        calls = []
        original_insert = temp_db.insert_transactions

        def failing_second_chunk(rows):
            calls.append(len(rows))
            if len(calls) == 2:
                raise StoreError("disk full")
            return original_insert(rows)

        monkeypatch.setattr(temp_db, "insert_transactions", failing_second_chunk)
        template = make_template(frequency=Frequency.DAILY, day_of_month=None, start_date=TODAY)

        with pytest.raises(StoreError):
            generator.generate(template)

        assert len(_linked(temp_db, template.id)) == 450

    def test_commit_in_chunks_empty(self, temp_db):
        assert commit_in_chunks(temp_db, []) == []


class TestRegenerateAll:
    """Tests for RecurrenceGenerator.regenerate_all."""

    def test_summarizes_run(self, generator, make_template):
        rent = make_template()
        salary = make_template(name="Salary", direction=Direction.INCOME, day_of_month=28)

        summary = generator.regenerate_all()

        assert summary.recurrences_processed == 2
        assert summary.total_generated == 12
        assert summary.total_skipped == 0
        assert summary.errors == []
        assert {d.recurrence_id for d in summary.details} == {rent.id, salary.id}

    def test_second_run_skips_everything(self, generator, make_template):
        make_template()
        generator.regenerate_all()

        summary = generator.regenerate_all()

        assert summary.total_generated == 0
        assert summary.total_skipped == 6

    def test_malformed_template_does_not_stop_run(self, generator, make_template):
        broken = make_template(name="Broken", day_of_month=None)
        make_template()

        summary = generator.regenerate_all()

        assert summary.recurrences_processed == 2
        assert summary.total_generated == 6
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith(f"Template {broken.id}: ")
        assert "day of month" in summary.errors[0]

    def test_filters_by_owner_and_company(self, generator, make_template):
        make_template()
        make_template(company_id="globex")
        make_template(owner_id="bob")

        summary = generator.regenerate_all(owner_id="alice", company_id="acme")

        assert summary.recurrences_processed == 1

    def test_months_ahead_override(self, generator, make_template):
        make_template()

        summary = generator.regenerate_all(months_ahead=2)

        assert summary.total_generated == 2

    def test_skips_inactive_templates(self, generator, make_template):
        make_template(status=RecurrenceStatus.PAUSED)
        make_template(status=RecurrenceStatus.ENDED)

        summary = generator.regenerate_all()

        assert summary.recurrences_processed == 0
        assert summary.total_generated == 0

    def test_ended_template_leaves_active_set(self, temp_db, generator, make_template):
        make_template(start_date=date(2024, 1, 1), end_date=date(2024, 12, 31))

        generator.regenerate_all()
        summary = generator.regenerate_all()

        assert summary.recurrences_processed == 0

    def test_legacy_templates_are_generated(self, temp_db, generator):
        session = temp_db._get_session()
        session.add_all(
            [
                ORMRecurrence(
                    company_id="acme",
                    type="EXPENSE",
                    start_date=date(2025, 1, 1),
                    day_of_month=5,
                    amount=Decimal("99.90"),
                    active=True,
                    description="Internet",
                    created_by="alice",
                ),
                ORMRecurrence(
                    company_id="acme",
                    type="EXPENSE",
                    start_date=date(2025, 1, 1),
                    day_of_month=5,
                    amount=Decimal("30.00"),
                    active=False,
                    description="Old phone plan",
                    created_by="alice",
                ),
            ]
        )
        session.commit()

        summary = generator.regenerate_all(owner_id="alice")

        assert summary.recurrences_processed == 1
        assert summary.total_generated == 6
        transactions = temp_db.list_transactions(owner_id="alice")
        assert {t.description for t in transactions} == {"Internet"}
        assert {t.amount for t in transactions} == {Decimal("99.90")}
        assert transactions[0].due_date == date(2025, 2, 5)

    def test_store_failure_is_reported(self, temp_db, generator, make_template, monkeypatch):
        template = make_template()

        def failing_insert(rows):
            raise StoreError("Batch insert failed: locked")

        monkeypatch.setattr(temp_db, "insert_transactions", failing_insert)

        summary = generator.regenerate_all()

        assert summary.errors == [f"Template {template.id}: Batch insert failed: locked"]
        assert summary.details == []

    def test_unreadable_row_does_not_stop_run(self, temp_db, generator, make_template):
        good = make_template()
        session = temp_db._get_session()
        bad = ORMRecurrence(
            owner_id="alice",
            company_id="acme",
            type="EXPENSE",
            name="Imported",
            base_amount=Decimal("50.00"),
            frequency="MONTHLY",
            day_of_month=3,
            start_date=date(2025, 1, 1),
            certainty="ALTA",
            status="ACTIVE",
        )
        session.add(bad)
        session.commit()

        summary = generator.regenerate_all()

        assert summary.recurrences_processed == 2
        assert summary.total_generated == 6
        assert [d.recurrence_id for d in summary.details] == [good.id]
        assert len(summary.errors) == 1
        assert summary.errors[0].startswith(f"Template {bad.id}: ")
        assert "ALTA" in summary.errors[0]

    def test_legacy_row_without_amount_is_malformed(self, temp_db, generator):
        session = temp_db._get_session()
        legacy = ORMRecurrence(
            company_id="acme",
            type="EXPENSE",
            start_date=date(2025, 1, 1),
            day_of_month=5,
            active=True,
            description="Unknown fee",
            created_by="alice",
        )
        session.add(legacy)
        session.commit()

        summary = generator.regenerate_all(owner_id="alice")

        assert summary.total_generated == 0
        assert summary.errors == [
            f"Template {legacy.id}: Base amount must be greater than zero (got 0)"
        ]
        assert temp_db.list_transactions(owner_id="alice") == []
