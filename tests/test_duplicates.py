"""Tests for DuplicateCleanupService."""

from datetime import date
from decimal import Decimal

from treasury.domain.duplicates import DuplicateCleanupService, find_duplicates, transaction_key
from treasury.domain.entities import Direction, Frequency, NewTransaction


def _entry(**overrides):
    values = dict(
        owner_id="alice",
        company_id="acme",
        direction=Direction.EXPENSE,
        amount=Decimal("80.00"),
        due_date=date(2025, 2, 5),
        description="Cleaning",
    )
    values.update(overrides)
    return NewTransaction(**values)


def test_keeps_oldest_transaction(temp_db, cleanup_service):
    original, copy = temp_db.insert_transactions([_entry(), _entry()])
    other = temp_db.create_transaction(_entry(due_date=date(2025, 3, 5)))

    report = cleanup_service.cleanup("alice")

    assert report.transactions_analyzed == 3
    assert report.transactions_deleted == 1
    remaining = [t.id for t in temp_db.list_transactions(owner_id="alice")]
    assert remaining == [original, other]
    assert copy not in remaining


def test_different_amount_or_company_is_not_duplicate(temp_db, cleanup_service):
    temp_db.insert_transactions(
        [_entry(), _entry(amount=Decimal("81.00")), _entry(company_id="globex")]
    )

    report = cleanup_service.cleanup("alice")

    assert report.transactions_deleted == 0


def test_other_owner_untouched(temp_db, cleanup_service):
    temp_db.insert_transactions([_entry(owner_id="bob"), _entry(owner_id="bob")])

    report = cleanup_service.cleanup("alice")

    assert report.transactions_analyzed == 0
    assert len(temp_db.list_transactions(owner_id="bob")) == 2


def test_deletes_in_chunks(temp_db, monkeypatch):
    temp_db.insert_transactions([_entry() for _ in range(6)])
    chunk_sizes = []
    original_delete = temp_db.delete_transactions

    def spy(ids):
        chunk_sizes.append(len(ids))
        return original_delete(ids)

    monkeypatch.setattr(temp_db, "delete_transactions", spy)

    report = DuplicateCleanupService(temp_db, chunk_size=2).cleanup("alice")

    assert report.transactions_deleted == 5
    assert chunk_sizes == [2, 2, 1]


def test_duplicate_templates_are_removed(temp_db, cleanup_service, make_template):
    kept = make_template()
    copy = make_template(base_amount=Decimal("1250.00"))
    make_template(frequency=Frequency.QUARTERLY)
    linked = temp_db.create_transaction(
        _entry(recurrence_id=copy.id, is_recurrence_instance=True, amount=Decimal("1250.00"))
    )

    report = cleanup_service.cleanup("alice")

    assert report.templates_analyzed == 3
    assert report.templates_deleted == 1
    assert temp_db.get_template(kept.id) is not None
    assert temp_db.get_template(copy.id) is None
    assert temp_db.get_transaction(linked).recurrence_id is None


def test_find_duplicates_orders_by_creation(temp_db):
    ids = temp_db.insert_transactions([_entry(), _entry(), _entry()])
    transactions = temp_db.list_transactions()

    duplicates = find_duplicates(reversed(transactions), transaction_key)

    assert sorted(t.id for t in duplicates) == ids[1:]
