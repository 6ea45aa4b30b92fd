"""Shared pytest fixtures for treasury tests."""

import tempfile
import os
from datetime import date
from decimal import Decimal
import pytest

from treasury.database.factories import create_sqlite_database
from treasury.domain.clock import FixedClock
from treasury.domain.duplicates import DuplicateCleanupService
from treasury.domain.entities import Direction, Frequency
from treasury.domain.generation import RecurrenceGenerator
from treasury.domain.recurrence import RecurrenceService
from treasury.domain.transaction import TransactionService

# Reference day for service tests (a Friday)
TODAY = date(2025, 1, 10)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def clock():
    """Clock frozen at TODAY."""
    return FixedClock(TODAY)


@pytest.fixture
def generator(temp_db, clock):
    """Create a RecurrenceGenerator with a temporary database."""
    return RecurrenceGenerator(temp_db, clock)


@pytest.fixture
def recurrence_service(temp_db, clock, generator):
    """Create a RecurrenceService with a temporary database."""
    return RecurrenceService(temp_db, clock, generator)


@pytest.fixture
def transaction_service(temp_db, clock, generator):
    """Create a TransactionService with a temporary database."""
    return TransactionService(temp_db, clock, generator)


@pytest.fixture
def cleanup_service(temp_db):
    """Create a DuplicateCleanupService with a temporary database."""
    return DuplicateCleanupService(temp_db)


@pytest.fixture
def make_template(temp_db):
    """Store a template directly, bypassing service validation.

    Defaults describe a monthly rent of 1200.00 due on the 15th.
    """

    def _make(**overrides):
        values = dict(
            owner_id="alice",
            company_id="acme",
            direction=Direction.EXPENSE,
            name="Rent",
            base_amount=Decimal("1200.00"),
            frequency=Frequency.MONTHLY,
            start_date=date(2025, 1, 1),
            day_of_month=15,
        )
        values.update(overrides)
        template_id = temp_db.create_template(**values)
        return temp_db.get_template(template_id)

    return _make


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
