"""Domain model entities for treasury.

These are pure data classes representing business concepts, independent of
database schema. The recurrence engine only ever sees these shapes; legacy
storage layouts are normalized by the database mappers before reaching here.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class Frequency(str, Enum):
    """Recurrence frequency of a template or transaction."""

    NONE = "NONE"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


# Frequencies anchored on a day of the month
MONTH_ANCHORED = frozenset({Frequency.MONTHLY, Frequency.QUARTERLY, Frequency.YEARLY})

# Frequencies anchored on a day of the week (0 = Sunday)
WEEK_ANCHORED = frozenset({Frequency.WEEKLY, Frequency.BIWEEKLY})


class Direction(str, Enum):
    """Money flow direction."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Certainty(str, Enum):
    """Confidence tier of an expected cash flow."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RecurrenceStatus(str, Enum):
    """Lifecycle status of a recurrence template."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class TransactionStatus(str, Enum):
    """Settlement status of a ledger transaction."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class RecurrenceTemplate:
    """Recurring obligation (payroll, rent, subscription) domain entity."""

    id: int
    owner_id: str
    company_id: str
    direction: Direction
    name: str
    base_amount: Decimal
    frequency: Frequency
    start_date: date
    category: str = ""
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    account_id: Optional[str] = None
    certainty: Certainty = Certainty.HIGH
    notes: str = ""
    day_of_month: Optional[int] = None
    day_of_week: Optional[int] = None
    end_date: Optional[date] = None
    generate_months_ahead: int = 6
    last_generated_date: Optional[date] = None
    next_occurrence_date: Optional[date] = None
    status: RecurrenceStatus = RecurrenceStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Transaction:
    """Ledger transaction domain entity."""

    id: int
    owner_id: str
    company_id: str
    direction: Direction
    amount: Decimal
    status: TransactionStatus
    due_date: date
    account_id: Optional[str] = None
    paid_date: Optional[date] = None
    category: str = ""
    description: str = ""
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    notes: str = ""
    recurrence: Frequency = Frequency.NONE
    certainty: Certainty = Certainty.HIGH
    recurrence_id: Optional[int] = None
    is_recurrence_instance: bool = False
    instance_date: Optional[str] = None
    overridden_from_recurrence: bool = False
    recurrence_version_id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class RecurrenceVersion:
    """Amount of a recurrence template effective from a given day.

    Versions of one template are numbered from 1; only the latest is active
    and open ended, each earlier one closes the day before its successor.
    """

    id: int
    recurrence_id: int
    amount: Decimal
    effective_from: date
    version_number: int
    effective_to: Optional[date] = None
    change_reason: str = ""
    is_active: bool = True
    created_by: str = ""
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class NewTransaction:
    """Transaction values awaiting insertion (no identity yet)."""

    owner_id: str
    company_id: str
    direction: Direction
    amount: Decimal
    due_date: date
    status: TransactionStatus = TransactionStatus.PENDING
    account_id: Optional[str] = None
    paid_date: Optional[date] = None
    category: str = ""
    description: str = ""
    third_party_id: Optional[str] = None
    third_party_name: str = ""
    notes: str = ""
    recurrence: Frequency = Frequency.NONE
    certainty: Certainty = Certainty.HIGH
    recurrence_id: Optional[int] = None
    is_recurrence_instance: bool = False
    instance_date: Optional[str] = None
    overridden_from_recurrence: bool = False


@dataclass(frozen=True)
class GenerationOptions:
    """Options for a single generation pass."""

    months_ahead: Optional[int] = None
    skip_existing: bool = True


@dataclass
class GenerationResult:
    """Outcome of generating transactions for one template."""

    recurrence_id: int
    generated_count: int = 0
    skipped_count: int = 0
    transaction_ids: list[int] = field(default_factory=list)
    last_generated_date: Optional[date] = None


@dataclass
class RegenerationSummary:
    """Aggregate outcome of a regeneration run over many templates."""

    recurrences_processed: int = 0
    total_generated: int = 0
    total_skipped: int = 0
    details: list[GenerationResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class TemplateUpdate:
    """Outcome of editing a recurrence template."""

    template_id: int
    regenerated: bool = False
    deleted_count: int = 0
    generation: Optional[GenerationResult] = None


@dataclass
class CleanupReport:
    """Outcome of a duplicate cleanup run."""

    transactions_analyzed: int = 0
    transactions_deleted: int = 0
    templates_analyzed: int = 0
    templates_deleted: int = 0


@dataclass
class AmountChange:
    """Outcome of recording a new amount version on a template."""

    version: RecurrenceVersion
    updated_count: int = 0


@dataclass
class MigrationReport:
    """Outcome of linking recurring transactions that have no template."""

    processed: int = 0
    recurrences_created: int = 0
    transactions_generated: int = 0
    errors: list[str] = field(default_factory=list)
