"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic and is the single place where legacy
recurrence rows (``amount``/``active``/``description``/``created_by``) are
normalized into the canonical template entity.
"""

from decimal import Decimal

from treasury.domain import entities as domain
from treasury.database.models import (
    Recurrence as ORMRecurrence,
    RecurrenceVersion as ORMRecurrenceVersion,
    Transaction as ORMTransaction,
)

DEFAULT_TEMPLATE_NAME = "Recurrence"
DEFAULT_MONTHS_AHEAD = 6


def _template_status(orm_recurrence: ORMRecurrence) -> domain.RecurrenceStatus:
    """Resolve status from the canonical column or the legacy ``active`` flag."""
    if orm_recurrence.status:
        return domain.RecurrenceStatus(orm_recurrence.status)
    if orm_recurrence.active is False:
        return domain.RecurrenceStatus.PAUSED
    return domain.RecurrenceStatus.ACTIVE


def template_to_domain(orm_recurrence: ORMRecurrence) -> domain.RecurrenceTemplate:
    """Convert SQLAlchemy Recurrence model to domain RecurrenceTemplate entity."""
    base_amount = orm_recurrence.base_amount
    if base_amount is None:
        base_amount = orm_recurrence.amount
    name = orm_recurrence.name or orm_recurrence.description or DEFAULT_TEMPLATE_NAME

    return domain.RecurrenceTemplate(
        id=orm_recurrence.id,
        owner_id=orm_recurrence.owner_id or orm_recurrence.created_by or "",
        company_id=orm_recurrence.company_id,
        direction=domain.Direction(orm_recurrence.type),
        name=name,
        base_amount=Decimal(base_amount) if base_amount is not None else Decimal("0"),
        frequency=domain.Frequency(orm_recurrence.frequency or domain.Frequency.MONTHLY),
        start_date=orm_recurrence.start_date,
        category=orm_recurrence.category or "",
        third_party_id=orm_recurrence.third_party_id or None,
        third_party_name=orm_recurrence.third_party_name or "",
        account_id=orm_recurrence.account_id or None,
        certainty=domain.Certainty(orm_recurrence.certainty or domain.Certainty.HIGH),
        notes=orm_recurrence.notes or "",
        day_of_month=orm_recurrence.day_of_month,
        day_of_week=orm_recurrence.day_of_week,
        end_date=orm_recurrence.end_date,
        generate_months_ahead=orm_recurrence.generate_months_ahead or DEFAULT_MONTHS_AHEAD,
        last_generated_date=orm_recurrence.last_generated_date,
        next_occurrence_date=orm_recurrence.next_occurrence_date,
        status=_template_status(orm_recurrence),
        created_at=orm_recurrence.created_at,
        updated_at=orm_recurrence.updated_at,
    )


def version_to_domain(orm_version: ORMRecurrenceVersion) -> domain.RecurrenceVersion:
    """Convert SQLAlchemy RecurrenceVersion model to domain RecurrenceVersion entity."""
    return domain.RecurrenceVersion(
        id=orm_version.id,
        recurrence_id=orm_version.recurrence_id,
        amount=orm_version.amount,
        effective_from=orm_version.effective_from,
        version_number=orm_version.version_number,
        effective_to=orm_version.effective_to,
        change_reason=orm_version.change_reason or "",
        is_active=bool(orm_version.is_active),
        created_by=orm_version.created_by or "",
        created_at=orm_version.created_at,
    )


def transaction_to_domain(orm_transaction: ORMTransaction) -> domain.Transaction:
    """Convert SQLAlchemy Transaction model to domain Transaction entity."""
    return domain.Transaction(
        id=orm_transaction.id,
        owner_id=orm_transaction.owner_id,
        company_id=orm_transaction.company_id,
        direction=domain.Direction(orm_transaction.type),
        amount=orm_transaction.amount,
        status=domain.TransactionStatus(orm_transaction.status),
        due_date=orm_transaction.due_date,
        account_id=orm_transaction.account_id,
        paid_date=orm_transaction.paid_date,
        category=orm_transaction.category or "",
        description=orm_transaction.description or "",
        third_party_id=orm_transaction.third_party_id,
        third_party_name=orm_transaction.third_party_name or "",
        notes=orm_transaction.notes or "",
        recurrence=domain.Frequency(orm_transaction.recurrence or domain.Frequency.NONE),
        certainty=domain.Certainty(orm_transaction.certainty or domain.Certainty.HIGH),
        recurrence_id=orm_transaction.recurrence_id,
        is_recurrence_instance=bool(orm_transaction.is_recurrence_instance),
        instance_date=orm_transaction.instance_date,
        overridden_from_recurrence=bool(orm_transaction.overridden_from_recurrence),
        recurrence_version_id=orm_transaction.recurrence_version_id,
        created_at=orm_transaction.created_at,
    )


def new_transaction_to_orm(new_transaction: domain.NewTransaction) -> ORMTransaction:
    """Convert a pending domain NewTransaction into a SQLAlchemy Transaction row."""
    return ORMTransaction(
        owner_id=new_transaction.owner_id,
        company_id=new_transaction.company_id,
        account_id=new_transaction.account_id,
        type=new_transaction.direction.value,
        amount=new_transaction.amount,
        status=new_transaction.status.value,
        due_date=new_transaction.due_date,
        paid_date=new_transaction.paid_date,
        category=new_transaction.category,
        description=new_transaction.description,
        third_party_id=new_transaction.third_party_id,
        third_party_name=new_transaction.third_party_name,
        notes=new_transaction.notes,
        recurrence=new_transaction.recurrence.value,
        certainty=new_transaction.certainty.value,
        recurrence_id=new_transaction.recurrence_id,
        is_recurrence_instance=new_transaction.is_recurrence_instance,
        instance_date=new_transaction.instance_date,
        overridden_from_recurrence=new_transaction.overridden_from_recurrence,
    )
