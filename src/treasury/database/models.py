"""SQLAlchemy models for treasury database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Index,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class Recurrence(Base):
    """Recurrence template model.

    Rows written before the canonical schema may carry only the legacy
    columns (``amount``, ``active``, ``description``, ``created_by``); the
    mappers fold them into the canonical fields on read.
    """

    __tablename__ = "recurrences"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=True)
    company_id = Column(String, nullable=False)
    account_id = Column(String, nullable=True)
    type = Column(String, nullable=False)
    name = Column(String, nullable=True)
    base_amount = Column(Numeric(14, 2), nullable=True)
    category = Column(String, nullable=True)
    third_party_id = Column(String, nullable=True)
    third_party_name = Column(String, nullable=True)
    certainty = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    frequency = Column(String, nullable=True)
    day_of_month = Column(Integer, nullable=True)
    day_of_week = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    generate_months_ahead = Column(Integer, nullable=True)
    last_generated_date = Column(Date, nullable=True)
    next_occurrence_date = Column(Date, nullable=True)
    status = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Legacy columns
    amount = Column(Numeric(14, 2), nullable=True)
    active = Column(Boolean, nullable=True)
    description = Column(String, nullable=True)
    created_by = Column(String, nullable=True)

    # Relationships
    transactions = relationship("Transaction", back_populates="recurrence_template")
    versions = relationship(
        "RecurrenceVersion",
        back_populates="recurrence_template",
        cascade="all, delete-orphan",
        order_by="RecurrenceVersion.version_number",
    )


class RecurrenceVersion(Base):
    """Amount history of a recurrence template."""

    __tablename__ = "recurrence_versions"

    id = Column(Integer, primary_key=True)
    recurrence_id = Column(Integer, ForeignKey("recurrences.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    change_reason = Column(String, nullable=False, default="")
    version_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (Index("ix_recurrence_versions_recurrence_id", "recurrence_id"),)

    # Relationships
    recurrence_template = relationship("Recurrence", back_populates="versions")


class Transaction(Base):
    """Ledger transaction model."""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    owner_id = Column(String, nullable=False)
    company_id = Column(String, nullable=False)
    account_id = Column(String, nullable=True)
    type = Column(String, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    category = Column(String, nullable=False, default="")
    description = Column(String, nullable=False, default="")
    third_party_id = Column(String, nullable=True)
    third_party_name = Column(String, nullable=False, default="")
    notes = Column(String, nullable=False, default="")
    recurrence = Column(String, nullable=False, default="NONE")
    certainty = Column(String, nullable=False, default="HIGH")
    recurrence_id = Column(Integer, ForeignKey("recurrences.id"), nullable=True)
    is_recurrence_instance = Column(Boolean, default=False, nullable=False)
    instance_date = Column(String, nullable=True)
    overridden_from_recurrence = Column(Boolean, default=False, nullable=False)
    # Amount version last applied to this row, if any
    recurrence_version_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Lookups used by duplicate detection
    __table_args__ = (
        Index("ix_transactions_recurrence_id", "recurrence_id"),
        Index("ix_transactions_match", "owner_id", "company_id", "type", "amount"),
    )

    # Relationships
    recurrence_template = relationship("Recurrence", back_populates="transactions")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
