"""SQLAlchemy ORM models for recurrences, versions, transactions, loans and audit entries"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, Numeric, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

Money = Numeric(14, 2)


def utcnow() -> datetime:
    """Creation timestamps are set client-side so that ordering keeps sub-second precision"""
    return datetime.now(timezone.utc)


class RecurrenceRecord(Base):
    """Recurring income/expense template"""

    __tablename__ = "recurrence"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    company_id = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    name = Column(Text, nullable=False)
    base_amount = Column(Money, nullable=False)
    category = Column(Text, nullable=False, default="")
    third_party_id = Column(Text, nullable=True)
    third_party_name = Column(Text, nullable=False, default="")
    account_id = Column(Text, nullable=True)
    certainty = Column(String(16), nullable=False, default="HIGH")
    notes = Column(Text, nullable=False, default="")
    frequency = Column(String(16), nullable=False)
    day_of_month = Column(Integer, nullable=True)
    day_of_week = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    generate_months_ahead = Column(Integer, nullable=False, default=6)
    last_generated_date = Column(Date, nullable=True)
    next_occurrence_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="ACTIVE")
    current_version_id = Column(UUID(as_uuid=True), nullable=True)
    payment_method = Column(Text, nullable=True)
    charge_account_id = Column(Text, nullable=True)
    supplier_bank_account = Column(Text, nullable=True)
    supplier_invoice_number = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    versions = relationship("RecurrenceVersionRecord", back_populates="recurrence", cascade="all, delete-orphan")


class RecurrenceVersionRecord(Base):
    """Effective-dated amount of a recurrence"""

    __tablename__ = "recurrence_version"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False)
    recurrence_id = Column(UUID(as_uuid=True), ForeignKey("recurrence.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Money, nullable=False)
    effective_from = Column(Date, nullable=False)
    effective_to = Column(Date, nullable=True)
    version_number = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    change_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    recurrence = relationship("RecurrenceRecord", back_populates="versions")


class TransactionRecord(Base):
    """Concrete payment or collection"""

    __tablename__ = "treasury_transaction"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    company_id = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    amount = Column(Money, nullable=False)
    status = Column(String(16), nullable=False, default="PENDING")
    due_date = Column(Date, nullable=False)
    category = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    third_party_id = Column(Text, nullable=True)
    third_party_name = Column(Text, nullable=False, default="")
    account_id = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    payment_method = Column(Text, nullable=True)
    charge_account_id = Column(Text, nullable=True)
    supplier_bank_account = Column(Text, nullable=True)
    supplier_invoice_number = Column(Text, nullable=True)
    recurrence_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    recurrence_version_id = Column(UUID(as_uuid=True), nullable=True)
    loan_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    loan_installment_number = Column(Integer, nullable=True)
    overridden_from_recurrence = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class LoanRecord(Base):
    """Fixed-term amortizing loan"""

    __tablename__ = "loan"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    company_id = Column(Text, nullable=False)
    lender_name = Column(Text, nullable=False)
    alias = Column(Text, nullable=False, default="")
    original_principal = Column(Money, nullable=False, default=0)
    interest_rate = Column(Numeric(7, 4), nullable=False, default=0)
    monthly_payment = Column(Money, nullable=False)
    payment_day = Column(Integer, nullable=False)
    charge_account_id = Column(Text, nullable=True)
    remaining_balance = Column(Money, nullable=False, default=0)
    total_installments = Column(Integer, nullable=False, default=0)
    remaining_installments = Column(Integer, nullable=False)
    paid_installments = Column(Integer, nullable=False, default=0)
    first_pending_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="ACTIVE")
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class AuditLogRecord(Base):
    """Before/after snapshot of a mutating operation"""

    __tablename__ = "audit_log"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Text, nullable=False, index=True)
    action = Column(String(16), nullable=False)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(Text, nullable=False)
    previous_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
