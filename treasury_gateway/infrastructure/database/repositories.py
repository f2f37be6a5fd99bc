"""Data access layer for treasury entities

Queries filter on a single column (owner, recurrence or loan) and leave any
multi-field ordering or grouping to the caller, in memory.
"""

import uuid
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from treasury_gateway.infrastructure.database.models import (
    AuditLogRecord,
    LoanRecord,
    RecurrenceRecord,
    RecurrenceVersionRecord,
    TransactionRecord,
)
from treasury_gateway.domain.exceptions import RecordNotFoundError
from treasury_gateway.domain.models import (
    Frequency,
    Loan,
    LoanStatus,
    Recurrence,
    RecurrenceStatus,
    RecurrenceVersion,
    TransactionInstance,
    TransactionStatus,
    TransactionType,
)


def parse_id(value: Any, entity: str) -> uuid.UUID:
    """Convert an external identifier; malformed ids cannot exist, so they are not found"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise RecordNotFoundError(f"{entity} {value} not found")


def _optional_id(value: Any) -> Optional[uuid.UUID]:
    return uuid.UUID(str(value)) if value else None


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


class RecurrenceRepository:
    """Repository for recurrence templates"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, recurrence: Recurrence) -> RecurrenceRecord:
        """Stage a new recurrence; the caller commits"""
        db_recurrence = RecurrenceRecord(
            id=parse_id(recurrence.id, "Recurrence"),
            owner_id=recurrence.owner_id,
            company_id=recurrence.company_id,
            type=recurrence.type.value,
            name=recurrence.name,
            base_amount=recurrence.base_amount,
            category=recurrence.category,
            third_party_id=recurrence.third_party_id,
            third_party_name=recurrence.third_party_name,
            account_id=recurrence.account_id,
            certainty=recurrence.certainty,
            notes=recurrence.notes,
            frequency=recurrence.frequency.value,
            day_of_month=recurrence.day_of_month,
            day_of_week=recurrence.day_of_week,
            start_date=recurrence.start_date,
            end_date=recurrence.end_date,
            generate_months_ahead=recurrence.generate_months_ahead,
            last_generated_date=recurrence.last_generated_date,
            next_occurrence_date=recurrence.next_occurrence_date,
            status=recurrence.status.value,
            current_version_id=_optional_id(recurrence.current_version_id),
            payment_method=recurrence.payment_method,
            charge_account_id=recurrence.charge_account_id,
            supplier_bank_account=recurrence.supplier_bank_account,
            supplier_invoice_number=recurrence.supplier_invoice_number,
        )
        self.db.add(db_recurrence)
        self.db.flush()
        return db_recurrence

    def get(self, recurrence_id: Any, for_update: bool = False) -> Optional[RecurrenceRecord]:
        """Fetch one recurrence, optionally row-locked for a read-modify-write"""
        query = self.db.query(RecurrenceRecord).filter(
            RecurrenceRecord.id == parse_id(recurrence_id, "Recurrence")
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_by_owner(self, owner_id: str) -> List[RecurrenceRecord]:
        return self.db.query(RecurrenceRecord).filter(RecurrenceRecord.owner_id == owner_id).all()

    def update(self, db_recurrence: RecurrenceRecord, values: Dict[str, Any]) -> RecurrenceRecord:
        for name, value in values.items():
            if name == "current_version_id":
                value = _optional_id(value)
            elif hasattr(value, "value"):
                value = value.value
            setattr(db_recurrence, name, value)
        self.db.flush()
        return db_recurrence

    def delete_many(self, recurrence_ids: Iterable[Any]) -> int:
        ids = [parse_id(i, "Recurrence") for i in recurrence_ids]
        if not ids:
            return 0
        return (
            self.db.query(RecurrenceRecord)
            .filter(RecurrenceRecord.id.in_(ids))
            .delete(synchronize_session=False)
        )

    def delete(self, db_recurrence: RecurrenceRecord) -> None:
        self.db.delete(db_recurrence)

    @staticmethod
    def to_domain(db_recurrence: RecurrenceRecord) -> Recurrence:
        return Recurrence(
            id=str(db_recurrence.id),
            owner_id=db_recurrence.owner_id,
            company_id=db_recurrence.company_id,
            type=TransactionType(db_recurrence.type),
            name=db_recurrence.name,
            base_amount=db_recurrence.base_amount,
            frequency=Frequency(db_recurrence.frequency),
            start_date=db_recurrence.start_date,
            category=db_recurrence.category or "",
            day_of_month=db_recurrence.day_of_month,
            day_of_week=db_recurrence.day_of_week,
            end_date=db_recurrence.end_date,
            generate_months_ahead=db_recurrence.generate_months_ahead,
            last_generated_date=db_recurrence.last_generated_date,
            next_occurrence_date=db_recurrence.next_occurrence_date,
            status=RecurrenceStatus(db_recurrence.status),
            current_version_id=_optional_str(db_recurrence.current_version_id),
            third_party_id=db_recurrence.third_party_id,
            third_party_name=db_recurrence.third_party_name or "",
            account_id=db_recurrence.account_id,
            certainty=db_recurrence.certainty,
            notes=db_recurrence.notes or "",
            payment_method=db_recurrence.payment_method,
            charge_account_id=db_recurrence.charge_account_id,
            supplier_bank_account=db_recurrence.supplier_bank_account,
            supplier_invoice_number=db_recurrence.supplier_invoice_number,
            created_at=db_recurrence.created_at,
        )


class VersionRepository:
    """Repository for recurrence amendment versions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, version_id: Any) -> Optional[RecurrenceVersionRecord]:
        return (
            self.db.query(RecurrenceVersionRecord)
            .filter(RecurrenceVersionRecord.id == parse_id(version_id, "Version"))
            .first()
        )

    def list_for_recurrence(self, recurrence_id: Any) -> List[RecurrenceVersionRecord]:
        """All versions of a recurrence, unordered"""
        return (
            self.db.query(RecurrenceVersionRecord)
            .filter(RecurrenceVersionRecord.recurrence_id == parse_id(recurrence_id, "Recurrence"))
            .all()
        )

    def add(self, version: RecurrenceVersion) -> RecurrenceVersionRecord:
        db_version = RecurrenceVersionRecord(
            id=parse_id(version.id, "Version"),
            owner_id=version.owner_id,
            recurrence_id=parse_id(version.recurrence_id, "Recurrence"),
            amount=version.amount,
            effective_from=version.effective_from,
            effective_to=version.effective_to,
            version_number=version.version_number,
            is_active=version.is_active,
            change_reason=version.change_reason,
        )
        self.db.add(db_version)
        return db_version

    def save_bounds(self, db_version: RecurrenceVersionRecord, version: RecurrenceVersion) -> None:
        """Persist the mutable part of a version: its closing date and active flag"""
        db_version.effective_to = version.effective_to
        db_version.is_active = version.is_active

    def delete(self, db_version: RecurrenceVersionRecord) -> None:
        self.db.delete(db_version)

    def delete_for_recurrences(self, recurrence_ids: Iterable[Any]) -> int:
        ids = [parse_id(i, "Recurrence") for i in recurrence_ids]
        if not ids:
            return 0
        return (
            self.db.query(RecurrenceVersionRecord)
            .filter(RecurrenceVersionRecord.recurrence_id.in_(ids))
            .delete(synchronize_session=False)
        )

    @staticmethod
    def to_domain(db_version: RecurrenceVersionRecord) -> RecurrenceVersion:
        return RecurrenceVersion(
            id=str(db_version.id),
            owner_id=db_version.owner_id,
            recurrence_id=str(db_version.recurrence_id),
            amount=db_version.amount,
            effective_from=db_version.effective_from,
            version_number=db_version.version_number,
            effective_to=db_version.effective_to,
            is_active=db_version.is_active,
            change_reason=db_version.change_reason,
            created_at=db_version.created_at,
        )


class TransactionRepository:
    """Repository for transaction instances"""

    def __init__(self, db: Session):
        self.db = db

    def add_many(self, instances: Iterable[TransactionInstance]) -> List[TransactionRecord]:
        """Stage new instances; ids are assigned before flush"""
        db_transactions = []
        for inst in instances:
            db_transaction = TransactionRecord(
                id=uuid.uuid4(),
                owner_id=inst.owner_id,
                company_id=inst.company_id,
                type=inst.type.value,
                amount=inst.amount,
                status=inst.status.value,
                due_date=inst.due_date,
                category=inst.category,
                description=inst.description,
                third_party_id=inst.third_party_id,
                third_party_name=inst.third_party_name,
                account_id=inst.account_id,
                notes=inst.notes,
                payment_method=inst.payment_method,
                charge_account_id=inst.charge_account_id,
                supplier_bank_account=inst.supplier_bank_account,
                supplier_invoice_number=inst.supplier_invoice_number,
                recurrence_id=_optional_id(inst.recurrence_id),
                recurrence_version_id=_optional_id(inst.recurrence_version_id),
                loan_id=_optional_id(inst.loan_id),
                loan_installment_number=inst.loan_installment_number,
                overridden_from_recurrence=inst.overridden_from_recurrence,
            )
            if inst.created_at is not None:
                db_transaction.created_at = inst.created_at
            self.db.add(db_transaction)
            db_transactions.append(db_transaction)
        return db_transactions

    def list_by_owner(self, owner_id: str) -> List[TransactionRecord]:
        return self.db.query(TransactionRecord).filter(TransactionRecord.owner_id == owner_id).all()

    def list_by_recurrence(self, recurrence_id: Any) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.recurrence_id == parse_id(recurrence_id, "Recurrence"))
            .all()
        )

    def list_by_loan(self, loan_id: Any) -> List[TransactionRecord]:
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.loan_id == parse_id(loan_id, "Loan"))
            .all()
        )

    def update_many(self, transaction_ids: Iterable[Any], values: Dict[str, Any]) -> int:
        """Bulk update by primary key; returns matched row count"""
        ids = [parse_id(i, "Transaction") for i in transaction_ids]
        if not ids:
            return 0
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.id.in_(ids))
            .update(values, synchronize_session=False)
        )

    def delete_many(self, transaction_ids: Iterable[Any]) -> int:
        ids = [parse_id(i, "Transaction") for i in transaction_ids]
        if not ids:
            return 0
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.id.in_(ids))
            .delete(synchronize_session=False)
        )

    def detach_from_recurrences(self, recurrence_ids: Iterable[Any]) -> int:
        """Unlink instances from recurrences that are being removed"""
        ids = [parse_id(i, "Recurrence") for i in recurrence_ids]
        if not ids:
            return 0
        return (
            self.db.query(TransactionRecord)
            .filter(TransactionRecord.recurrence_id.in_(ids))
            .update(
                {"recurrence_id": None, "recurrence_version_id": None},
                synchronize_session=False,
            )
        )

    @staticmethod
    def to_domain(db_transaction: TransactionRecord) -> TransactionInstance:
        return TransactionInstance(
            id=str(db_transaction.id),
            owner_id=db_transaction.owner_id,
            company_id=db_transaction.company_id,
            type=TransactionType(db_transaction.type),
            amount=db_transaction.amount,
            due_date=db_transaction.due_date,
            description=db_transaction.description or "",
            status=TransactionStatus(db_transaction.status),
            category=db_transaction.category or "",
            third_party_id=db_transaction.third_party_id,
            third_party_name=db_transaction.third_party_name or "",
            account_id=db_transaction.account_id,
            notes=db_transaction.notes or "",
            payment_method=db_transaction.payment_method,
            charge_account_id=db_transaction.charge_account_id,
            supplier_bank_account=db_transaction.supplier_bank_account,
            supplier_invoice_number=db_transaction.supplier_invoice_number,
            recurrence_id=_optional_str(db_transaction.recurrence_id),
            recurrence_version_id=_optional_str(db_transaction.recurrence_version_id),
            loan_id=_optional_str(db_transaction.loan_id),
            loan_installment_number=db_transaction.loan_installment_number,
            overridden_from_recurrence=db_transaction.overridden_from_recurrence,
            created_at=db_transaction.created_at,
        )


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, loan: Loan) -> LoanRecord:
        db_loan = LoanRecord(
            id=parse_id(loan.id, "Loan"),
            owner_id=loan.owner_id,
            company_id=loan.company_id,
            lender_name=loan.lender_name,
            alias=loan.alias,
            original_principal=loan.original_principal,
            interest_rate=loan.interest_rate,
            monthly_payment=loan.monthly_payment,
            payment_day=loan.payment_day,
            charge_account_id=loan.charge_account_id,
            remaining_balance=loan.remaining_balance,
            total_installments=loan.total_installments,
            remaining_installments=loan.remaining_installments,
            paid_installments=loan.paid_installments,
            first_pending_date=loan.first_pending_date,
            end_date=loan.end_date,
            status=loan.status.value,
            notes=loan.notes,
        )
        self.db.add(db_loan)
        self.db.flush()
        return db_loan

    def get(self, loan_id: Any) -> Optional[LoanRecord]:
        return self.db.query(LoanRecord).filter(LoanRecord.id == parse_id(loan_id, "Loan")).first()

    def list_by_owner(self, owner_id: str) -> List[LoanRecord]:
        return self.db.query(LoanRecord).filter(LoanRecord.owner_id == owner_id).all()

    def delete(self, db_loan: LoanRecord) -> None:
        self.db.delete(db_loan)

    @staticmethod
    def to_domain(db_loan: LoanRecord) -> Loan:
        return Loan(
            id=str(db_loan.id),
            owner_id=db_loan.owner_id,
            company_id=db_loan.company_id,
            lender_name=db_loan.lender_name,
            monthly_payment=db_loan.monthly_payment,
            payment_day=db_loan.payment_day,
            first_pending_date=db_loan.first_pending_date,
            remaining_installments=db_loan.remaining_installments,
            interest_rate=db_loan.interest_rate,
            original_principal=db_loan.original_principal,
            total_installments=db_loan.total_installments,
            paid_installments=db_loan.paid_installments,
            remaining_balance=db_loan.remaining_balance,
            alias=db_loan.alias or "",
            charge_account_id=db_loan.charge_account_id,
            end_date=db_loan.end_date,
            status=LoanStatus(db_loan.status),
            notes=db_loan.notes or "",
            created_at=db_loan.created_at,
        )


class AuditRepository:
    """Repository for audit entries"""

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        owner_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        previous_values: Optional[Dict[str, Any]],
        new_values: Optional[Dict[str, Any]],
    ) -> AuditLogRecord:
        db_entry = AuditLogRecord(
            owner_id=owner_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            previous_values=previous_values,
            new_values=new_values,
        )
        self.db.add(db_entry)
        return db_entry

    def list_by_owner(self, owner_id: str, limit: int = 50) -> List[AuditLogRecord]:
        """Most recent entries first"""
        return (
            self.db.query(AuditLogRecord)
            .filter(AuditLogRecord.owner_id == owner_id)
            .order_by(AuditLogRecord.created_at.desc())
            .limit(limit)
            .all()
        )
