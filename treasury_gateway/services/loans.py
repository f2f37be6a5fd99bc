"""Loan registration and installment schedule management"""

import uuid
from dataclasses import asdict
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_gateway.domain.amortization import (
    generate_installments,
    loan_end_date,
    loan_summary,
    monthly_payment,
)
from treasury_gateway.domain.exceptions import DependentRecordsExistError
from treasury_gateway.domain.models import Loan, LoanStatus, LoanSummary, TransactionStatus
from treasury_gateway.infrastructure.database.repositories import LoanRepository, TransactionRepository
from treasury_gateway.infrastructure.observability.metrics import record_generation
from treasury_gateway.services.access import require_owned
from treasury_gateway.services.audit import audit_log


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def create_loan(db: Session, owner_id: str, definition: Mapping[str, Any]) -> Tuple[Loan, int]:
    """
    Register a loan and generate one pending expense per remaining installment.

    When no monthly payment is given it is derived from the outstanding balance
    (or the original principal) with the annuity formula.

    Returns:
        (loan, number of installments generated)
    """
    values = dict(definition)
    for name in ("interest_rate", "original_principal", "remaining_balance"):
        values[name] = _to_decimal(values.get(name))

    remaining = values["remaining_installments"]
    if values.get("monthly_payment") is None:
        principal = values["remaining_balance"] or values["original_principal"]
        values["monthly_payment"] = monthly_payment(principal, values["interest_rate"], remaining)
    else:
        values["monthly_payment"] = _to_decimal(values["monthly_payment"])

    if not values.get("total_installments"):
        values["total_installments"] = remaining + values.get("paid_installments", 0)
    if values.get("status") is not None:
        values["status"] = LoanStatus(values["status"])

    loan = Loan(id=str(uuid.uuid4()), owner_id=owner_id, **values)
    loan.end_date = loan_end_date(loan.first_pending_date, loan.remaining_installments, loan.payment_day)
    installments = generate_installments(loan)

    try:
        db_loan = LoanRepository(db).add(loan)
        TransactionRepository(db).add_many(installments)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    record_generation("loan", len(installments))
    created = LoanRepository.to_domain(db_loan)
    audit_log(
        db, owner_id, "CREATE", "loan", created.id,
        after={**asdict(created), "generated_transactions": len(installments)},
    )
    return created, len(installments)


def get_loan(db: Session, owner_id: str, loan_id: str) -> Loan:
    db_loan = require_owned(LoanRepository(db).get(loan_id), owner_id, "Loan", loan_id)
    return LoanRepository.to_domain(db_loan)


def list_loans(
    db: Session,
    owner_id: str,
    company_id: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Loan]:
    """Owner's loans, newest first"""
    loans = [LoanRepository.to_domain(l) for l in LoanRepository(db).list_by_owner(owner_id)]
    if company_id:
        loans = [l for l in loans if l.company_id == company_id]
    if status:
        loans = [l for l in loans if l.status.value == status]
    return sorted(loans, key=lambda l: l.created_at, reverse=True)


def get_loan_summary(db: Session, owner_id: str, loan_id: str) -> Tuple[Loan, LoanSummary]:
    loan = get_loan(db, owner_id, loan_id)
    return loan, loan_summary(loan)


def delete_loan(db: Session, owner_id: str, loan_id: str) -> int:
    """
    Delete a loan together with its pending installments.

    Raises:
        DependentRecordsExistError: an installment has already been paid

    Returns:
        Number of installments deleted
    """
    loan_repo = LoanRepository(db)
    transaction_repo = TransactionRepository(db)
    db_loan = require_owned(loan_repo.get(loan_id), owner_id, "Loan", loan_id)

    installments = transaction_repo.list_by_loan(loan_id)
    paid = [t for t in installments if t.status == TransactionStatus.PAID.value]
    if paid:
        raise DependentRecordsExistError(
            f"Loan {loan_id} has {len(paid)} paid installments; cancel it instead"
        )

    snapshot = asdict(LoanRepository.to_domain(db_loan))
    try:
        deleted = transaction_repo.delete_many([t.id for t in installments])
        loan_repo.delete(db_loan)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    audit_log(
        db, owner_id, "DELETE", "loan", loan_id,
        before=snapshot, after={"deleted_transactions": deleted},
    )
    return deleted
