"""Read access to generated transaction instances"""

from typing import List, Optional

from sqlalchemy.orm import Session

from treasury_gateway.domain.models import TransactionInstance
from treasury_gateway.infrastructure.database.repositories import TransactionRepository


def list_transactions(
    db: Session,
    owner_id: str,
    recurrence_id: Optional[str] = None,
    loan_id: Optional[str] = None,
) -> List[TransactionInstance]:
    """Owner's transactions ordered by due date, optionally narrowed to one recurrence or loan"""
    repo = TransactionRepository(db)
    if recurrence_id:
        records = repo.list_by_recurrence(recurrence_id)
    elif loan_id:
        records = repo.list_by_loan(loan_id)
    else:
        records = repo.list_by_owner(owner_id)

    transactions = [TransactionRepository.to_domain(r) for r in records if r.owner_id == owner_id]
    if recurrence_id and loan_id:
        transactions = [t for t in transactions if t.loan_id == loan_id]
    return sorted(transactions, key=lambda t: (t.due_date, t.description))
