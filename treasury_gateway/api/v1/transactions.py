"""GET /v1/transactions - generated transaction instances"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from treasury_gateway.api.dependencies import get_owner_id
from treasury_gateway.api.v1.schemas import TransactionResponse
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.services.transactions import list_transactions

router = APIRouter()


@router.get("/transactions", response_model=List[TransactionResponse])
def get_transactions(
    recurrence_id: Optional[str] = Query(None),
    loan_id: Optional[str] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Caller's transactions ordered by due date"""
    return list_transactions(db, owner_id, recurrence_id=recurrence_id, loan_id=loan_id)
