"""/v1/loans - loan registration and installment summaries"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from treasury_gateway.api.dependencies import forward_audit, get_audit_client, get_owner_id
from treasury_gateway.api.v1.schemas import (
    LoanCreate,
    LoanCreateResponse,
    LoanResponse,
    LoanSummaryResponse,
)
from treasury_gateway.infrastructure.clients.audit import AuditClient
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.services import loans

router = APIRouter()


@router.post("/loans", response_model=LoanCreateResponse, status_code=status.HTTP_201_CREATED)
def create_loan(
    request_body: LoanCreate,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Register a loan and schedule its remaining installments.

    Returns:
        The loan and the number of installment transactions created
    """
    loan, generated = loans.create_loan(db, owner_id, request_body.model_dump())
    forward_audit(db, background_tasks, audit_client)
    return LoanCreateResponse(loan=LoanResponse.model_validate(loan), generated_count=generated)


@router.get("/loans", response_model=List[LoanResponse])
def list_loans(
    company_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return loans.list_loans(db, owner_id, company_id=company_id, status=status)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(
    loan_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return loans.get_loan(db, owner_id, loan_id)


@router.get("/loans/{loan_id}/summary", response_model=LoanSummaryResponse)
def get_loan_summary(
    loan_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    loan, summary = loans.get_loan_summary(db, owner_id, loan_id)
    return LoanSummaryResponse(
        loan_id=loan.id,
        total_remaining=summary.total_remaining,
        remaining_count=summary.remaining_count,
        next_payment_date=summary.next_payment_date,
        progress_percent=summary.progress_percent,
    )


@router.delete("/loans/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_loan(
    loan_id: str,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Delete a loan and its pending installments; refused once any installment is paid"""
    loans.delete_loan(db, owner_id, loan_id)
    forward_audit(db, background_tasks, audit_client)
