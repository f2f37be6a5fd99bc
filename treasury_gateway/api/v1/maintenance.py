"""Bulk maintenance endpoints: field propagation, duplicate collapse and the audit trail"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from treasury_gateway.api.dependencies import forward_audit, get_audit_client, get_owner_id
from treasury_gateway.api.v1.schemas import (
    AuditEntryResponse,
    DedupeRequest,
    DedupeResponse,
    PropagateRequest,
    PropagateResponse,
)
from treasury_gateway.infrastructure.clients.audit import AuditClient
from treasury_gateway.infrastructure.database.repositories import AuditRepository
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.services import maintenance

router = APIRouter()


@router.post("/recurrences/{recurrence_id}/propagate", response_model=PropagateResponse)
def propagate_fields(
    recurrence_id: str,
    request_body: PropagateRequest,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Copy settlement fields to every transaction of a recurrence.

    Only payment_method, charge_account_id, supplier_bank_account and
    supplier_invoice_number propagate; a patch with none of them is rejected.
    """
    updated = maintenance.propagate(db, owner_id, recurrence_id, request_body.fields)
    forward_audit(db, background_tasks, audit_client)
    return PropagateResponse(recurrence_id=recurrence_id, updated_count=updated)


@router.post("/maintenance/dedupe", response_model=DedupeResponse)
def dedupe(
    background_tasks: BackgroundTasks,
    request_body: DedupeRequest = DedupeRequest(),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Delete duplicates, keeping the earliest-created record of each group"""
    if request_body.entity == "recurrence":
        report = maintenance.dedupe_recurrences(db, owner_id)
    else:
        report = maintenance.dedupe_transactions(db, owner_id)
    forward_audit(db, background_tasks, audit_client)
    return report


@router.get("/audit-logs", response_model=List[AuditEntryResponse])
def list_audit_logs(
    limit: int = Query(50, ge=1, le=500),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Caller's most recent audit entries"""
    return [
        AuditEntryResponse(
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            previous_values=entry.previous_values,
            new_values=entry.new_values,
            created_at=entry.created_at,
        )
        for entry in AuditRepository(db).list_by_owner(owner_id, limit=limit)
    ]
