"""/v1/recurrences - recurrence lifecycle and projection endpoints"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from treasury_gateway.api.dependencies import forward_audit, get_audit_client, get_owner_id
from treasury_gateway.api.v1.schemas import (
    ProjectionRequest,
    ProjectionResponse,
    RecurrenceChangeResponse,
    RecurrenceCreate,
    RecurrenceResponse,
    RecurrenceUpdate,
    RegenerateRequest,
    RegenerateResponse,
)
from treasury_gateway.infrastructure.clients.audit import AuditClient
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.services import recurrences

router = APIRouter()


@router.post("/recurrences", response_model=RecurrenceChangeResponse, status_code=status.HTTP_201_CREATED)
def create_recurrence(
    request_body: RecurrenceCreate,
    background_tasks: BackgroundTasks,
    as_of: Optional[date] = Query(None, description="Reference date for the projection window"),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Create a recurrence and project its first window of transactions.

    Returns:
        The recurrence and the number of instances generated
    """
    change = recurrences.create_recurrence(db, owner_id, request_body.model_dump(), today=as_of)
    forward_audit(db, background_tasks, audit_client)
    return RecurrenceChangeResponse(
        recurrence=RecurrenceResponse.model_validate(change.recurrence),
        generated_count=change.generated_count,
    )


@router.get("/recurrences", response_model=List[RecurrenceResponse])
def list_recurrences(
    company_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return recurrences.list_recurrences(db, owner_id, company_id=company_id, status=status, type=type)


@router.post("/recurrences/regenerate", response_model=RegenerateResponse)
def regenerate_all(
    background_tasks: BackgroundTasks,
    request_body: RegenerateRequest = RegenerateRequest(),
    as_of: Optional[date] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Project every active recurrence of the caller"""
    report = recurrences.regenerate_all(
        db,
        owner_id,
        company_id=request_body.company_id,
        months_ahead=request_body.months_ahead,
        today=as_of,
    )
    forward_audit(db, background_tasks, audit_client)
    return RegenerateResponse(
        processed=report.processed,
        generated=report.generated,
        details=report.details,
        errors=report.errors,
    )


@router.get("/recurrences/{recurrence_id}", response_model=RecurrenceResponse)
def get_recurrence(
    recurrence_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return recurrences.get_recurrence(db, owner_id, recurrence_id)


@router.patch("/recurrences/{recurrence_id}", response_model=RecurrenceChangeResponse)
def update_recurrence(
    recurrence_id: str,
    request_body: RecurrenceUpdate,
    background_tasks: BackgroundTasks,
    as_of: Optional[date] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Update a recurrence.

    Pausing or ending it removes its future pending transactions; changing
    the schedule regenerates them.
    """
    change = recurrences.update_recurrence(
        db, owner_id, recurrence_id, request_body.model_dump(exclude_unset=True), today=as_of
    )
    forward_audit(db, background_tasks, audit_client)
    return RecurrenceChangeResponse(
        recurrence=RecurrenceResponse.model_validate(change.recurrence),
        generated_count=change.generated_count,
        deleted_count=change.deleted_count,
    )


@router.delete("/recurrences/{recurrence_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_recurrence(
    recurrence_id: str,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    recurrences.delete_recurrence(db, owner_id, recurrence_id)
    forward_audit(db, background_tasks, audit_client)


@router.post("/recurrences/{recurrence_id}/project", response_model=ProjectionResponse)
def project_recurrence(
    recurrence_id: str,
    request_body: ProjectionRequest = ProjectionRequest(),
    as_of: Optional[date] = Query(None),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Generate the transactions missing from the projection window.

    Calling it again with the same window generates nothing.
    """
    result = recurrences.project_recurrence(
        db, owner_id, recurrence_id, months_ahead=request_body.months_ahead, today=as_of
    )
    return ProjectionResponse(
        recurrence_id=recurrence_id,
        generated_count=result.generated_count,
        last_generated_date=result.new_watermark,
        next_occurrence_date=result.next_occurrence_date,
    )
