"""Amount amendment endpoints over a recurrence's version chain"""

from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from treasury_gateway.api.dependencies import forward_audit, get_audit_client, get_owner_id
from treasury_gateway.api.v1.schemas import AmendmentRequest, VersionResponse
from treasury_gateway.infrastructure.clients.audit import AuditClient
from treasury_gateway.infrastructure.database.session import get_db
from treasury_gateway.services import versions

router = APIRouter()


@router.get("/recurrences/{recurrence_id}/versions", response_model=List[VersionResponse])
def list_versions(
    recurrence_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Version chain ordered by version number"""
    return versions.list_versions(db, owner_id, recurrence_id)


@router.post(
    "/recurrences/{recurrence_id}/versions",
    response_model=VersionResponse,
    status_code=status.HTTP_201_CREATED,
)
def amend_recurrence(
    recurrence_id: str,
    request_body: AmendmentRequest,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Change the amount from a date on.

    Later projections use the new amount. Transactions already generated keep
    theirs unless update_future_transactions is set.
    """
    version = versions.amend(
        db,
        owner_id,
        recurrence_id,
        request_body.new_amount,
        request_body.effective_from,
        request_body.reason,
        update_future_transactions=request_body.update_future_transactions,
    )
    forward_audit(db, background_tasks, audit_client)
    return version


@router.get("/versions/{version_id}", response_model=VersionResponse)
def get_version(
    version_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return versions.get_version(db, owner_id, version_id)


@router.delete("/versions/{version_id}", response_model=VersionResponse)
def revert_version(
    version_id: str,
    background_tasks: BackgroundTasks,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Undo the newest amendment.

    Only the active version can be reverted; the response is the version
    that becomes active again.
    """
    reopened = versions.revert(db, owner_id, version_id)
    forward_audit(db, background_tasks, audit_client)
    return reopened
