"""Amendments to a recurrence's amount, kept as an effective-dated version chain

Amendments are forward-only by default: they change what future projections
generate, and already generated instances keep their amount unless the caller
asks for pending ones to be repriced.
"""

from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_gateway.domain.models import RecurrenceVersion, TransactionStatus
from treasury_gateway.domain.versioning import plan_amendment, plan_revert, sort_chain
from treasury_gateway.infrastructure.database.models import utcnow
from treasury_gateway.infrastructure.database.repositories import (
    RecurrenceRepository,
    TransactionRepository,
    VersionRepository,
    parse_id,
)
from treasury_gateway.infrastructure.observability.logging import log_amendment
from treasury_gateway.infrastructure.observability.metrics import amendment_counter
from treasury_gateway.services.access import require_owned
from treasury_gateway.services.audit import audit_log


def _repriceable_ids(db: Session, recurrence_id: str, owner_id: str, effective_from: date) -> List[Any]:
    """Pending, non-overridden instances of the recurrence due from effective_from on"""
    return [
        t.id
        for t in TransactionRepository(db).list_by_recurrence(recurrence_id)
        if t.owner_id == owner_id
        and t.status == TransactionStatus.PENDING.value
        and not t.overridden_from_recurrence
        and t.due_date >= effective_from
    ]


def amend(
    db: Session,
    owner_id: str,
    recurrence_id: str,
    new_amount: Decimal,
    effective_from: date,
    reason: Optional[str] = None,
    update_future_transactions: bool = False,
) -> RecurrenceVersion:
    """
    Record a new amount effective from a date.

    Closes the active version at effective_from, appends the next version and
    points the recurrence at it, all in one commit under a row lock on the
    recurrence. With ``update_future_transactions`` the pending, non-overridden
    instances due on or after effective_from are repriced in the same commit.

    Raises:
        RecordNotFoundError / InvalidOwnershipError: unknown or foreign recurrence
        InvalidAmendmentError: effective_from does not follow the active version
    """
    recurrence_repo = RecurrenceRepository(db)
    version_repo = VersionRepository(db)
    db_recurrence = require_owned(
        recurrence_repo.get(recurrence_id, for_update=True), owner_id, "Recurrence", recurrence_id
    )
    recurrence = RecurrenceRepository.to_domain(db_recurrence)

    db_versions = {str(v.id): v for v in version_repo.list_for_recurrence(recurrence_id)}
    versions = [VersionRepository.to_domain(v) for v in db_versions.values()]
    closed, new_version = plan_amendment(
        versions, recurrence, Decimal(str(new_amount)), effective_from, reason
    )

    before = {"base_amount": recurrence.base_amount, "current_version_id": recurrence.current_version_id}
    repriced = 0
    try:
        if closed is not None:
            version_repo.save_bounds(db_versions[closed.id], closed)
        version_repo.add(new_version)
        recurrence_repo.update(
            db_recurrence,
            {"base_amount": new_version.amount, "current_version_id": new_version.id},
        )
        if update_future_transactions:
            repriced = TransactionRepository(db).update_many(
                _repriceable_ids(db, recurrence_id, owner_id, effective_from),
                {
                    "amount": new_version.amount,
                    "recurrence_version_id": parse_id(new_version.id, "Version"),
                    "updated_at": utcnow(),
                },
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    amendment_counter.labels(action="amend").inc()
    log_amendment(owner_id, recurrence.id, "amend", new_version.version_number)
    audit_log(
        db, owner_id, "AMEND", "recurrence", recurrence.id,
        before=before,
        after={
            "base_amount": new_version.amount,
            "current_version_id": new_version.id,
            "effective_from": new_version.effective_from,
            "change_reason": reason,
            "updated_transactions": repriced,
        },
    )
    return new_version


def revert(db: Session, owner_id: str, version_id: str) -> RecurrenceVersion:
    """
    Delete the active version and reactivate its predecessor.

    Raises:
        NotNewestVersionError: target is not the active version; nothing is written
        InvalidAmendmentError: target is the initial version
    """
    recurrence_repo = RecurrenceRepository(db)
    version_repo = VersionRepository(db)
    db_target = require_owned(version_repo.get(version_id), owner_id, "Version", version_id)
    recurrence_id = str(db_target.recurrence_id)
    db_recurrence = require_owned(
        recurrence_repo.get(recurrence_id, for_update=True), owner_id, "Recurrence", recurrence_id
    )

    db_versions = {str(v.id): v for v in version_repo.list_for_recurrence(recurrence_id)}
    versions = [VersionRepository.to_domain(v) for v in db_versions.values()]
    removed, reopened = plan_revert(versions, str(db_target.id))

    before = {"base_amount": db_recurrence.base_amount, "current_version_id": str(db_recurrence.current_version_id)}
    try:
        version_repo.delete(db_versions[removed.id])
        version_repo.save_bounds(db_versions[reopened.id], reopened)
        recurrence_repo.update(
            db_recurrence,
            {"base_amount": reopened.amount, "current_version_id": reopened.id},
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    amendment_counter.labels(action="revert").inc()
    log_amendment(owner_id, recurrence_id, "revert", removed.version_number)
    audit_log(
        db, owner_id, "REVERT", "recurrence", recurrence_id,
        before=before,
        after={"base_amount": reopened.amount, "current_version_id": reopened.id},
    )
    return reopened


def list_versions(db: Session, owner_id: str, recurrence_id: str) -> List[RecurrenceVersion]:
    """Versions of a recurrence ordered by version number"""
    require_owned(RecurrenceRepository(db).get(recurrence_id), owner_id, "Recurrence", recurrence_id)
    versions = [
        VersionRepository.to_domain(v)
        for v in VersionRepository(db).list_for_recurrence(recurrence_id)
        if v.owner_id == owner_id
    ]
    return sort_chain(versions)


def get_version(db: Session, owner_id: str, version_id: str) -> RecurrenceVersion:
    db_version = require_owned(VersionRepository(db).get(version_id), owner_id, "Version", version_id)
    return VersionRepository.to_domain(db_version)
