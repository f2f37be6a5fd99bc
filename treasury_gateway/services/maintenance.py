"""Bulk maintenance: field propagation and duplicate collapse

Both passes write in bounded chunks with one commit per chunk, so a large
pass is not atomic across chunks. Re-running either pass is safe.
"""

import logging
from typing import Any, Callable, List, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_gateway.config import settings
from treasury_gateway.domain.duplicates import (
    DuplicateGroup,
    group_duplicates,
    recurrence_key,
    transaction_key,
)
from treasury_gateway.domain.models import DedupeReport
from treasury_gateway.domain.propagation import filter_patch
from treasury_gateway.infrastructure.database.models import utcnow
from treasury_gateway.infrastructure.database.repositories import (
    RecurrenceRepository,
    TransactionRepository,
    VersionRepository,
)
from treasury_gateway.infrastructure.observability.logging import log_maintenance
from treasury_gateway.infrastructure.observability.metrics import (
    duplicates_deleted_counter,
    propagated_transactions_counter,
)
from treasury_gateway.services.access import require_owned
from treasury_gateway.services.audit import audit_log
from treasury_gateway.utils.batching import chunked

logger = logging.getLogger(__name__)


def propagate(db: Session, owner_id: str, recurrence_id: str, field_patch: Mapping[str, Any]) -> int:
    """
    Push settlement fields from a recurrence to every transaction it generated.

    Keys outside the propagable allow-list are dropped before anything is
    written.

    Raises:
        RecordNotFoundError / InvalidOwnershipError: unknown or foreign recurrence
        NoValidFieldsError: no propagable field in the patch

    Returns:
        Number of transactions updated
    """
    recurrence_repo = RecurrenceRepository(db)
    transaction_repo = TransactionRepository(db)
    db_recurrence = require_owned(
        recurrence_repo.get(recurrence_id), owner_id, "Recurrence", recurrence_id
    )
    patch = filter_patch(field_patch)

    linked_ids = [t.id for t in transaction_repo.list_by_recurrence(recurrence_id) if t.owner_id == owner_id]
    before = {name: getattr(db_recurrence, name) for name in patch}

    updated = 0
    for chunk in chunked(linked_ids, settings.propagation_batch_size):
        try:
            updated += transaction_repo.update_many(chunk, {**patch, "updated_at": utcnow()})
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                "Propagation chunk failed",
                extra={"owner_id": owner_id, "recurrence_id": recurrence_id, "updated_so_far": updated},
            )
            raise

    try:
        recurrence_repo.update(db_recurrence, patch)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    propagated_transactions_counter.inc(updated)
    log_maintenance(owner_id, "propagate", recurrence_id=recurrence_id, updated_count=updated)
    audit_log(
        db, owner_id, "PROPAGATE", "recurrence", recurrence_id,
        before=before, after={**patch, "updated_transactions": updated},
    )
    return updated


def _delete_in_chunks(
    db: Session,
    groups: List[DuplicateGroup],
    delete_chunk: Callable[[List[str]], int],
    report: DedupeReport,
) -> None:
    """Delete discarded members chunk by chunk; a failed chunk is reported and skipped"""
    discard_ids = [record_id for group in groups for record_id in group.discard_ids]
    for chunk in chunked(discard_ids, settings.dedupe_batch_size):
        try:
            report.deleted_count += delete_chunk(chunk)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Dedupe chunk failed: {e}", extra={"entity": report.entity, "chunk_size": len(chunk)})
            report.errors.append(f"{len(chunk)} {report.entity} records not deleted: {e}")


def _finish(db: Session, owner_id: str, report: DedupeReport) -> DedupeReport:
    if report.deleted_count:
        duplicates_deleted_counter.labels(entity=report.entity).inc(report.deleted_count)
    log_maintenance(
        owner_id,
        f"dedupe_{report.entity}",
        analyzed=report.analyzed,
        duplicate_groups=report.duplicate_groups,
        deleted_count=report.deleted_count,
        error_count=len(report.errors),
    )
    audit_log(
        db, owner_id, "DEDUPE", report.entity, owner_id,
        after={
            "analyzed": report.analyzed,
            "duplicate_groups": report.duplicate_groups,
            "deleted_count": report.deleted_count,
            "errors": report.errors,
        },
    )
    return report


def dedupe_transactions(db: Session, owner_id: str) -> DedupeReport:
    """Collapse the owner's transactions sharing company, type, amount, description and due day"""
    transaction_repo = TransactionRepository(db)
    transactions = [TransactionRepository.to_domain(t) for t in transaction_repo.list_by_owner(owner_id)]
    groups = group_duplicates(transactions, transaction_key)

    report = DedupeReport(entity="transaction", analyzed=len(transactions), duplicate_groups=len(groups))
    _delete_in_chunks(db, groups, transaction_repo.delete_many, report)
    return _finish(db, owner_id, report)


def dedupe_recurrences(db: Session, owner_id: str) -> DedupeReport:
    """
    Collapse the owner's recurrences sharing company, name, type and frequency.

    Transactions of a deleted duplicate stay, detached from any recurrence;
    its versions are deleted with it.
    """
    recurrence_repo = RecurrenceRepository(db)
    transaction_repo = TransactionRepository(db)
    version_repo = VersionRepository(db)

    recurrences = [RecurrenceRepository.to_domain(r) for r in recurrence_repo.list_by_owner(owner_id)]
    groups = group_duplicates(recurrences, recurrence_key)

    def delete_chunk(recurrence_ids: List[str]) -> int:
        transaction_repo.detach_from_recurrences(recurrence_ids)
        version_repo.delete_for_recurrences(recurrence_ids)
        return recurrence_repo.delete_many(recurrence_ids)

    report = DedupeReport(entity="recurrence", analyzed=len(recurrences), duplicate_groups=len(groups))
    _delete_in_chunks(db, groups, delete_chunk, report)
    return _finish(db, owner_id, report)
