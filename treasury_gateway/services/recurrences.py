"""Recurrence lifecycle and projection of its transaction instances"""

import logging
import time
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_gateway.config import settings
from treasury_gateway.domain.exceptions import DependentRecordsExistError, DomainException
from treasury_gateway.domain.models import (
    Frequency,
    ProjectionResult,
    Recurrence,
    RecurrenceStatus,
    TransactionStatus,
    TransactionType,
)
from treasury_gateway.domain.projection import project
from treasury_gateway.domain.scheduler import first_occurrence, validate_rule
from treasury_gateway.domain.versioning import initial_version
from treasury_gateway.infrastructure.database.models import RecurrenceRecord, TransactionRecord
from treasury_gateway.infrastructure.database.repositories import (
    RecurrenceRepository,
    TransactionRepository,
    VersionRepository,
)
from treasury_gateway.infrastructure.observability.logging import log_projection
from treasury_gateway.infrastructure.observability.metrics import record_generation
from treasury_gateway.services.access import require_owned
from treasury_gateway.services.audit import audit_log

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "company_id",
    "type",
    "name",
    "category",
    "third_party_id",
    "third_party_name",
    "account_id",
    "certainty",
    "notes",
    "frequency",
    "day_of_month",
    "day_of_week",
    "start_date",
    "end_date",
    "generate_months_ahead",
    "status",
)
# Changing any of these invalidates already-projected future instances
SCHEDULE_FIELDS = (
    "frequency",
    "day_of_month",
    "day_of_week",
    "start_date",
    "end_date",
    "generate_months_ahead",
)


@dataclass
class RecurrenceChange:
    """Recurrence after a create/update, with the instance churn it caused"""

    recurrence: Recurrence
    generated_count: int = 0
    deleted_count: int = 0


@dataclass
class RegenerationReport:
    processed: int = 0
    generated: int = 0
    details: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Turn raw enum values into their domain types"""
    coerced = dict(values)
    for name, enum in (("type", TransactionType), ("frequency", Frequency), ("status", RecurrenceStatus)):
        if coerced.get(name) is not None:
            coerced[name] = enum(coerced[name])
    return coerced


def _snapshot(recurrence: Recurrence) -> Dict[str, Any]:
    return {name: getattr(recurrence, name) for name in UPDATABLE_FIELDS + ("base_amount",)}


def _store_projection(
    db: Session, db_recurrence: RecurrenceRecord, result: ProjectionResult
) -> None:
    """Stage generated instances and the advanced watermark"""
    TransactionRepository(db).add_many(result.instances)
    RecurrenceRepository(db).update(
        db_recurrence,
        {
            "last_generated_date": result.new_watermark,
            "next_occurrence_date": result.next_occurrence_date,
        },
    )


def _rewind(recurrence: Recurrence, today: date) -> Recurrence:
    """Restart generation at the first occurrence from today on"""
    resume_from = max(recurrence.start_date, today)
    return replace(
        recurrence,
        last_generated_date=None,
        next_occurrence_date=first_occurrence(
            resume_from, recurrence.frequency, recurrence.day_of_month, recurrence.day_of_week
        ),
    )


def _pending_linked(db: Session, recurrence_id: str, owner_id: str) -> List[TransactionRecord]:
    """Owner's pending instances of the recurrence that were never edited by hand"""
    return [
        t
        for t in TransactionRepository(db).list_by_recurrence(recurrence_id)
        if t.owner_id == owner_id
        and t.status == TransactionStatus.PENDING.value
        and not t.overridden_from_recurrence
    ]


def delete_future_pending(db: Session, recurrence_id: str, owner_id: str, today: date) -> int:
    """Stage deletion of pending, non-overridden instances due today or later"""
    doomed = [t.id for t in _pending_linked(db, recurrence_id, owner_id) if t.due_date >= today]
    return TransactionRepository(db).delete_many(doomed)


def delete_pending_after(db: Session, recurrence_id: str, owner_id: str, end_date: date) -> int:
    """Stage deletion of pending, non-overridden instances past a new end date"""
    doomed = [t.id for t in _pending_linked(db, recurrence_id, owner_id) if t.due_date > end_date]
    return TransactionRepository(db).delete_many(doomed)


def _without_taken_dates(db: Session, recurrence_id: str, result: ProjectionResult) -> ProjectionResult:
    """Drop projected dates already held by an instance that survived the rewind"""
    taken = {t.due_date for t in TransactionRepository(db).list_by_recurrence(recurrence_id)}
    instances = [i for i in result.instances if i.due_date not in taken]
    return replace(result, instances=instances, generated_count=len(instances))


def create_recurrence(
    db: Session,
    owner_id: str,
    definition: Mapping[str, Any],
    today: Optional[date] = None,
) -> RecurrenceChange:
    """
    Create a recurrence with its initial version and project its first window.

    Raises:
        InvalidFrequencyError: the frequency rule is invalid
    """
    today = today or date.today()
    values = _coerce(definition)
    frequency = validate_rule(values["frequency"], values.get("day_of_month"), values.get("day_of_week"))

    recurrence = Recurrence(id=str(uuid.uuid4()), owner_id=owner_id, **values)
    recurrence.base_amount = Decimal(str(recurrence.base_amount))
    recurrence.next_occurrence_date = first_occurrence(
        recurrence.start_date, frequency, recurrence.day_of_month, recurrence.day_of_week
    )
    version = initial_version(recurrence)
    recurrence.current_version_id = version.id

    result = project(recurrence, today=today, limit=settings.max_occurrences_per_projection)
    try:
        db_recurrence = RecurrenceRepository(db).add(recurrence)
        VersionRepository(db).add(version)
        _store_projection(db, db_recurrence, result)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    record_generation("recurrence", result.generated_count)
    created = RecurrenceRepository.to_domain(db_recurrence)
    audit_log(
        db, owner_id, "CREATE", "recurrence", created.id,
        after={**_snapshot(created), "generated_transactions": result.generated_count},
    )
    return RecurrenceChange(recurrence=created, generated_count=result.generated_count)


def get_recurrence(db: Session, owner_id: str, recurrence_id: str) -> Recurrence:
    db_recurrence = require_owned(
        RecurrenceRepository(db).get(recurrence_id), owner_id, "Recurrence", recurrence_id
    )
    return RecurrenceRepository.to_domain(db_recurrence)


def list_recurrences(
    db: Session,
    owner_id: str,
    company_id: Optional[str] = None,
    status: Optional[str] = None,
    type: Optional[str] = None,
) -> List[Recurrence]:
    """Owner's recurrences filtered in memory, sorted by name"""
    recurrences = [RecurrenceRepository.to_domain(r) for r in RecurrenceRepository(db).list_by_owner(owner_id)]
    if company_id:
        recurrences = [r for r in recurrences if r.company_id == company_id]
    if status:
        recurrences = [r for r in recurrences if r.status.value == status]
    if type:
        recurrences = [r for r in recurrences if r.type.value == type]
    return sorted(recurrences, key=lambda r: r.name.lower())


def project_recurrence(
    db: Session,
    owner_id: str,
    recurrence_id: str,
    months_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> ProjectionResult:
    """
    Generate the instances of one recurrence missing from the window.

    A paused or ended recurrence generates nothing.
    """
    start_time = time.time()
    recurrence_repo = RecurrenceRepository(db)
    db_recurrence = require_owned(
        recurrence_repo.get(recurrence_id, for_update=True), owner_id, "Recurrence", recurrence_id
    )
    recurrence = RecurrenceRepository.to_domain(db_recurrence)

    result = project(
        recurrence,
        months_ahead=months_ahead,
        today=today,
        limit=settings.max_occurrences_per_projection,
    )
    try:
        _store_projection(db, db_recurrence, result)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    record_generation("recurrence", result.generated_count)
    log_projection(
        owner_id,
        recurrence.id,
        result.generated_count,
        result.new_watermark.isoformat() if result.new_watermark else None,
        (time.time() - start_time) * 1000,
    )
    return result


def regenerate_all(
    db: Session,
    owner_id: str,
    company_id: Optional[str] = None,
    months_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> RegenerationReport:
    """Project every active recurrence of the owner; one failure does not stop the others"""
    report = RegenerationReport()
    for recurrence in list_recurrences(db, owner_id, company_id=company_id, status=RecurrenceStatus.ACTIVE.value):
        try:
            result = project_recurrence(db, owner_id, recurrence.id, months_ahead=months_ahead, today=today)
        except (DomainException, SQLAlchemyError) as e:
            logger.error(f"Projection failed: {e}", extra={"owner_id": owner_id, "recurrence_id": recurrence.id})
            report.errors.append(f"{recurrence.id}: {e}")
            continue

        report.processed += 1
        report.generated += result.generated_count
        report.details.append({"recurrence_id": recurrence.id, "generated": result.generated_count})
    return report


def update_recurrence(
    db: Session,
    owner_id: str,
    recurrence_id: str,
    changes: Mapping[str, Any],
    today: Optional[date] = None,
) -> RecurrenceChange:
    """
    Update descriptive, schedule or status fields.

    The amount is not updatable here; it changes through amendments.
    Pausing or ending drops future pending instances. Resuming, or a schedule
    change on an active recurrence, drops them too and re-projects from today,
    skipping dates still held by paid, cancelled or hand-edited instances.
    Setting an end date drops pending instances past it.
    """
    today = today or date.today()
    recurrence_repo = RecurrenceRepository(db)
    db_recurrence = require_owned(
        recurrence_repo.get(recurrence_id, for_update=True), owner_id, "Recurrence", recurrence_id
    )
    before = RecurrenceRepository.to_domain(db_recurrence)

    values = _coerce({k: v for k, v in changes.items() if k in UPDATABLE_FIELDS})
    updated = replace(before, **values)
    schedule_changed = any(name in values and values[name] != getattr(before, name) for name in SCHEDULE_FIELDS)
    if schedule_changed:
        validate_rule(updated.frequency, updated.day_of_month, updated.day_of_week)

    active = updated.status == RecurrenceStatus.ACTIVE
    stopping = before.status == RecurrenceStatus.ACTIVE and not active
    resuming = before.status != RecurrenceStatus.ACTIVE and active
    reprojecting = active and (schedule_changed or resuming)

    deleted = 0
    result = None
    try:
        if updated.end_date is not None and updated.end_date != before.end_date:
            deleted += delete_pending_after(db, recurrence_id, owner_id, updated.end_date)

        if stopping or reprojecting:
            deleted += delete_future_pending(db, recurrence_id, owner_id, today)
            updated = _rewind(updated, today)
            values.update(
                last_generated_date=updated.last_generated_date,
                next_occurrence_date=updated.next_occurrence_date,
            )

        recurrence_repo.update(db_recurrence, values)

        if reprojecting:
            result = project(updated, today=today, limit=settings.max_occurrences_per_projection)
            result = _without_taken_dates(db, recurrence_id, result)
            _store_projection(db, db_recurrence, result)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    generated = result.generated_count if result else 0
    record_generation("recurrence", generated)
    after = RecurrenceRepository.to_domain(db_recurrence)
    audit_log(
        db, owner_id, "UPDATE", "recurrence", recurrence_id,
        before=_snapshot(before),
        after={**_snapshot(after), "deleted_transactions": deleted, "generated_transactions": generated},
    )
    return RecurrenceChange(recurrence=after, generated_count=generated, deleted_count=deleted)


def delete_recurrence(db: Session, owner_id: str, recurrence_id: str) -> None:
    """
    Delete a recurrence that never produced transactions.

    Raises:
        DependentRecordsExistError: transactions still reference it; end it instead
    """
    recurrence_repo = RecurrenceRepository(db)
    db_recurrence = require_owned(recurrence_repo.get(recurrence_id), owner_id, "Recurrence", recurrence_id)

    linked = TransactionRepository(db).list_by_recurrence(recurrence_id)
    if linked:
        raise DependentRecordsExistError(
            f"Recurrence {recurrence_id} has {len(linked)} transactions; set its status to ENDED instead"
        )

    snapshot = asdict(RecurrenceRepository.to_domain(db_recurrence))
    try:
        recurrence_repo.delete(db_recurrence)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    audit_log(db, owner_id, "DELETE", "recurrence", recurrence_id, before=snapshot)
