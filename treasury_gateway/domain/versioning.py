"""Effective-dated amendment chain of a recurrence's amount

Versions of one recurrence form an append-only chain ordered by
version_number. Only the newest version is active and open-ended; amending
closes it and appends a new one, reverting drops it and reopens its
predecessor.
"""

import uuid
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from treasury_gateway.domain.exceptions import InvalidAmendmentError, NotNewestVersionError
from treasury_gateway.domain.models import Recurrence, RecurrenceVersion


def sort_chain(versions: List[RecurrenceVersion]) -> List[RecurrenceVersion]:
    return sorted(versions, key=lambda v: v.version_number)


def active_version(versions: List[RecurrenceVersion]) -> Optional[RecurrenceVersion]:
    """Newest version of the chain, or None for an empty chain"""
    chain = sort_chain(versions)
    return chain[-1] if chain else None


def initial_version(recurrence: Recurrence, reason: str = "Initial amount") -> RecurrenceVersion:
    """Version 1, effective from the recurrence's start date"""
    return RecurrenceVersion(
        id=str(uuid.uuid4()),
        owner_id=recurrence.owner_id,
        recurrence_id=recurrence.id,
        amount=recurrence.base_amount,
        effective_from=recurrence.start_date,
        version_number=1,
        effective_to=None,
        is_active=True,
        change_reason=reason,
    )


def plan_amendment(
    versions: List[RecurrenceVersion],
    recurrence: Recurrence,
    new_amount: Decimal,
    effective_from: date,
    reason: Optional[str] = None,
) -> Tuple[Optional[RecurrenceVersion], RecurrenceVersion]:
    """
    Compute the chain change for a new amount.

    Returns:
        (closed previous version or None for an empty chain, new active version)

    Raises:
        InvalidAmendmentError: effective_from does not start after the active
            version, which would overlap it
    """
    current = active_version(versions)
    closed = None
    next_number = 1

    if current is not None:
        if effective_from <= current.effective_from:
            raise InvalidAmendmentError(
                f"effective_from {effective_from.isoformat()} must be after "
                f"{current.effective_from.isoformat()} (version {current.version_number})"
            )
        closed = replace(current, effective_to=effective_from, is_active=False)
        next_number = current.version_number + 1

    new_version = RecurrenceVersion(
        id=str(uuid.uuid4()),
        owner_id=recurrence.owner_id,
        recurrence_id=recurrence.id,
        amount=new_amount,
        effective_from=effective_from,
        version_number=next_number,
        effective_to=None,
        is_active=True,
        change_reason=reason,
    )
    return closed, new_version


def plan_revert(
    versions: List[RecurrenceVersion], version_id: str
) -> Tuple[RecurrenceVersion, RecurrenceVersion]:
    """
    Compute the chain change for reverting ``version_id``.

    Returns:
        (version to delete, predecessor reopened as active)

    Raises:
        NotNewestVersionError: target is not the active, newest version
        InvalidAmendmentError: target is the initial version
    """
    chain = sort_chain(versions)
    target = next((v for v in chain if v.id == version_id), None)
    if target is None or not target.is_active or target is not chain[-1]:
        raise NotNewestVersionError("Only the active (newest) version can be reverted")

    previous = next((v for v in chain if v.version_number == target.version_number - 1), None)
    if previous is None:
        raise InvalidAmendmentError("The initial version of a recurrence cannot be reverted")

    return target, replace(previous, effective_to=None, is_active=True)
