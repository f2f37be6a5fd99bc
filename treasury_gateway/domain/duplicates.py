"""Duplicate detection for transactions and recurrences

Records sharing a canonical key are duplicates of each other; the one created
first is kept.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Hashable, Iterable, List, Protocol

from treasury_gateway.domain.models import Recurrence, TransactionInstance

CENTS = Decimal("0.01")


class Identified(Protocol):
    id: str | None
    created_at: datetime | None


@dataclass
class DuplicateGroup:
    """Members of one canonical key: the survivor and the ones to delete"""

    key: Hashable
    keep_id: str
    discard_ids: List[str] = field(default_factory=list)


def transaction_key(txn: TransactionInstance) -> tuple:
    """(company, type, amount, description, due day)"""
    return (
        txn.company_id,
        getattr(txn.type, "value", txn.type),
        str(Decimal(txn.amount).quantize(CENTS)),
        txn.description,
        txn.due_date.isoformat(),
    )


def recurrence_key(recurrence: Recurrence) -> tuple:
    """(company, name, type, frequency)"""
    return (
        recurrence.company_id,
        recurrence.name,
        getattr(recurrence.type, "value", recurrence.type),
        getattr(recurrence.frequency, "value", recurrence.frequency),
    )


def _creation_order(record: Identified) -> datetime:
    return record.created_at or datetime.min


def group_duplicates(
    records: Iterable[Identified], key: Callable[[Identified], Hashable]
) -> List[DuplicateGroup]:
    """Groups with more than one member, earliest-created member kept"""
    groups: Dict[Hashable, List[Identified]] = {}
    for record in records:
        groups.setdefault(key(record), []).append(record)

    duplicates = []
    for group_key, members in groups.items():
        if len(members) < 2:
            continue
        ordered = sorted(members, key=_creation_order)
        duplicates.append(
            DuplicateGroup(
                key=group_key,
                keep_id=ordered[0].id,
                discard_ids=[m.id for m in ordered[1:]],
            )
        )
    return duplicates
