"""Ownership checks shared by the services"""

from typing import Any, Optional, TypeVar

from treasury_gateway.domain.exceptions import InvalidOwnershipError, RecordNotFoundError

R = TypeVar("R")


def require_owned(record: Optional[R], owner_id: str, entity: str, record_id: Any) -> R:
    """
    Return the record when it exists and belongs to ``owner_id``.

    Raises:
        RecordNotFoundError: no such record
        InvalidOwnershipError: record belongs to another owner
    """
    if record is None:
        raise RecordNotFoundError(f"{entity} {record_id} not found")
    if record.owner_id != owner_id:
        raise InvalidOwnershipError(f"{entity} {record_id} does not belong to the caller")
    return record
