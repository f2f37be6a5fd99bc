"""Best-effort audit trail of mutating operations

Entries are written after the operation they describe has committed. A failed
audit write is logged and dropped; it never fails the primary operation.
Written entries are also queued on the session so the API layer can forward
them to an external collector.
"""

import logging
from typing import Any, Dict, List, Optional
from pydantic_core import to_jsonable_python
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_gateway.infrastructure.database.repositories import AuditRepository

logger = logging.getLogger(__name__)

OUTBOX_KEY = "audit_outbox"


def audit_log(
    db: Session,
    owner_id: str,
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Record one audit entry.

    Returns:
        The JSON-ready entry, or None when it could not be stored
    """
    entry = {
        "owner_id": owner_id,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "previous_values": to_jsonable_python(before) if before is not None else None,
        "new_values": to_jsonable_python(after) if after is not None else None,
    }
    try:
        AuditRepository(db).add(**entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(
            f"Audit entry dropped: {e}",
            extra={"owner_id": owner_id, "action": action, "entity_id": entry["entity_id"]},
        )
        return None

    db.info.setdefault(OUTBOX_KEY, []).append(entry)
    return entry


def drain_outbox(db: Session) -> List[Dict[str, Any]]:
    """Take the entries recorded on this session since the last drain"""
    return db.info.pop(OUTBOX_KEY, [])
