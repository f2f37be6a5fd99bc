"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger.json import JsonFormatter

from treasury_gateway.config import settings


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level and service name to every record"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_projection(
    owner_id: str,
    recurrence_id: str,
    generated_count: int,
    new_watermark: Optional[str],
    duration_ms: float,
) -> None:
    """Log the outcome of one recurrence projection"""
    logging.getLogger("treasury_gateway.projection").info(
        "Projection completed",
        extra={
            "owner_id": owner_id,
            "recurrence_id": recurrence_id,
            "step": "projection_complete",
            "generated_count": generated_count,
            "new_watermark": new_watermark,
            "duration_ms": duration_ms,
        },
    )


def log_amendment(owner_id: str, recurrence_id: str, action: str, version_number: int) -> None:
    """Log a change to a recurrence's version chain"""
    logging.getLogger("treasury_gateway.versioning").info(
        "Version chain changed",
        extra={
            "owner_id": owner_id,
            "recurrence_id": recurrence_id,
            "step": f"version_{action}",
            "version_number": version_number,
        },
    )


def log_maintenance(owner_id: str, operation: str, **counts: Any) -> None:
    """Log the outcome of a propagation or dedupe pass"""
    logging.getLogger("treasury_gateway.maintenance").info(
        "Maintenance pass completed",
        extra={"owner_id": owner_id, "step": operation, **counts},
    )
