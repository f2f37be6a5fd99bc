"""Audit webhook client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict
from treasury_gateway.config import settings
from treasury_gateway.infrastructure.observability.metrics import (
    audit_webhook_failure_counter,
    audit_webhook_latency_histogram,
)

logger = logging.getLogger(__name__)


class AuditClient:
    """Forwards audit entries to an external collector"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.audit_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_event(self, payload: Dict[str, Any]) -> bool:
        """
        Deliver one audit entry, retrying on 5xx and network errors.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt - 1)
        - Gives up after max_retries; the failure is logged and counted, never
          raised, so auditing cannot fail the operation it describes

        Returns:
            True when the collector acknowledged the entry
        """
        if not self.enabled:
            return False

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with audit_webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    audit_webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.warning(
                            f"Audit webhook delivery abandoned: {e}",
                            extra={"entity_id": payload.get("entity_id"), "attempts": attempt},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
        return False
