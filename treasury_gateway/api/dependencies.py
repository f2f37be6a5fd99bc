"""Dependency injection for FastAPI endpoints"""

from fastapi import BackgroundTasks, Header, HTTPException, Request
from sqlalchemy.orm import Session

from treasury_gateway.infrastructure.clients.audit import AuditClient
from treasury_gateway.services.audit import drain_outbox


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_owner_id(x_owner_id: str | None = Header(None)) -> str:
    """Authenticated owner identity, as forwarded by the upstream gateway"""
    if not x_owner_id:
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id


def get_audit_client() -> AuditClient:
    """Provide audit webhook client instance"""
    return AuditClient()


def forward_audit(db: Session, background_tasks: BackgroundTasks, audit_client: AuditClient) -> None:
    """Schedule delivery of the audit entries this request recorded"""
    entries = drain_outbox(db)
    if not audit_client.enabled:
        return
    for entry in entries:
        background_tasks.add_task(audit_client.send_event, entry)
