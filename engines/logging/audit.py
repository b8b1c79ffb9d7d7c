"""Audit helper for emitting events for sensitive actions."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field

from engines.common.identity import RequestContext
from engines.config import runtime_config

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    tenant_id: str
    env: str
    surface: str
    action: str
    actor_id: str
    actor_type: str
    request_id: str
    project_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)


AuditLogger = Callable[[AuditEvent], Dict[str, Any]]


def log_audit_event(event: AuditEvent) -> Dict[str, Any]:
    logger.info(
        "audit %s tenant=%s env=%s actor=%s request=%s metadata=%s",
        event.action,
        event.tenant_id,
        event.env,
        event.actor_id,
        event.request_id,
        event.metadata,
    )
    return {"status": "accepted"}


_audit_logger: AuditLogger = log_audit_event


def set_audit_logger(audit_logger: AuditLogger) -> None:
    global _audit_logger
    _audit_logger = audit_logger


def emit_audit_event(
    ctx: RequestContext,
    action: str,
    surface: str = "audit",
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    actor_type = "human" if ctx.user_id else "system"
    event = AuditEvent(
        tenant_id=ctx.tenant_id,
        env=ctx.env,
        surface=surface,
        action=action,
        actor_id=ctx.user_id or "system",
        actor_type=actor_type,
        request_id=ctx.request_id,
        project_id=ctx.project_id,
        metadata=dict(metadata or {}),
    )
    result = _audit_logger(event)
    if not result or result.get("status") != "accepted":
        detail = (result or {}).get("error", "audit persistence failed")
        if runtime_config.audit_strict():
            raise RuntimeError(detail)
        logger.warning("audit persistence failed: %s", detail)
