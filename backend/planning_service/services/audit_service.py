"""Audit trail sink.

``record`` adds its row to the caller's session, so the audit entry commits
or rolls back together with the business mutation it describes.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from planning_service.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

ENTITY_PLANNING_EVENTS = "planning_events"


@dataclass(frozen=True)
class AuditContext:
    actor_user_id: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    path: Optional[str] = None
    page_key: Optional[str] = None
    client_session_id: Optional[str] = None


def record(
    db: Session,
    audit: AuditContext,
    action: str,
    entity_type: Optional[str],
    entity_id: Optional[str],
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=audit.actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=jsonable_encoder(details) if details is not None else None,
        ip=audit.ip,
        user_agent=audit.user_agent,
        path=audit.path,
        page_key=audit.page_key,
        client_session_id=audit.client_session_id,
    )
    db.add(entry)
    db.flush()
    logger.debug("Audit %s on %s %s by %s", action, entity_type, entity_id, audit.actor_user_id)
    return entry
