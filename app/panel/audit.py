import json
import logging
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.panel.models import AuditEvent, Employee

logger = logging.getLogger(__name__)


def _request_fields() -> dict[str, str | None]:
    if not has_request_context():
        return {"request_id": None, "client_ip": None}
    return {"request_id": getattr(g, "request_id", None), "client_ip": request.remote_addr}


def record_event(
    s: Session,
    *,
    actor: Employee | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Adds an audit row to the caller's session; it is committed (or rolled
    back) together with the change it describes. `actor` is None for
    anonymous actions such as failed logins and password resets.
    """
    ev = AuditEvent(
        actor_employee_id=actor.id if actor else None,
        actor_email=actor.email if actor else None,
        actor_role=actor.role if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        **_request_fields(),
    )
    s.add(ev)
    logger.debug("audit %s %s:%s by %s", action, entity_type, entity_id, ev.actor_email or "anonymous")
    return ev
