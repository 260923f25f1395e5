import json
from typing import TYPE_CHECKING, Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.cellhub.models import AuditEvent

if TYPE_CHECKING:
    from app.cellhub.access import AccessContext


def record_event(
    s: Session,
    *,
    actor: "AccessContext | None",
    action: str,
    tenant_id: int | None = None,
    actor_user_id: int | None = None,
    actor_user_email: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.

    ``actor`` is the request's access context when there is one; the explicit
    ids cover the identity endpoints, which run before a context exists.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        tenant_id=actor.tenant_id if actor else tenant_id,
        actor_user_id=actor.user_id if actor else actor_user_id,
        actor_user_email=actor.user_email if actor else actor_user_email,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev
