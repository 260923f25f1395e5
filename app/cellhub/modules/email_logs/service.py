from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.cellhub.audit import record_event
from app.cellhub.models import User
from app.cellhub.modules.email_logs.models import EmailLog
from app.cellhub.utils import clean_text, raise_if_errors

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext

LOG_LIMIT = 100
MAX_RECIPIENTS = 1_000_000


def validate_email_payload(payload: dict[str, Any]) -> dict[str, Any]:
    errors: dict[str, str] = {}
    data = {
        "target_group": clean_text(payload, "targetGroup", errors, min_len=1, max_len=60, required=True),
        "subject": clean_text(payload, "subject", errors, min_len=3, max_len=200, required=True),
        "body_html": clean_text(payload, "messageHtml", errors, min_len=3, required=True),
        "attachment_name": clean_text(payload, "attachmentName", errors, max_len=200),
        "recipients_count": 1,
    }
    count = payload.get("recipientsCount")
    if count is not None:
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= MAX_RECIPIENTS:
            errors["recipientsCount"] = f"Deve ser um inteiro entre 1 e {MAX_RECIPIENTS}."
        else:
            data["recipients_count"] = count
    raise_if_errors(errors)
    return data


def record_email(s: "Session", ctx: "AccessContext", data: dict[str, Any]) -> EmailLog:
    """Log the message as sent. There is no delivery backend."""
    log = EmailLog(tenant_id=ctx.tenant_id, sent_by_user_id=ctx.user_id, status="sent", **data)
    s.add(log)
    s.flush()
    record_event(
        s,
        actor=ctx,
        action="email.send",
        entity_type="EmailLog",
        entity_id=str(log.id),
        metadata={"target_group": log.target_group, "recipients_count": log.recipients_count},
    )
    return log


def list_email_logs(s: "Session", tenant_id: int, *, limit: int = LOG_LIMIT) -> list[dict[str, Any]]:
    rows = s.execute(
        select(EmailLog, User.full_name)
        .join(User, User.id == EmailLog.sent_by_user_id)
        .where(EmailLog.tenant_id == tenant_id)
        .order_by(EmailLog.sent_at.desc(), EmailLog.id.desc())
        .limit(limit)
    ).all()
    return [
        {
            "id": log.id,
            "subject": log.subject,
            "target_group": log.target_group,
            "recipients_count": log.recipients_count,
            "status": log.status,
            "sent_at": log.sent_at.isoformat(),
            "sender_name": sender_name,
        }
        for log, sender_name in rows
    ]
