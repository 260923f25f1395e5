from __future__ import annotations

from flask import Blueprint, jsonify

from app.cellhub.access import current_access, panel_permission
from app.cellhub.db import db_session
from app.cellhub.modules.email_logs.service import list_email_logs, record_email, validate_email_payload
from app.cellhub.rbac import Action, Module
from app.cellhub.utils import json_body

bp = Blueprint("email_logs", __name__)


@bp.post("/email/send")
@panel_permission(Module.EMAIL, Action.CREATE)
def email_send():
    data = validate_email_payload(json_body())
    s = db_session()
    log = record_email(s, current_access(), data)
    s.commit()
    return jsonify({"message": "E-mail registrado.", "id": log.id}), 201


@bp.get("/email/logs")
@panel_permission(Module.EMAIL, Action.VIEW)
def email_logs():
    return jsonify({"rows": list_email_logs(db_session(), current_access().tenant_id)})
