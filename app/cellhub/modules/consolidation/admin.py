from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cellhub.access import current_access, panel_permission
from app.cellhub.db import db_session
from app.cellhub.modules.consolidation.service import (
    consolidation_detail,
    create_consolidation,
    get_record,
    list_consolidations,
    update_consolidation,
    validate_consolidation_payload,
)
from app.cellhub.rbac import Action, Module
from app.cellhub.utils import json_body, path_id

bp = Blueprint("consolidation", __name__)


@bp.get("/consolidation")
@panel_permission(Module.CONSOLIDATION, Action.VIEW)
def consolidation_list():
    groups = list_consolidations(db_session(), current_access(), request.args.get("name") or "")
    return jsonify({"groups": groups})


@bp.get("/consolidation/<int:consolidation_id>")
@panel_permission(Module.CONSOLIDATION, Action.VIEW)
def consolidation_get(consolidation_id: int):
    path_id(consolidation_id)
    record = get_record(db_session(), current_access().tenant_id, consolidation_id)
    return jsonify(consolidation_detail(record))


@bp.post("/consolidation")
@panel_permission(Module.CONSOLIDATION, Action.CREATE)
def consolidation_create():
    data = validate_consolidation_payload(json_body(), creating=True)
    s = db_session()
    try:
        record = create_consolidation(s, current_access(), data)
        s.commit()
    except Exception:
        s.rollback()
        raise
    return jsonify({"message": "Consolidacao cadastrada.", "id": record.id}), 201


@bp.put("/consolidation/<int:consolidation_id>")
@panel_permission(Module.CONSOLIDATION, Action.EDIT)
def consolidation_update(consolidation_id: int):
    path_id(consolidation_id)
    data = validate_consolidation_payload(json_body(), creating=False)
    s = db_session()
    record = get_record(s, current_access().tenant_id, consolidation_id)
    try:
        update_consolidation(s, current_access(), record, data)
        s.commit()
    except Exception:
        s.rollback()
        raise
    return jsonify({"message": "Consolidacao atualizada."})
