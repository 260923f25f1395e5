from __future__ import annotations

from flask import Blueprint, jsonify

from app.cellhub.access import current_access, panel_permission
from app.cellhub.db import db_session
from app.cellhub.modules.meetings.service import (
    create_gd,
    list_network_gd,
    list_president_gd,
    president_tree,
    validate_gd_payload,
)
from app.cellhub.rbac import Action, Module
from app.cellhub.utils import json_body

bp = Blueprint("meetings", __name__)


# ---------- Pastor presidente ----------
@bp.get("/president/tree")
@panel_permission(Module.PASTOR_PRESIDENTE, Action.VIEW)
def president_tree_get():
    return jsonify({"groups": president_tree(db_session(), current_access().tenant_id)})


@bp.get("/president/gd")
@panel_permission(Module.PASTOR_PRESIDENTE, Action.VIEW)
def president_gd_list():
    return jsonify({"rows": list_president_gd(db_session(), current_access().tenant_id)})


@bp.post("/president/gd")
@panel_permission(Module.PASTOR_PRESIDENTE, Action.CREATE)
def president_gd_create():
    data = validate_gd_payload(json_body())
    s = db_session()
    try:
        gd = create_gd(s, current_access(), data)
        s.commit()
    except Exception:
        s.rollback()
        raise
    return jsonify({"message": "Registro GD criado.", "id": gd.id}), 201


# ---------- Pastor de rede ----------
@bp.get("/network/gd")
@panel_permission(Module.PASTOR_REDE, Action.VIEW)
def network_gd_list():
    return jsonify({"rows": list_network_gd(db_session(), current_access())})
