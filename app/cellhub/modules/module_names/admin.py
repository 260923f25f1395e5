from __future__ import annotations

from flask import Blueprint, jsonify

from app.cellhub.access import current_access, panel_permission
from app.cellhub.db import db_session
from app.cellhub.modules.module_names.service import (
    list_module_names,
    restore_defaults,
    save_selected,
    validate_save_payload,
)
from app.cellhub.rbac import Action, Module
from app.cellhub.utils import json_body, raise_if_errors

bp = Blueprint("module_names", __name__)


@bp.get("/config/module-names")
@panel_permission(Module.CELLS_ADMIN, Action.VIEW)
def module_names_list():
    return jsonify({"rows": list_module_names(db_session(), current_access().tenant_id)})


@bp.post("/config/module-names/save-selected")
@panel_permission(Module.CELLS_ADMIN, Action.EDIT)
def module_names_save():
    s = db_session()
    items = validate_save_payload(s, json_body())
    try:
        save_selected(s, current_access(), items)
        s.commit()
    except Exception:
        s.rollback()
        raise
    return jsonify({"message": "Nomenclaturas salvas."})


@bp.post("/config/module-names/restore-default")
@panel_permission(Module.CELLS_ADMIN, Action.EDIT)
def module_names_restore():
    payload = json_body()
    codes = payload.get("codes")
    errors: dict[str, str] = {}
    if (
        not isinstance(codes, list)
        or not codes
        or not all(isinstance(c, str) and 1 <= len(c) <= 60 for c in codes)
    ):
        errors["codes"] = "Informe ao menos um codigo valido."
    raise_if_errors(errors)

    s = db_session()
    restore_defaults(s, current_access(), codes)
    s.commit()
    return jsonify({"message": "Padroes restaurados."})
