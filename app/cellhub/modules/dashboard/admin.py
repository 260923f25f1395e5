from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cellhub.access import current_access, panel_permission
from app.cellhub.db import db_session
from app.cellhub.modules.dashboard.service import dashboard_summary, parse_period, search, session_summary
from app.cellhub.rbac import Action, Module

bp = Blueprint("dashboard", __name__)


@bp.get("/me")
@panel_permission(Module.DASHBOARD, Action.VIEW)
def panel_me():
    return jsonify(session_summary(current_access()))


@bp.get("/search")
@panel_permission(Module.DASHBOARD, Action.VIEW)
def panel_search():
    items = search(db_session(), current_access(), request.args.get("q") or "")
    return jsonify({"items": items})


@bp.get("/dashboard")
@panel_permission(Module.DASHBOARD, Action.VIEW)
def dashboard():
    month, year = parse_period(request.args.get("month"), request.args.get("year"))
    return jsonify(dashboard_summary(db_session(), current_access(), month, year))
