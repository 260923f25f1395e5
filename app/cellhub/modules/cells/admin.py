from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.cellhub.access import current_access, panel_permission, visible_cells
from app.cellhub.db import db_session
from app.cellhub.modules.cells.service import (
    leader_components,
    promote_participant,
    transfer_context,
    transfer_participants,
    validate_transfer_payload,
)
from app.cellhub.rbac import Action, Module
from app.cellhub.utils import clean_id, json_body, path_id, raise_if_errors

bp = Blueprint("cells", __name__)


# ---------- Cells ----------
@bp.get("/cells")
@panel_permission(Module.CELLS_ADMIN, Action.VIEW)
def cells_list():
    cells = visible_cells(db_session(), current_access())
    return jsonify({"cells": [c.to_dict() for c in cells]})


# ---------- Transfers ----------
@bp.get("/transfers/context")
@panel_permission(Module.CELLS_ADMIN, Action.VIEW)
def transfers_context():
    errors: dict[str, str] = {}
    source = clean_id(request.args, "sourceCellId", errors, required=False)
    raise_if_errors(errors)
    return jsonify(transfer_context(db_session(), current_access(), source))


@bp.post("/transfers")
@panel_permission(Module.CELLS_ADMIN, Action.CREATE)
def transfers_create():
    source, destination, participant_ids = validate_transfer_payload(json_body())
    s = db_session()
    try:
        log = transfer_participants(s, current_access(), source, destination, participant_ids)
        s.commit()
    except Exception:
        s.rollback()
        raise
    return jsonify({"message": "Transferencia realizada com sucesso.", "transferId": log.id}), 201


# ---------- Leader components ----------
@bp.get("/leader/components")
@panel_permission(Module.LIDER_CELULA, Action.VIEW)
def leader_components_list():
    return jsonify({"cells": leader_components(db_session(), current_access())})


@bp.post("/leader/components/<int:participant_id>/promote")
@panel_permission(Module.LIDER_CELULA, Action.EDIT)
def leader_components_promote(participant_id: int):
    path_id(participant_id, "participantId")
    errors: dict[str, str] = {}
    cell_id = clean_id(json_body(), "cellId", errors)
    raise_if_errors(errors)

    s = db_session()
    try:
        from_type, to_type = promote_participant(s, current_access(), participant_id, cell_id)
        s.commit()
    except Exception:
        s.rollback()
        raise

    if from_type == to_type:
        return jsonify({"message": "Participante ja esta como membro.", "type": to_type})
    return jsonify({"message": "Categoria atualizada.", "fromType": from_type, "toType": to_type})
