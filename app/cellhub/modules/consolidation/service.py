"""
Consolidation follow-up: a record per newcomer, an optional row of step
milestones (upserted as a whole) and an append-only history of notes.
"""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.cellhub.access import visible_cell_ids
from app.cellhub.audit import record_event
from app.cellhub.errors import NotFound, ValidationFailed
from app.cellhub.modules.cells.models import Participant, ParticipantCellLink
from app.cellhub.modules.consolidation.models import (
    CONSOLIDATION_STEPS,
    KNOWN_BY_CHOICES,
    ConsolidationHistory,
    ConsolidationRecord,
    ConsolidationSteps,
)
from app.cellhub.utils import clean_bool, clean_date, clean_id, clean_text, raise_if_errors, short_code

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext

NO_CONGREGATION = "Sem congregacao"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _clean_steps(raw: Any, errors: dict[str, str]) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        errors["steps"] = "Etapas invalidas."
        return None
    steps: dict[str, Any] = {}
    for step in CONSOLIDATION_STEPS:
        flag_key, date_key = _camel(step), _camel(step) + "Date"
        step_errors: dict[str, str] = {}
        steps[step] = clean_bool(raw, flag_key, step_errors)
        steps[f"{step}_date"] = clean_date(raw, date_key, step_errors)
        for field, msg in step_errors.items():
            errors[f"steps.{field}"] = msg
    return steps


def validate_consolidation_payload(payload: dict[str, Any], *, creating: bool) -> dict[str, Any]:
    errors: dict[str, str] = {}
    known_by = payload.get("knownBy")
    if known_by is None and creating:
        known_by = "friends"
    if known_by is not None and known_by not in KNOWN_BY_CHOICES:
        errors["knownBy"] = f"Valor invalido. Use: {', '.join(KNOWN_BY_CHOICES)}"

    data = {
        "participant_id": clean_id(payload, "participantId", errors, required=False),
        "participant_name": clean_text(payload, "participantName", errors, min_len=2, max_len=160),
        "congregation_name": clean_text(payload, "congregationName", errors, max_len=160),
        "request_text": clean_text(payload, "requestText", errors, max_len=2000),
        "known_by": known_by,
        "known_by_other": clean_text(payload, "knownByOther", errors, max_len=120),
        "history_note": clean_text(payload, "historyNote", errors, max_len=1500),
        "steps": _clean_steps(payload.get("steps"), errors),
    }
    raise_if_errors(errors)
    return data


def list_consolidations(s: "Session", ctx: "AccessContext", name_filter: str = "") -> list[dict[str, Any]]:
    """
    Records whose participant is actively linked to a visible cell, newest
    first, grouped by congregation name.
    """
    cell_ids = visible_cell_ids(s, ctx)
    if not cell_ids:
        return []

    q = (
        select(ConsolidationRecord, Participant, ParticipantCellLink.type)
        .join(Participant, Participant.id == ConsolidationRecord.participant_id)
        .join(
            ParticipantCellLink,
            (ParticipantCellLink.participant_id == Participant.id)
            & (ParticipantCellLink.tenant_id == ConsolidationRecord.tenant_id)
            & ParticipantCellLink.is_active.is_(True),
        )
        .where(ConsolidationRecord.tenant_id == ctx.tenant_id, ParticipantCellLink.cell_id.in_(cell_ids))
        .order_by(ConsolidationRecord.created_at.desc(), ConsolidationRecord.id.desc())
    )
    name_filter = (name_filter or "").strip()
    if name_filter:
        q = q.where(Participant.full_name.ilike(f"%{name_filter}%"))

    groups: dict[str, list[dict[str, Any]]] = {}
    seen: set[int] = set()
    for record, participant, ptype in s.execute(q).all():
        if record.id in seen:
            continue
        seen.add(record.id)
        groups.setdefault(record.congregation_name or NO_CONGREGATION, []).append(
            {
                "id": record.id,
                "code": short_code(record.id),
                "name": participant.full_name,
                "type": ptype,
                "phoneHome": participant.phone_home,
                "date": record.created_at.isoformat(),
            }
        )
    return [{"congregationName": name, "items": items} for name, items in groups.items()]


def get_record(s: "Session", tenant_id: int, consolidation_id: int) -> ConsolidationRecord:
    record = s.execute(
        select(ConsolidationRecord).where(
            ConsolidationRecord.id == consolidation_id,
            ConsolidationRecord.tenant_id == tenant_id,
        )
    ).scalar_one_or_none()
    if record is None:
        raise NotFound("Registro nao encontrado.")
    return record


def _steps_dict(steps: ConsolidationSteps | None) -> dict[str, Any] | None:
    if steps is None:
        return None
    out: dict[str, Any] = {}
    for step in CONSOLIDATION_STEPS:
        out[step] = getattr(steps, step)
        when = getattr(steps, f"{step}_date")
        out[f"{step}_date"] = when.isoformat() if when else None
    return out


def consolidation_detail(record: ConsolidationRecord) -> dict[str, Any]:
    return {
        "record": {
            "id": record.id,
            "participant_id": record.participant_id,
            "participant_name": record.participant.full_name,
            "congregation_name": record.congregation_name,
            "request_text": record.request_text,
            "known_by": record.known_by,
            "known_by_other": record.known_by_other,
            "created_at": record.created_at.isoformat(),
        },
        "steps": _steps_dict(record.steps),
        "history": [
            {
                "id": h.id,
                "note": h.note,
                "created_at": h.created_at.isoformat(),
                "author_name": h.author.full_name if h.author else None,
            }
            for h in record.history
        ],
    }


def _upsert_steps(s: "Session", record: ConsolidationRecord, steps: dict[str, Any]) -> None:
    row = record.steps
    if row is None:
        row = ConsolidationSteps(consolidation_id=record.id)
        s.add(row)
        record.steps = row
    for key, value in steps.items():
        setattr(row, key, value)
    row.updated_at = datetime.utcnow()


def _add_note(s: "Session", ctx: "AccessContext", record: ConsolidationRecord, note: str) -> None:
    s.add(
        ConsolidationHistory(
            consolidation_id=record.id,
            tenant_id=ctx.tenant_id,
            created_by_user_id=ctx.user_id,
            note=note,
        )
    )


def _resolve_participant(s: "Session", ctx: "AccessContext", data: dict[str, Any], cell_ids: list[int]) -> int:
    if data["participant_id"] is not None:
        found = s.execute(
            select(Participant.id).where(
                Participant.id == data["participant_id"],
                Participant.tenant_id == ctx.tenant_id,
            )
        ).first()
        if found is None:
            raise NotFound("Participante nao localizado.")
        return data["participant_id"]

    if not data["participant_name"]:
        raise ValidationFailed("Informe o participante.", issues={"participantName": "Campo obrigatorio."})

    # New people enter as visitors of the first visible cell.
    participant = Participant(tenant_id=ctx.tenant_id, full_name=data["participant_name"])
    s.add(participant)
    s.flush()
    s.add(
        ParticipantCellLink(
            participant_id=participant.id,
            cell_id=cell_ids[0],
            tenant_id=ctx.tenant_id,
            type="visitor",
            is_active=True,
        )
    )
    return participant.id


def create_consolidation(s: "Session", ctx: "AccessContext", data: dict[str, Any]) -> ConsolidationRecord:
    cell_ids = visible_cell_ids(s, ctx)
    if not cell_ids:
        raise ValidationFailed("Sem celulas disponiveis para consolidacao.")

    participant_id = _resolve_participant(s, ctx, data, cell_ids)
    record = ConsolidationRecord(
        tenant_id=ctx.tenant_id,
        participant_id=participant_id,
        congregation_name=data["congregation_name"],
        request_text=data["request_text"],
        known_by=data["known_by"],
        known_by_other=data["known_by_other"] if data["known_by"] == "other" else None,
        created_by_user_id=ctx.user_id,
    )
    s.add(record)
    s.flush()

    if data["steps"] is not None:
        _upsert_steps(s, record, data["steps"])
    if data["history_note"]:
        _add_note(s, ctx, record, data["history_note"])

    record_event(
        s,
        actor=ctx,
        action="consolidation.create",
        entity_type="ConsolidationRecord",
        entity_id=str(record.id),
        metadata={"participant_id": participant_id},
    )
    return record


def update_consolidation(s: "Session", ctx: "AccessContext", record: ConsolidationRecord, data: dict[str, Any]) -> None:
    """Omitted fields keep their value; steps, when sent, replace the whole row."""
    if data["congregation_name"] is not None:
        record.congregation_name = data["congregation_name"]
    if data["request_text"] is not None:
        record.request_text = data["request_text"]
    if data["known_by"] is not None:
        record.known_by = data["known_by"]
        record.known_by_other = data["known_by_other"] if data["known_by"] == "other" else None
    record.updated_at = datetime.utcnow()

    if data["steps"] is not None:
        _upsert_steps(s, record, data["steps"])
    if data["history_note"]:
        _add_note(s, ctx, record, data["history_note"])

    record_event(
        s,
        actor=ctx,
        action="consolidation.update",
        entity_type="ConsolidationRecord",
        entity_id=str(record.id),
        metadata={"steps": data["steps"] is not None, "note": bool(data["history_note"])},
    )
