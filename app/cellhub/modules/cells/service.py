"""
Participant movement inside the cell hierarchy: transfers between cells and
category promotion (visitor -> congregated -> member).

Service functions flush but never commit; the caller owns the transaction so
each operation lands (or rolls back) as one unit.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.cellhub.access import ensure_cell_visible, visible_cells
from app.cellhub.audit import record_event
from app.cellhub.errors import Forbidden, NotFound, ValidationFailed
from app.cellhub.modules.cells.models import (
    Participant,
    ParticipantCellLink,
    ParticipantStatusHistory,
    TransferLog,
    TransferLogParticipant,
)
from app.cellhub.utils import clean_id, clean_id_list, raise_if_errors

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext

logger = logging.getLogger(__name__)

NEXT_TYPE = {"visitor": "congregated", "congregated": "member", "member": "member"}


def validate_transfer_payload(payload: dict[str, Any]) -> tuple[int, int, list[int]]:
    errors: dict[str, str] = {}
    source = clean_id(payload, "sourceCellId", errors)
    destination = clean_id(payload, "destinationCellId", errors)
    participant_ids = clean_id_list(payload, "participantIds", errors)
    raise_if_errors(errors)

    if source == destination:
        raise ValidationFailed("Origem e destino nao podem ser iguais.")
    return source, destination, participant_ids  # type: ignore[return-value]


def transfer_context(s: "Session", ctx: "AccessContext", source_cell_id: int | None) -> dict[str, Any]:
    cells = visible_cells(s, ctx)
    payload: dict[str, Any] = {"cells": [c.to_dict() for c in cells], "participants": []}
    if source_cell_id is None:
        return payload
    if source_cell_id not in {c.id for c in cells}:
        raise Forbidden("Celula de origem fora do seu escopo.")

    rows = s.execute(
        select(Participant.id, Participant.full_name, ParticipantCellLink.type)
        .join(
            ParticipantCellLink,
            (ParticipantCellLink.participant_id == Participant.id) & ParticipantCellLink.is_active.is_(True),
        )
        .where(Participant.tenant_id == ctx.tenant_id, ParticipantCellLink.cell_id == source_cell_id)
        .order_by(Participant.full_name)
    ).all()
    payload["participants"] = [{"id": pid, "name": name, "type": ptype} for pid, name, ptype in rows]
    return payload


def transfer_participants(
    s: "Session",
    ctx: "AccessContext",
    source_cell_id: int,
    destination_cell_id: int,
    participant_ids: list[int],
) -> TransferLog:
    """
    Move participants from source to destination keeping their category.

    One TransferLog; per participant: source link deactivated, destination
    link inserted or reactivated, TransferLogParticipant row.
    """
    visible = {c.id for c in visible_cells(s, ctx)}
    if source_cell_id not in visible or destination_cell_id not in visible:
        raise Forbidden("Transferencia fora do seu escopo.")

    source_links = list(
        s.execute(
            select(ParticipantCellLink).where(
                ParticipantCellLink.tenant_id == ctx.tenant_id,
                ParticipantCellLink.cell_id == source_cell_id,
                ParticipantCellLink.participant_id.in_(participant_ids),
                ParticipantCellLink.is_active.is_(True),
            )
        ).scalars()
    )
    if len(source_links) != len(participant_ids):
        raise ValidationFailed("Participantes invalidos para a celula de origem.")

    now = datetime.utcnow()
    log = TransferLog(
        tenant_id=ctx.tenant_id,
        source_cell_id=source_cell_id,
        destination_cell_id=destination_cell_id,
        transferred_by_user_id=ctx.user_id,
        transferred_at=now,
    )
    s.add(log)
    s.flush()

    for link in source_links:
        link.is_active = False
        link.updated_at = now

        dest = s.get(ParticipantCellLink, (link.participant_id, destination_cell_id))
        if dest is None:
            s.add(
                ParticipantCellLink(
                    participant_id=link.participant_id,
                    cell_id=destination_cell_id,
                    tenant_id=ctx.tenant_id,
                    type=link.type,
                    is_active=True,
                )
            )
        else:
            dest.type = link.type
            dest.is_active = True
            dest.updated_at = now

        log.participants.append(TransferLogParticipant(participant_id=link.participant_id))

    s.flush()
    record_event(
        s,
        actor=ctx,
        action="cells.transfer",
        entity_type="TransferLog",
        entity_id=str(log.id),
        metadata={
            "source_cell_id": source_cell_id,
            "destination_cell_id": destination_cell_id,
            "participant_ids": participant_ids,
        },
    )
    logger.info(
        "Transfer %s: %s participant(s) %s -> %s (tenant_id=%s)",
        log.id,
        len(source_links),
        source_cell_id,
        destination_cell_id,
        ctx.tenant_id,
    )
    return log


def leader_components(s: "Session", ctx: "AccessContext") -> list[dict[str, Any]]:
    """Visible cells with their active participants split by category."""
    cells = visible_cells(s, ctx)
    if not cells:
        return []

    grouped = [
        {"id": c.id, "name": c.name, "code": c.code, "members": [], "congregated": [], "visitors": []}
        for c in cells
    ]
    by_cell = {g["id"]: g for g in grouped}
    rows = s.execute(
        select(ParticipantCellLink.cell_id, ParticipantCellLink.type, Participant)
        .join(Participant, Participant.id == ParticipantCellLink.participant_id)
        .where(
            ParticipantCellLink.tenant_id == ctx.tenant_id,
            ParticipantCellLink.cell_id.in_(list(by_cell)),
            ParticipantCellLink.is_active.is_(True),
        )
        .order_by(Participant.full_name, Participant.id)
    ).all()

    bucket_for = {"member": "members", "congregated": "congregated"}
    for cell_id, ptype, p in rows:
        by_cell[cell_id][bucket_for.get(ptype, "visitors")].append(
            {
                "id": p.id,
                "name": p.full_name,
                "phoneHome": p.phone_home,
                "phoneMobile": p.phone_mobile,
                "email": p.email,
                "birthDate": p.birth_date.isoformat() if p.birth_date else None,
            }
        )
    return grouped


def promote_participant(s: "Session", ctx: "AccessContext", participant_id: int, cell_id: int) -> tuple[str, str]:
    """
    Advance a participant one category inside a cell. Returns (from, to);
    equal values mean the participant was already a member and nothing changed.
    """
    ensure_cell_visible(s, ctx, cell_id)

    link = s.execute(
        select(ParticipantCellLink).where(
            ParticipantCellLink.participant_id == participant_id,
            ParticipantCellLink.cell_id == cell_id,
            ParticipantCellLink.tenant_id == ctx.tenant_id,
            ParticipantCellLink.is_active.is_(True),
        )
    ).scalar_one_or_none()
    if link is None:
        raise NotFound("Participante nao localizado.")

    from_type = link.type
    to_type = NEXT_TYPE.get(from_type, "member")
    if from_type == to_type:
        return from_type, to_type

    link.type = to_type
    link.updated_at = datetime.utcnow()
    s.add(
        ParticipantStatusHistory(
            tenant_id=ctx.tenant_id,
            participant_id=participant_id,
            from_type=from_type,
            to_type=to_type,
            changed_by_user_id=ctx.user_id,
            notes="Promocao de categoria",
        )
    )
    record_event(
        s,
        actor=ctx,
        action="participant.promote",
        entity_type="Participant",
        entity_id=str(participant_id),
        metadata={"cell_id": cell_id, "from": from_type, "to": to_type},
    )
    return from_type, to_type
