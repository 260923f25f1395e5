from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import and_, func, select

from app.cellhub.access import ensure_network_visible, visible_cells
from app.cellhub.audit import record_event
from app.cellhub.errors import Forbidden, ValidationFailed
from app.cellhub.models import Cell, ChurchNetwork
from app.cellhub.modules.cells.models import ParticipantCellLink
from app.cellhub.modules.meetings.models import MEETING_TYPES, GdControl
from app.cellhub.rbac import ScopeKind
from app.cellhub.utils import clean_date, clean_id, clean_text, clean_time, raise_if_errors, short_code

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext


def president_tree(s: "Session", tenant_id: int) -> list[dict[str, Any]]:
    """Active networks with their active cells and member counts, grouped by network."""
    members = func.count(ParticipantCellLink.participant_id)
    rows = s.execute(
        select(ChurchNetwork.id, ChurchNetwork.name, Cell.id, Cell.name, Cell.phone, Cell.email, members)
        .join(Cell, and_(Cell.network_id == ChurchNetwork.id, Cell.is_active.is_(True)))
        .outerjoin(
            ParticipantCellLink,
            and_(
                ParticipantCellLink.cell_id == Cell.id,
                ParticipantCellLink.is_active.is_(True),
                ParticipantCellLink.type == "member",
            ),
        )
        .where(ChurchNetwork.tenant_id == tenant_id, ChurchNetwork.is_active.is_(True))
        .group_by(ChurchNetwork.id, ChurchNetwork.name, Cell.id, Cell.name, Cell.phone, Cell.email)
        .order_by(ChurchNetwork.name, Cell.name)
    ).all()

    groups: dict[int, dict[str, Any]] = {}
    for network_id, network_name, cell_id, cell_name, phone, email, count in rows:
        group = groups.setdefault(
            network_id, {"networkId": network_id, "networkName": network_name, "rows": []}
        )
        code = short_code(cell_id)
        group["rows"].append(
            {
                "cell": cell_name,
                "phone": phone,
                "email": email,
                "members": int(count or 0),
                "viewAction": f"ver-{code}",
                "lessonAction": f"licao-{code}",
            }
        )
    return [{**g, "cellsCount": len(g["rows"])} for g in groups.values()]


def list_president_gd(s: "Session", tenant_id: int) -> list[dict[str, Any]]:
    rows = s.execute(
        select(GdControl)
        .where(GdControl.tenant_id == tenant_id)
        .order_by(GdControl.meeting_date.desc(), GdControl.created_at.desc(), GdControl.id.desc())
    ).scalars()
    return [
        {
            "id": gd.id,
            "code": short_code(gd.id),
            "meetingType": gd.meeting_type,
            "leader": gd.leader_name,
            "date": gd.meeting_date.isoformat(),
        }
        for gd in rows
    ]


def list_network_gd(s: "Session", ctx: "AccessContext") -> list[dict[str, Any]]:
    """Network-scoped callers see only their networks' meetings; everyone else the whole church."""
    q = select(GdControl).where(GdControl.tenant_id == ctx.tenant_id)
    if ctx.scope is ScopeKind.NETWORK:
        if not ctx.network_ids:
            return []
        q = q.where(GdControl.network_id.in_(ctx.network_ids))
    rows = s.execute(q.order_by(GdControl.meeting_date.desc(), GdControl.id.desc())).scalars()
    return [
        {
            "leader": gd.leader_name,
            "date": gd.meeting_date.isoformat(),
            "time": gd.meeting_time.isoformat() if gd.meeting_time else None,
        }
        for gd in rows
    ]


def validate_gd_payload(payload: dict[str, Any]) -> dict[str, Any]:
    errors: dict[str, str] = {}
    meeting_type = payload.get("meetingType") or "gd"
    if meeting_type not in MEETING_TYPES:
        errors["meetingType"] = f"Tipo invalido. Use: {', '.join(MEETING_TYPES)}"
    data = {
        "cell_id": clean_id(payload, "cellId", errors, required=False),
        "network_id": clean_id(payload, "networkId", errors, required=False),
        "meeting_type": meeting_type,
        "leader_name": clean_text(payload, "leaderName", errors, min_len=2, max_len=160, required=True),
        "meeting_date": clean_date(payload, "meetingDate", errors, required=True),
        "meeting_time": clean_time(payload, "meetingTime", errors),
    }
    raise_if_errors(errors)
    return data


def create_gd(s: "Session", ctx: "AccessContext", data: dict[str, Any]) -> GdControl:
    """
    A supplied cell or network must be inside the caller's visible sets; when
    both are given the cell must belong to that network.
    """
    cell = None
    if data["cell_id"] is not None:
        cell = next((c for c in visible_cells(s, ctx) if c.id == data["cell_id"]), None)
        if cell is None:
            raise Forbidden("Celula fora do seu escopo.")
    if data["network_id"] is not None:
        ensure_network_visible(s, ctx, data["network_id"])
        if cell is not None and cell.network_id != data["network_id"]:
            raise ValidationFailed(
                "Celula nao pertence a rede informada.",
                issues={"cellId": "Celula de outra rede."},
            )

    gd = GdControl(tenant_id=ctx.tenant_id, created_by_user_id=ctx.user_id, **data)
    s.add(gd)
    s.flush()
    record_event(
        s,
        actor=ctx,
        action="gd.create",
        entity_type="GdControl",
        entity_id=str(gd.id),
        metadata={"meeting_type": gd.meeting_type, "meeting_date": gd.meeting_date},
    )
    return gd
