from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import distinct, func, select

from app.cellhub.access import visible_cells
from app.cellhub.errors import ValidationFailed
from app.cellhub.modules.cells.models import AttendanceEntry, Participant, ParticipantCellLink
from app.cellhub.modules.dashboard.models import FinanceEntry
from app.cellhub.rbac import PanelRole, role_permissions

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext


SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10

_MENU: tuple[dict[str, Any], ...] = (
    {
        "key": "cells",
        "label": "Celulas",
        "icon": "grid",
        "children": (
            {"key": "pastor_presidente", "label": "Pastor presidente"},
            {"key": "pastor_rede", "label": "Pastor de rede"},
            {"key": "lider_celula", "label": "Lider de celula"},
        ),
    },
    {
        "key": "cells_admin",
        "label": "Administracao de Celulas",
        "icon": "shuffle",
        "children": (
            {"key": "transfer", "label": "Transferencia entre celulas"},
            {"key": "config", "label": "Configuracao de celulas"},
        ),
    },
    {"key": "discipleship", "label": "Discipulado", "icon": "users", "children": ()},
    {"key": "consolidation", "label": "Consolidacao", "icon": "clipboard", "children": ()},
    {"key": "leadership_school", "label": "Escola de lideres", "icon": "school", "children": ()},
)

# Roles that only see their own entry under the "cells" menu.
_CELLS_MENU_CHILD = {
    PanelRole.PASTOR_PRESIDENTE: "pastor_presidente",
    PanelRole.PASTOR_REDE: "pastor_rede",
    PanelRole.LIDER_CELULA: "lider_celula",
}


def build_menu(role: PanelRole) -> list[dict[str, Any]]:
    only = _CELLS_MENU_CHILD.get(role)
    menu: list[dict[str, Any]] = []
    for item in _MENU:
        children = [dict(c) for c in item["children"]]
        if item["key"] == "cells" and only:
            children = [c for c in children if c["key"] == only]
        menu.append({**item, "children": children})
    return menu


def session_summary(ctx: "AccessContext") -> dict[str, Any]:
    return {
        "user": {"id": ctx.user_id, "name": ctx.user_name, "email": ctx.user_email},
        "tenant": {"id": ctx.tenant_id, "name": ctx.tenant_name},
        "role": ctx.role.value,
        "scope": ctx.scope.value,
        "permissions": role_permissions(ctx.role),
        "menu": build_menu(ctx.role),
    }


def search(s: "Session", ctx: "AccessContext", q: str) -> list[dict[str, Any]]:
    """Cells (name/code) and participants (name) inside the caller's scope."""
    q = (q or "").strip()
    if len(q) < SEARCH_MIN_LENGTH:
        return []
    cells = visible_cells(s, ctx)
    if not cells:
        return []

    needle = q.lower()
    items: list[dict[str, Any]] = [
        {"type": "cell", "id": c.id, "title": c.name, "subtitle": f"Codigo {c.code}"}
        for c in cells
        if needle in c.name.lower() or needle in c.code.lower()
    ][:SEARCH_LIMIT]

    rows = s.execute(
        select(Participant.id, Participant.full_name)
        .join(
            ParticipantCellLink,
            (ParticipantCellLink.participant_id == Participant.id) & ParticipantCellLink.is_active.is_(True),
        )
        .where(
            Participant.tenant_id == ctx.tenant_id,
            ParticipantCellLink.cell_id.in_([c.id for c in cells]),
            Participant.full_name.ilike(f"%{q}%"),
        )
        .distinct()
        .order_by(Participant.full_name)
        .limit(SEARCH_LIMIT)
    ).all()
    items.extend({"type": "participant", "id": pid, "title": name, "subtitle": "Participante"} for pid, name in rows)
    return items


def parse_period(month_raw: str | None, year_raw: str | None, *, today: date | None = None) -> tuple[int, int]:
    today = today or date.today()
    errors: dict[str, str] = {}
    month, year = today.month, today.year
    if month_raw not in (None, ""):
        try:
            month = int(month_raw)
        except ValueError:
            month = 0
        if not 1 <= month <= 12:
            errors["month"] = "Mes invalido."
    if year_raw not in (None, ""):
        try:
            year = int(year_raw)
        except ValueError:
            year = 0
        if not 1900 <= year <= 9999:
            errors["year"] = "Ano invalido."
    if errors:
        raise ValidationFailed("Periodo invalido.", issues=errors)
    return month, year


def _month_bounds(month: int, year: int) -> tuple[date, date]:
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def _number(value: Decimal | int | None) -> float | int:
    if value is None:
        return 0
    if isinstance(value, Decimal):
        return float(value)
    return value


def empty_dashboard() -> dict[str, Any]:
    return {
        "kpis": {"cells": 0, "participants": 0, "visitors": 0, "financeIn": 0, "financeOut": 0},
        "attendanceByWeek": [],
    }


def dashboard_summary(s: "Session", ctx: "AccessContext", month: int, year: int) -> dict[str, Any]:
    """
    KPIs for the caller's visible cells. Finance totals are church-wide for the
    month; everything else is restricted to visible cells.
    """
    cells = visible_cells(s, ctx)
    if not cells:
        return empty_dashboard()
    cell_ids = [c.id for c in cells]

    active_links = (
        ParticipantCellLink.tenant_id == ctx.tenant_id,
        ParticipantCellLink.cell_id.in_(cell_ids),
        ParticipantCellLink.is_active.is_(True),
    )
    participants = s.execute(
        select(func.count(distinct(ParticipantCellLink.participant_id))).where(*active_links)
    ).scalar_one()
    visitors = s.execute(
        select(func.count(distinct(ParticipantCellLink.participant_id))).where(
            *active_links, ParticipantCellLink.type == "visitor"
        )
    ).scalar_one()

    start, end = _month_bounds(month, year)
    finance = dict(
        s.execute(
            select(FinanceEntry.direction, func.coalesce(func.sum(FinanceEntry.amount), 0))
            .where(
                FinanceEntry.tenant_id == ctx.tenant_id,
                FinanceEntry.entry_date >= start,
                FinanceEntry.entry_date < end,
            )
            .group_by(FinanceEntry.direction)
        ).all()
    )

    attendance = s.execute(
        select(AttendanceEntry.week_start, func.sum(AttendanceEntry.total_attendance))
        .where(
            AttendanceEntry.tenant_id == ctx.tenant_id,
            AttendanceEntry.cell_id.in_(cell_ids),
            AttendanceEntry.week_start >= start,
            AttendanceEntry.week_start < end,
        )
        .group_by(AttendanceEntry.week_start)
        .order_by(AttendanceEntry.week_start)
    ).all()

    return {
        "kpis": {
            "cells": len(cells),
            "participants": participants,
            "visitors": visitors,
            "financeIn": _number(finance.get("in")),
            "financeOut": _number(finance.get("out")),
        },
        "attendanceByWeek": [{"weekStart": week.isoformat(), "total": int(total or 0)} for week, total in attendance],
    }
