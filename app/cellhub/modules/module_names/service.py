from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from app.cellhub.audit import record_event
from app.cellhub.modules.module_names.models import ModuleNameDefault, ModuleNameOverride
from app.cellhub.utils import clean_text, raise_if_errors

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.cellhub.access import AccessContext


def list_module_names(s: "Session", tenant_id: int) -> list[dict[str, Any]]:
    rows = s.execute(
        select(ModuleNameDefault.code, ModuleNameDefault.default_label, ModuleNameOverride.custom_label)
        .outerjoin(
            ModuleNameOverride,
            (ModuleNameOverride.code == ModuleNameDefault.code) & (ModuleNameOverride.tenant_id == tenant_id),
        )
        .order_by(ModuleNameDefault.code)
    ).all()
    return [
        {"code": code, "module": custom or default, "default": default, "selected": bool(custom)}
        for code, default, custom in rows
    ]


def validate_save_payload(s: "Session", payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Returns cleaned ``[{code, label, selected}]`` or raises ValidationFailed."""
    errors: dict[str, str] = {}
    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        errors["items"] = "Informe ao menos um item."
        raise_if_errors(errors)

    known = set(s.execute(select(ModuleNameDefault.code)).scalars())
    items: dict[str, dict[str, Any]] = {}
    for i, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            errors[f"items[{i}]"] = "Item invalido."
            continue
        item_errors: dict[str, str] = {}
        code = clean_text(raw, "code", item_errors, min_len=1, max_len=60, required=True)
        label = clean_text(raw, "label", item_errors, min_len=2, max_len=120, required=True)
        selected = raw.get("selected")
        if not isinstance(selected, bool):
            item_errors["selected"] = "Deve ser verdadeiro ou falso."
        if code and code not in known:
            item_errors["code"] = "Modulo desconhecido."
        for field, msg in item_errors.items():
            errors[f"items[{i}].{field}"] = msg
        if not item_errors:
            items[code] = {"code": code, "label": label, "selected": selected}
    raise_if_errors(errors)
    # Last entry wins for a repeated code.
    return list(items.values())


def save_selected(s: "Session", ctx: "AccessContext", items: list[dict[str, Any]]) -> None:
    """Selected items upsert the church's custom label; unselected ones drop it."""
    now = datetime.utcnow()
    for item in items:
        override = s.get(ModuleNameOverride, (ctx.tenant_id, item["code"]))
        if item["selected"]:
            if override is None:
                s.add(
                    ModuleNameOverride(
                        tenant_id=ctx.tenant_id,
                        code=item["code"],
                        custom_label=item["label"],
                        updated_by_user_id=ctx.user_id,
                        updated_at=now,
                    )
                )
            else:
                override.custom_label = item["label"]
                override.updated_by_user_id = ctx.user_id
                override.updated_at = now
        elif override is not None:
            s.delete(override)

    record_event(
        s,
        actor=ctx,
        action="module_names.save",
        entity_type="ModuleNameOverride",
        metadata={"items": items},
    )


def restore_defaults(s: "Session", ctx: "AccessContext", codes: list[str]) -> int:
    result = s.execute(
        delete(ModuleNameOverride).where(
            ModuleNameOverride.tenant_id == ctx.tenant_id,
            ModuleNameOverride.code.in_(codes),
        )
    )
    record_event(
        s,
        actor=ctx,
        action="module_names.restore_default",
        entity_type="ModuleNameOverride",
        metadata={"codes": codes},
    )
    return result.rowcount or 0
