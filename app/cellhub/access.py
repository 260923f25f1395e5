"""
Request-scoped access context: who is calling, for which church, with which
role, and which slice of the network/cell hierarchy they can see.

The context is built fresh for every panel request (never cached) so that a
deactivated membership or a changed scope takes effect on the next request.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from flask import g
from sqlalchemy import select
from sqlalchemy.orm import Session, aliased

from app.cellhub.db import db_session
from app.cellhub.errors import Forbidden, InvalidRole, SessionInvalid
from app.cellhub.models import Cell, ChurchNetwork, Tenant, TenantMember, User, UserCellScope, UserNetworkScope
from app.cellhub.rbac import Action, Module, PanelRole, ScopeKind, assert_allowed, normalize_role, scope_of
from app.cellhub.security import current_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedScope:
    scope: ScopeKind
    network_ids: tuple[int, ...] = ()
    cell_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class AccessContext:
    user_id: int
    user_name: str
    user_email: str
    tenant_id: int
    tenant_name: str
    role: PanelRole
    scope: ScopeKind
    network_ids: tuple[int, ...] = field(default_factory=tuple)
    cell_ids: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VisibleCell:
    id: int
    name: str
    code: str
    network_id: int
    network_name: str
    leader_name: str | None
    email: str | None
    phone: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "network_id": self.network_id,
            "network_name": self.network_name,
            "leader_name": self.leader_name,
            "email": self.email,
            "phone": self.phone,
        }


def resolve_scope(s: Session, role: PanelRole, user_id: int, tenant_id: int) -> ResolvedScope:
    """
    Load the concrete network/cell ids a role may act on.

    ``all`` needs no read. Restricted scopes read their assignment table once;
    no rows means an empty (not an error) visible set.
    """
    scope = scope_of(role)
    if scope is ScopeKind.NETWORK:
        rows = s.execute(
            select(UserNetworkScope.network_id)
            .where(UserNetworkScope.tenant_id == tenant_id, UserNetworkScope.user_id == user_id)
            .order_by(UserNetworkScope.network_id)
        ).scalars()
        return ResolvedScope(scope=scope, network_ids=tuple(rows))
    if scope is ScopeKind.CELL:
        rows = s.execute(
            select(UserCellScope.cell_id)
            .where(UserCellScope.tenant_id == tenant_id, UserCellScope.user_id == user_id)
            .order_by(UserCellScope.cell_id)
        ).scalars()
        return ResolvedScope(scope=scope, cell_ids=tuple(rows))
    return ResolvedScope(scope=scope)


def build_access_context(s: Session, user_id: int, tenant_id: int) -> AccessContext:
    """
    Single source of truth for "is this session still valid".

    Requires an active user (not soft-deleted), an active tenant and an active
    membership between them; otherwise SessionInvalid.
    """
    row = s.execute(
        select(User.id, User.full_name, User.email, Tenant.id, Tenant.name, TenantMember.role)
        .join(
            TenantMember,
            (TenantMember.user_id == User.id)
            & (TenantMember.tenant_id == tenant_id)
            & TenantMember.is_active.is_(True),
        )
        .join(Tenant, (Tenant.id == TenantMember.tenant_id) & Tenant.is_active.is_(True))
        .where(User.id == user_id, User.is_active.is_(True), User.deleted_at.is_(None))
        .limit(1)
    ).first()
    if row is None:
        logger.info("Session invalid user_id=%s tenant_id=%s", user_id, tenant_id)
        raise SessionInvalid("Sessao invalida para a igreja selecionada.")

    u_id, u_name, u_email, t_id, t_name, raw_role = row
    try:
        role = normalize_role(raw_role)
    except InvalidRole:
        logger.error("Membership has unknown role %r (user_id=%s tenant_id=%s)", raw_role, u_id, t_id)
        raise SessionInvalid("Sessao invalida para a igreja selecionada.") from None

    resolved = resolve_scope(s, role, u_id, t_id)
    return AccessContext(
        user_id=u_id,
        user_name=u_name,
        user_email=u_email,
        tenant_id=t_id,
        tenant_name=t_name,
        role=role,
        scope=resolved.scope,
        network_ids=resolved.network_ids,
        cell_ids=resolved.cell_ids,
    )


def visible_cells(s: Session, ctx: AccessContext) -> list[VisibleCell]:
    """Active cells the context may see, ordered by network name then cell name."""
    if ctx.scope is ScopeKind.NETWORK and not ctx.network_ids:
        return []
    if ctx.scope is ScopeKind.CELL and not ctx.cell_ids:
        return []

    leader = aliased(User)
    q = (
        select(
            Cell.id,
            Cell.name,
            Cell.code,
            Cell.network_id,
            ChurchNetwork.name,
            leader.full_name,
            Cell.email,
            Cell.phone,
        )
        .join(ChurchNetwork, ChurchNetwork.id == Cell.network_id)
        .outerjoin(leader, leader.id == Cell.leader_user_id)
        .where(Cell.tenant_id == ctx.tenant_id, Cell.is_active.is_(True))
    )
    if ctx.scope is ScopeKind.NETWORK:
        q = q.where(Cell.network_id.in_(ctx.network_ids))
    elif ctx.scope is ScopeKind.CELL:
        q = q.where(Cell.id.in_(ctx.cell_ids))
    q = q.order_by(ChurchNetwork.name, Cell.name, Cell.id)

    return [VisibleCell(*row) for row in s.execute(q).all()]


def visible_cell_ids(s: Session, ctx: AccessContext) -> list[int]:
    return [c.id for c in visible_cells(s, ctx)]


def ensure_cell_visible(s: Session, ctx: AccessContext, cell_id: int, *, message: str = "Celula fora do seu escopo.") -> None:
    if cell_id not in set(visible_cell_ids(s, ctx)):
        raise Forbidden(message)


def ensure_network_visible(s: Session, ctx: AccessContext, network_id: int) -> None:
    """The network must be active, belong to the tenant and fall inside the caller's scope."""
    active = (
        s.execute(
            select(ChurchNetwork.id).where(
                ChurchNetwork.id == network_id,
                ChurchNetwork.tenant_id == ctx.tenant_id,
                ChurchNetwork.is_active.is_(True),
            )
        ).first()
        is not None
    )
    if not active:
        visible = False
    elif ctx.scope is ScopeKind.NETWORK:
        visible = network_id in ctx.network_ids
    elif ctx.scope is ScopeKind.CELL:
        visible = network_id in {c.network_id for c in visible_cells(s, ctx)}
    else:
        visible = True
    if not visible:
        raise Forbidden("Rede fora do seu escopo.")


def current_access() -> AccessContext:
    ctx = getattr(g, "access", None)
    if ctx is None:
        raise RuntimeError("No access context")
    return ctx


def panel_permission(module: Module | str, action: Action | str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Gate a panel view: bearer identity -> fresh access context -> permission
    check, all before the view body runs. The context is left on ``g.access``.
    """
    module = Module(module)
    action = Action(action)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            identity = current_identity()
            ctx = build_access_context(db_session(), identity.user_id, identity.tenant_id)
            g.access = ctx
            assert_allowed(ctx, module, action)
            return fn(*args, **kwargs)

        return wrapped

    return decorator
