"""
Panel permission policy.

Pure, import-time-constant tables: which scope each role sees and which
actions it may take per module. Nothing here touches the database; the
request-time context loader lives in app.cellhub.access.
"""
from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping

from app.cellhub.errors import Forbidden, InvalidRole, MatrixIncomplete

if TYPE_CHECKING:
    from app.cellhub.access import AccessContext

logger = logging.getLogger(__name__)


class PanelRole(str, Enum):
    ADMIN_GERAL = "admin_geral"
    PASTOR_PRESIDENTE = "pastor_presidente"
    PASTOR_REDE = "pastor_rede"
    LIDER_CELULA = "lider_celula"
    SECRETARIA = "secretaria"


class LegacyRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    LEADER = "leader"
    MEMBER = "member"


class Module(str, Enum):
    DASHBOARD = "dashboard"
    CELLS_ADMIN = "cells_admin"
    DISCIPLESHIP = "discipleship"
    CONSOLIDATION = "consolidation"
    LEADERSHIP_SCHOOL = "leadership_school"
    PASTOR_PRESIDENTE = "pastor_presidente"
    PASTOR_REDE = "pastor_rede"
    LIDER_CELULA = "lider_celula"
    EMAIL = "email"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"
    PRINT = "print"


class ScopeKind(str, Enum):
    ALL = "all"
    NETWORK = "network"
    CELL = "cell"


ALL_ACTIONS = frozenset(Action)
READ_ACTIONS = frozenset({Action.VIEW, Action.EXPORT, Action.PRINT})
EDITOR_ACTIONS = frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.EXPORT, Action.PRINT})
VIEW_ONLY = frozenset({Action.VIEW})
NO_ACCESS: frozenset[Action] = frozenset()

ROLE_ALIASES: Mapping[LegacyRole, PanelRole] = MappingProxyType(
    {
        LegacyRole.OWNER: PanelRole.ADMIN_GERAL,
        LegacyRole.ADMIN: PanelRole.ADMIN_GERAL,
        LegacyRole.LEADER: PanelRole.LIDER_CELULA,
        LegacyRole.MEMBER: PanelRole.LIDER_CELULA,
    }
)

ROLE_SCOPES: Mapping[PanelRole, ScopeKind] = MappingProxyType(
    {
        PanelRole.ADMIN_GERAL: ScopeKind.ALL,
        PanelRole.PASTOR_PRESIDENTE: ScopeKind.ALL,
        PanelRole.PASTOR_REDE: ScopeKind.NETWORK,
        PanelRole.LIDER_CELULA: ScopeKind.CELL,
        PanelRole.SECRETARIA: ScopeKind.ALL,
    }
)

PERMISSION_MATRIX: Mapping[PanelRole, Mapping[Module, frozenset[Action]]] = MappingProxyType(
    {
        PanelRole.ADMIN_GERAL: MappingProxyType({m: ALL_ACTIONS for m in Module}),
        PanelRole.PASTOR_PRESIDENTE: MappingProxyType(
            {
                Module.DASHBOARD: READ_ACTIONS,
                Module.CELLS_ADMIN: EDITOR_ACTIONS,
                Module.DISCIPLESHIP: READ_ACTIONS,
                Module.CONSOLIDATION: EDITOR_ACTIONS,
                Module.LEADERSHIP_SCHOOL: READ_ACTIONS,
                Module.PASTOR_PRESIDENTE: EDITOR_ACTIONS,
                Module.PASTOR_REDE: READ_ACTIONS,
                Module.LIDER_CELULA: READ_ACTIONS,
                Module.EMAIL: EDITOR_ACTIONS,
            }
        ),
        PanelRole.PASTOR_REDE: MappingProxyType(
            {
                Module.DASHBOARD: READ_ACTIONS,
                Module.CELLS_ADMIN: VIEW_ONLY,
                Module.DISCIPLESHIP: READ_ACTIONS,
                Module.CONSOLIDATION: EDITOR_ACTIONS,
                Module.LEADERSHIP_SCHOOL: READ_ACTIONS,
                Module.PASTOR_PRESIDENTE: NO_ACCESS,
                Module.PASTOR_REDE: EDITOR_ACTIONS,
                Module.LIDER_CELULA: READ_ACTIONS,
                Module.EMAIL: EDITOR_ACTIONS,
            }
        ),
        PanelRole.LIDER_CELULA: MappingProxyType(
            {
                Module.DASHBOARD: READ_ACTIONS,
                Module.CELLS_ADMIN: VIEW_ONLY,
                Module.DISCIPLESHIP: EDITOR_ACTIONS,
                Module.CONSOLIDATION: EDITOR_ACTIONS,
                Module.LEADERSHIP_SCHOOL: READ_ACTIONS,
                Module.PASTOR_PRESIDENTE: NO_ACCESS,
                Module.PASTOR_REDE: NO_ACCESS,
                Module.LIDER_CELULA: EDITOR_ACTIONS,
                Module.EMAIL: EDITOR_ACTIONS,
            }
        ),
        PanelRole.SECRETARIA: MappingProxyType(
            {
                Module.DASHBOARD: READ_ACTIONS,
                Module.CELLS_ADMIN: EDITOR_ACTIONS,
                Module.DISCIPLESHIP: EDITOR_ACTIONS,
                Module.CONSOLIDATION: EDITOR_ACTIONS,
                Module.LEADERSHIP_SCHOOL: READ_ACTIONS,
                Module.PASTOR_PRESIDENTE: READ_ACTIONS,
                Module.PASTOR_REDE: READ_ACTIONS,
                Module.LIDER_CELULA: READ_ACTIONS,
                Module.EMAIL: EDITOR_ACTIONS,
            }
        ),
    }
)

# Stable output order for serialized permission lists.
_ACTION_ORDER = tuple(Action)


def check_matrix_completeness() -> None:
    """Fail loudly if any (role, module) pair has no entry."""
    missing: list[str] = []
    for role in PanelRole:
        if role not in ROLE_SCOPES:
            missing.append(f"{role.value}:<scope>")
        modules = PERMISSION_MATRIX.get(role)
        for module in Module:
            if modules is None or module not in modules:
                missing.append(f"{role.value}:{module.value}")
    if missing:
        raise MatrixIncomplete("Permission matrix incomplete: " + ", ".join(missing))


check_matrix_completeness()


def normalize_role(raw: str | PanelRole | LegacyRole) -> PanelRole:
    """
    Map a stored/token role onto the canonical panel role.

    Canonical values pass through; legacy aliases are translated; anything else
    raises InvalidRole rather than silently picking a default.
    """
    if isinstance(raw, PanelRole):
        return raw
    if isinstance(raw, LegacyRole):
        return ROLE_ALIASES[raw]
    value = (raw or "").strip() if isinstance(raw, str) else raw
    try:
        return PanelRole(value)
    except ValueError:
        pass
    try:
        return ROLE_ALIASES[LegacyRole(value)]
    except ValueError:
        raise InvalidRole(raw) from None


def is_known_role(raw: str) -> bool:
    try:
        normalize_role(raw)
    except InvalidRole:
        return False
    return True


def scope_of(role: PanelRole) -> ScopeKind:
    return ROLE_SCOPES[role]


def allowed_actions(role: PanelRole, module: Module) -> frozenset[Action]:
    return PERMISSION_MATRIX[role][module]


def can_access(role: PanelRole, module: Module | str, action: Action | str) -> bool:
    return Action(action) in allowed_actions(role, Module(module))


def role_permissions(role: PanelRole) -> dict[str, list[str]]:
    """JSON-friendly view of a role's matrix row, as sent to the panel frontend."""
    modules = PERMISSION_MATRIX[role]
    return {
        module.value: [a.value for a in _ACTION_ORDER if a in modules[module]]
        for module in Module
    }


def assert_allowed(ctx: "AccessContext", module: Module | str, action: Action | str) -> None:
    """
    Permission gate. Raises Forbidden when the context's role lacks the action;
    otherwise returns without touching anything.
    """
    if not can_access(ctx.role, module, action):
        logger.warning(
            "Forbidden: missing_permission=%s.%s role=%s user_id=%s tenant_id=%s",
            Module(module).value,
            Action(action).value,
            ctx.role.value,
            ctx.user_id,
            ctx.tenant_id,
        )
        raise Forbidden("Voce nao possui permissao para esta acao.")
