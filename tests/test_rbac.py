"""Permission matrix, role normalizer and gate. No datastore involved."""
import pytest

from app.cellhub.access import AccessContext
from app.cellhub.errors import Forbidden, InvalidRole
from app.cellhub.rbac import (
    PERMISSION_MATRIX,
    ROLE_SCOPES,
    Action,
    LegacyRole,
    Module,
    PanelRole,
    ScopeKind,
    assert_allowed,
    can_access,
    check_matrix_completeness,
    is_known_role,
    normalize_role,
    role_permissions,
    scope_of,
)


def _ctx(role: PanelRole) -> AccessContext:
    return AccessContext(
        user_id=1,
        user_name="Teste",
        user_email="t@example.com",
        tenant_id=1,
        tenant_name="Igreja",
        role=role,
        scope=scope_of(role),
    )


def test_matrix_has_every_role_and_module():
    check_matrix_completeness()
    for role in PanelRole:
        assert role in ROLE_SCOPES
        for module in Module:
            assert module in PERMISSION_MATRIX[role]


def test_admin_geral_has_everything():
    for module in Module:
        for action in Action:
            assert can_access(PanelRole.ADMIN_GERAL, module, action)


def test_lider_celula_cannot_view_pastor_presidente():
    assert not can_access(PanelRole.LIDER_CELULA, Module.PASTOR_PRESIDENTE, Action.VIEW)
    with pytest.raises(Forbidden):
        assert_allowed(_ctx(PanelRole.LIDER_CELULA), Module.PASTOR_PRESIDENTE, Action.VIEW)


@pytest.mark.parametrize(
    "role,module,action,expected",
    [
        (PanelRole.PASTOR_PRESIDENTE, Module.CELLS_ADMIN, Action.EDIT, True),
        (PanelRole.PASTOR_PRESIDENTE, Module.DASHBOARD, Action.CREATE, False),
        (PanelRole.PASTOR_PRESIDENTE, Module.CELLS_ADMIN, Action.DELETE, False),
        (PanelRole.PASTOR_REDE, Module.CELLS_ADMIN, Action.VIEW, True),
        (PanelRole.PASTOR_REDE, Module.CELLS_ADMIN, Action.EXPORT, False),
        (PanelRole.PASTOR_REDE, Module.PASTOR_PRESIDENTE, Action.VIEW, False),
        (PanelRole.PASTOR_REDE, Module.PASTOR_REDE, Action.CREATE, True),
        (PanelRole.LIDER_CELULA, Module.PASTOR_REDE, Action.VIEW, False),
        (PanelRole.LIDER_CELULA, Module.DISCIPLESHIP, Action.EDIT, True),
        (PanelRole.SECRETARIA, Module.PASTOR_PRESIDENTE, Action.PRINT, True),
        (PanelRole.SECRETARIA, Module.PASTOR_PRESIDENTE, Action.CREATE, False),
        (PanelRole.SECRETARIA, Module.EMAIL, Action.DELETE, False),
    ],
)
def test_matrix_rows(role, module, action, expected):
    assert can_access(role, module, action) is expected


def test_can_access_accepts_plain_strings():
    assert can_access(PanelRole.LIDER_CELULA, "lider_celula", "edit")


def test_gate_allows_without_side_effects():
    assert assert_allowed(_ctx(PanelRole.SECRETARIA), Module.EMAIL, Action.CREATE) is None


def test_matrix_is_read_only():
    with pytest.raises(TypeError):
        PERMISSION_MATRIX[PanelRole.LIDER_CELULA] = {}  # type: ignore[index]
    with pytest.raises(TypeError):
        PERMISSION_MATRIX[PanelRole.LIDER_CELULA][Module.EMAIL] = frozenset()  # type: ignore[index]


def test_role_scopes():
    assert scope_of(PanelRole.ADMIN_GERAL) is ScopeKind.ALL
    assert scope_of(PanelRole.PASTOR_PRESIDENTE) is ScopeKind.ALL
    assert scope_of(PanelRole.SECRETARIA) is ScopeKind.ALL
    assert scope_of(PanelRole.PASTOR_REDE) is ScopeKind.NETWORK
    assert scope_of(PanelRole.LIDER_CELULA) is ScopeKind.CELL


def test_role_permissions_is_json_friendly_and_ordered():
    perms = role_permissions(PanelRole.PASTOR_REDE)
    assert set(perms) == {m.value for m in Module}
    assert perms["cells_admin"] == ["view"]
    assert perms["pastor_presidente"] == []
    assert perms["email"] == ["view", "create", "edit", "export", "print"]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("owner", PanelRole.ADMIN_GERAL),
        ("admin", PanelRole.ADMIN_GERAL),
        ("leader", PanelRole.LIDER_CELULA),
        ("member", PanelRole.LIDER_CELULA),
        ("secretaria", PanelRole.SECRETARIA),
        ("pastor_rede", PanelRole.PASTOR_REDE),
        (" pastor_presidente ", PanelRole.PASTOR_PRESIDENTE),
        (LegacyRole.OWNER, PanelRole.ADMIN_GERAL),
        (PanelRole.LIDER_CELULA, PanelRole.LIDER_CELULA),
    ],
)
def test_normalize_role(raw, expected):
    assert normalize_role(raw) is expected


@pytest.mark.parametrize("raw", ["", "superuser", "Owner", "ADMIN_GERAL"])
def test_normalize_role_rejects_unknown(raw):
    with pytest.raises(InvalidRole):
        normalize_role(raw)
    assert not is_known_role(raw)


def test_every_role_normalizes_to_itself():
    for role in PanelRole:
        assert normalize_role(role.value) is role
