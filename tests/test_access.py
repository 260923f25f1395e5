import pytest

from app.cellhub.access import build_access_context, ensure_network_visible, resolve_scope, visible_cells
from app.cellhub.db import session_scope
from app.cellhub.errors import Forbidden, SessionInvalid
from app.cellhub.models import ChurchNetwork, Tenant, TenantMember
from app.cellhub.rbac import PanelRole, ScopeKind


def _ctx(app, seeded, key, tenant="tenant_a"):
    with session_scope(app) as s:
        return build_access_context(s, seeded["users"][key], seeded[tenant])


def _visible_ids(app, ctx):
    with session_scope(app) as s:
        return {c.id for c in visible_cells(s, ctx)}


def test_resolve_scope_per_role(app, seeded):
    a, users, nets, cells = seeded["tenant_a"], seeded["users"], seeded["networks"], seeded["cells"]
    with session_scope(app) as s:
        admin = resolve_scope(s, PanelRole.ADMIN_GERAL, users["admin"], a)
        pastor = resolve_scope(s, PanelRole.PASTOR_REDE, users["pastor"], a)
        leader = resolve_scope(s, PanelRole.LIDER_CELULA, users["leader"], a)
        lonely = resolve_scope(s, PanelRole.LIDER_CELULA, users["lonely"], a)

    assert admin.scope is ScopeKind.ALL and admin.network_ids == () and admin.cell_ids == ()
    assert pastor.scope is ScopeKind.NETWORK and pastor.network_ids == (nets["north"],)
    assert leader.scope is ScopeKind.CELL and leader.cell_ids == (cells["alfa"],)
    assert lonely.cell_ids == ()


def test_resolve_scope_is_deterministic(app, seeded):
    with session_scope(app) as s:
        first = resolve_scope(s, PanelRole.PASTOR_REDE, seeded["users"]["pastor"], seeded["tenant_a"])
        second = resolve_scope(s, PanelRole.PASTOR_REDE, seeded["users"]["pastor"], seeded["tenant_a"])
    assert first == second


def test_context_fields(app, seeded):
    ctx = _ctx(app, seeded, "pastor")
    assert ctx.role is PanelRole.PASTOR_REDE
    assert ctx.scope is ScopeKind.NETWORK
    assert ctx.tenant_name == "Igreja A"
    assert ctx.user_email == "rede@a.org"


def test_visible_cells_contained_in_scope(app, seeded):
    cells = seeded["cells"]
    assert _visible_ids(app, _ctx(app, seeded, "admin")) == {cells["alfa"], cells["beta"], cells["gama"]}
    assert _visible_ids(app, _ctx(app, seeded, "president")) == {cells["alfa"], cells["beta"], cells["gama"]}
    assert _visible_ids(app, _ctx(app, seeded, "pastor")) == {cells["alfa"], cells["beta"]}
    assert _visible_ids(app, _ctx(app, seeded, "leader")) == {cells["alfa"]}
    assert _visible_ids(app, _ctx(app, seeded, "lonely")) == set()
    assert _visible_ids(app, _ctx(app, seeded, "other", tenant="tenant_b")) == {cells["b"]}


def test_visible_cells_ordering_and_shape(app, seeded):
    ctx = _ctx(app, seeded, "admin")
    with session_scope(app) as s:
        rows = visible_cells(s, ctx)
    assert [c.name for c in rows] == ["Celula Alfa", "Celula Beta", "Celula Gama"]
    first = rows[0].to_dict()
    assert first["network_name"] == "Rede Norte"
    assert first["leader_name"] == "Lider Celula"


def test_network_visibility(app, seeded):
    nets = seeded["networks"]
    pastor = _ctx(app, seeded, "pastor")
    admin = _ctx(app, seeded, "admin")
    with session_scope(app) as s:
        ensure_network_visible(s, pastor, nets["north"])
        ensure_network_visible(s, admin, nets["south"])
        with pytest.raises(Forbidden):
            ensure_network_visible(s, pastor, nets["south"])
        with pytest.raises(Forbidden):
            ensure_network_visible(s, admin, nets["b"])


def test_context_requires_membership_in_tenant(app, seeded):
    with pytest.raises(SessionInvalid):
        _ctx(app, seeded, "admin", tenant="tenant_b")


def test_context_rejects_inactive_membership(app, seeded):
    with session_scope(app) as s:
        s.get(TenantMember, (seeded["tenant_a"], seeded["users"]["leader"])).is_active = False
    with pytest.raises(SessionInvalid):
        _ctx(app, seeded, "leader")


def test_context_rejects_inactive_tenant(app, seeded):
    with session_scope(app) as s:
        s.get(Tenant, seeded["tenant_a"]).is_active = False
    with pytest.raises(SessionInvalid):
        _ctx(app, seeded, "admin")


def test_context_normalizes_legacy_role(app, seeded):
    ctx = _ctx(app, seeded, "other", tenant="tenant_b")
    assert ctx.role is PanelRole.ADMIN_GERAL
    assert ctx.scope is ScopeKind.ALL


def test_context_is_not_cached(app, seeded):
    assert _ctx(app, seeded, "pastor").role is PanelRole.PASTOR_REDE
    with session_scope(app) as s:
        s.get(TenantMember, (seeded["tenant_a"], seeded["users"]["pastor"])).role = "secretaria"
    ctx = _ctx(app, seeded, "pastor")
    assert ctx.role is PanelRole.SECRETARIA
    assert ctx.scope is ScopeKind.ALL


def test_inactive_network_is_not_visible(app, seeded):
    nets = seeded["networks"]
    with session_scope(app) as s:
        s.get(ChurchNetwork, nets["north"]).is_active = False
    pastor = _ctx(app, seeded, "pastor")
    admin = _ctx(app, seeded, "admin")
    with session_scope(app) as s:
        with pytest.raises(Forbidden):
            ensure_network_visible(s, admin, nets["north"])
        with pytest.raises(Forbidden):
            ensure_network_visible(s, pastor, nets["north"])
        ensure_network_visible(s, admin, nets["south"])
