import pytest
from sqlalchemy import select

from app.cellhub.db import session_scope
from app.cellhub.models import TenantMember, UserCellScope, UserNetworkScope
from scripts.assign_scope import assign_scope


def _assign(app, email, *, networks=(), cells=(), role=None):
    assign_scope(
        tenant_slug="igreja-a",
        email=email,
        network_codes=list(networks),
        cell_codes=list(cells),
        role=role,
        db_url=app.config["DATABASE_URL"],
    )


def _scopes(app, user_id):
    with session_scope(app) as s:
        nets = set(s.execute(select(UserNetworkScope.network_id).where(UserNetworkScope.user_id == user_id)).scalars())
        cells = set(s.execute(select(UserCellScope.cell_id).where(UserCellScope.user_id == user_id)).scalars())
    return nets, cells


def test_network_pastor_gets_networks_only(app, seeded):
    _assign(app, "rede@a.org", networks=["RS"])
    nets, cells = _scopes(app, seeded["users"]["pastor"])
    assert nets == {seeded["networks"]["north"], seeded["networks"]["south"]}
    assert cells == set()

    with pytest.raises(SystemExit):
        _assign(app, "rede@a.org", cells=["ALFA"])
    assert _scopes(app, seeded["users"]["pastor"])[1] == set()


def test_cell_leader_cannot_receive_network_scope(app, seeded):
    with pytest.raises(SystemExit):
        _assign(app, "lider@a.org", networks=["RN"], cells=["BETA"])
    nets, cells = _scopes(app, seeded["users"]["leader"])
    assert nets == set()
    assert cells == {seeded["cells"]["alfa"]}


def test_all_scope_roles_take_no_assignments(app, seeded):
    with pytest.raises(SystemExit):
        _assign(app, "admin@a.org", networks=["RN"])
    with pytest.raises(SystemExit):
        _assign(app, "presidente@a.org", cells=["ALFA"])
    assert _scopes(app, seeded["users"]["admin"]) == (set(), set())


def test_role_change_decides_the_allowed_scope(app, seeded):
    _assign(app, "secretaria@a.org", cells=["BETA"], role="lider_celula")
    with session_scope(app) as s:
        member = s.get(TenantMember, (seeded["tenant_a"], seeded["users"]["secretary"]))
        assert member.role == "lider_celula"
    assert _scopes(app, seeded["users"]["secretary"]) == (set(), {seeded["cells"]["beta"]})
