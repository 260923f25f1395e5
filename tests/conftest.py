from datetime import date
from decimal import Decimal

import pytest

from app.cellhub import auth, create_app
from app.cellhub.db import session_scope
from app.cellhub.models import (
    Base,
    Cell,
    ChurchNetwork,
    Tenant,
    TenantMember,
    User,
    UserCellScope,
    UserNetworkScope,
)
from app.cellhub.modules.cells.models import AttendanceEntry, Participant, ParticipantCellLink
from app.cellhub.modules.dashboard.models import FinanceEntry
from app.cellhub.modules.module_names.models import DEFAULT_MODULE_NAMES, ModuleNameDefault
from app.cellhub.security import TokenClaims, hash_password, sign_access_token

PASSWORD = "senha-segura-1"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("JWT_SECRET", "test-jwt-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    auth._login_attempts.clear()

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        for code, label in DEFAULT_MODULE_NAMES:
            s.add(ModuleNameDefault(code=code, default_label=label))

    yield app
    engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


def _user(s, name, email):
    u = User(full_name=name, email=email, password_hash=hash_password(PASSWORD), is_active=True)
    s.add(u)
    return u


def seed_church(s):
    """
    Two churches. Church A has two networks and four cells (one inactive);
    church B exists only to check tenant isolation.
    """
    a = Tenant(name="Igreja A", slug="igreja-a", is_active=True)
    b = Tenant(name="Igreja B", slug="igreja-b", is_active=True)
    s.add_all([a, b])

    users = {
        "admin": _user(s, "Admin Geral", "admin@a.org"),
        "president": _user(s, "Pastor Presidente", "presidente@a.org"),
        "pastor": _user(s, "Pastor Rede", "rede@a.org"),
        "leader": _user(s, "Lider Celula", "lider@a.org"),
        "secretary": _user(s, "Secretaria", "secretaria@a.org"),
        "lonely": _user(s, "Lider Sem Celula", "sem-celula@a.org"),
        "other": _user(s, "Admin B", "admin@b.org"),
    }
    s.flush()

    roles = {
        "admin": "admin_geral",
        "president": "pastor_presidente",
        "pastor": "pastor_rede",
        "leader": "lider_celula",
        "secretary": "secretaria",
        "lonely": "lider_celula",
    }
    for key, role in roles.items():
        s.add(TenantMember(tenant_id=a.id, user_id=users[key].id, role=role, is_active=True))
    s.add(TenantMember(tenant_id=b.id, user_id=users["other"].id, role="owner", is_active=True))

    north = ChurchNetwork(tenant_id=a.id, name="Rede Norte", code="RN", is_active=True)
    south = ChurchNetwork(tenant_id=a.id, name="Rede Sul", code="RS", is_active=True)
    net_b = ChurchNetwork(tenant_id=b.id, name="Rede B", code="RB", is_active=True)
    s.add_all([north, south, net_b])
    s.flush()

    alfa = Cell(tenant_id=a.id, network_id=north.id, name="Celula Alfa", code="ALFA", leader_user_id=users["leader"].id, is_active=True)
    beta = Cell(tenant_id=a.id, network_id=north.id, name="Celula Beta", code="BETA", is_active=True)
    gama = Cell(tenant_id=a.id, network_id=south.id, name="Celula Gama", code="GAMA", is_active=True)
    dead = Cell(tenant_id=a.id, network_id=north.id, name="Celula Inativa", code="OFF", is_active=False)
    cell_b = Cell(tenant_id=b.id, network_id=net_b.id, name="Celula B", code="CB", is_active=True)
    s.add_all([alfa, beta, gama, dead, cell_b])
    s.flush()

    s.add(UserNetworkScope(tenant_id=a.id, user_id=users["pastor"].id, network_id=north.id))
    s.add(UserCellScope(tenant_id=a.id, user_id=users["leader"].id, cell_id=alfa.id))

    people = {
        "ana": (Participant(tenant_id=a.id, full_name="Ana Souza", phone_home="1111"), alfa, "member"),
        "bruno": (Participant(tenant_id=a.id, full_name="Bruno Lima"), alfa, "visitor"),
        "carla": (Participant(tenant_id=a.id, full_name="Carla Dias"), beta, "congregated"),
        "davi": (Participant(tenant_id=a.id, full_name="Davi Rocha"), gama, "member"),
        "bia": (Participant(tenant_id=b.id, full_name="Bia Fora"), cell_b, "member"),
    }
    for p, _cell, _type in people.values():
        s.add(p)
    s.flush()
    for p, cell, ptype in people.values():
        s.add(ParticipantCellLink(participant_id=p.id, cell_id=cell.id, tenant_id=cell.tenant_id, type=ptype, is_active=True))

    s.add_all(
        [
            AttendanceEntry(tenant_id=a.id, cell_id=alfa.id, week_start=date(2026, 3, 2), total_attendance=10),
            AttendanceEntry(tenant_id=a.id, cell_id=gama.id, week_start=date(2026, 3, 2), total_attendance=5),
            AttendanceEntry(tenant_id=a.id, cell_id=alfa.id, week_start=date(2026, 3, 9), total_attendance=7),
            AttendanceEntry(tenant_id=a.id, cell_id=alfa.id, week_start=date(2026, 4, 6), total_attendance=99),
            FinanceEntry(tenant_id=a.id, entry_date=date(2026, 3, 5), amount=Decimal("100.50"), direction="in"),
            FinanceEntry(tenant_id=a.id, entry_date=date(2026, 3, 20), amount=Decimal("50.00"), direction="in"),
            FinanceEntry(tenant_id=a.id, entry_date=date(2026, 3, 21), amount=Decimal("30.25"), direction="out"),
            FinanceEntry(tenant_id=a.id, entry_date=date(2026, 4, 1), amount=Decimal("999.00"), direction="out"),
        ]
    )
    s.flush()

    return {
        "tenant_a": a.id,
        "tenant_b": b.id,
        "users": {k: u.id for k, u in users.items()},
        "networks": {"north": north.id, "south": south.id, "b": net_b.id},
        "cells": {"alfa": alfa.id, "beta": beta.id, "gama": gama.id, "dead": dead.id, "b": cell_b.id},
        "people": {k: p.id for k, (p, _c, _t) in people.items()},
    }


@pytest.fixture()
def seeded(app):
    with session_scope(app) as s:
        return seed_church(s)


@pytest.fixture()
def headers_for(app, seeded):
    """Bearer headers for a seeded user of church A (church B for "other")."""
    roles = {
        "admin": "admin_geral",
        "president": "pastor_presidente",
        "pastor": "pastor_rede",
        "leader": "lider_celula",
        "secretary": "secretaria",
        "lonely": "lider_celula",
        "other": "owner",
    }

    def _headers(key):
        tenant_id = seeded["tenant_b"] if key == "other" else seeded["tenant_a"]
        with app.app_context():
            token = sign_access_token(TokenClaims(user_id=seeded["users"][key], tenant_id=tenant_id, role=roles[key]))
        return {"Authorization": f"Bearer {token}"}

    return _headers
