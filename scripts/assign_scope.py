"""
Assign network or cell scopes to a church member.

Usage:
  python scripts/assign_scope.py --tenant-slug graca-viva --email pastor@x.com --network REDE-01
  python scripts/assign_scope.py --tenant-slug graca-viva --email lider@x.com --cell CEL-01 --role lider_celula
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import func, select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cellhub.errors import InvalidRole
from app.cellhub.models import Cell, ChurchNetwork, Tenant, TenantMember, User, UserCellScope, UserNetworkScope
from app.cellhub.rbac import PanelRole, ScopeKind, normalize_role, scope_of
from scripts._db_utils import database_url, script_session


def assign_scope(
    *,
    tenant_slug: str,
    email: str,
    network_codes: list[str],
    cell_codes: list[str],
    role: str | None = None,
    db_url: str | None = None,
) -> None:
    with script_session(database_url(db_url)) as s:
        tenant = s.execute(select(Tenant).where(func.lower(Tenant.slug) == tenant_slug.lower())).scalar_one_or_none()
        if tenant is None:
            raise SystemExit(f"Church not found: {tenant_slug}")
        user = s.execute(
            select(User).where(func.lower(User.email) == email.strip().lower(), User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if user is None:
            raise SystemExit(f"User not found: {email}")
        membership = s.get(TenantMember, (tenant.id, user.id))
        if membership is None:
            raise SystemExit(f"{email} is not a member of {tenant.slug}")
        if role:
            membership.role = PanelRole(role).value
        try:
            scope = scope_of(normalize_role(membership.role))
        except InvalidRole:
            raise SystemExit(f"{email} has an unknown role {membership.role!r}; pass --role.") from None
        # Network and cell scopes are exclusive: each role reads only one kind.
        if network_codes and scope is not ScopeKind.NETWORK:
            raise SystemExit(f"Role {membership.role} uses {scope.value} scope; --network is not allowed.")
        if cell_codes and scope is not ScopeKind.CELL:
            raise SystemExit(f"Role {membership.role} uses {scope.value} scope; --cell is not allowed.")

        for code in network_codes:
            network = s.execute(
                select(ChurchNetwork).where(ChurchNetwork.tenant_id == tenant.id, ChurchNetwork.code == code)
            ).scalar_one_or_none()
            if network is None:
                raise SystemExit(f"Network not found: {code}")
            if s.get(UserNetworkScope, (tenant.id, user.id, network.id)) is None:
                s.add(UserNetworkScope(tenant_id=tenant.id, user_id=user.id, network_id=network.id))

        for code in cell_codes:
            cell = s.execute(select(Cell).where(Cell.tenant_id == tenant.id, Cell.code == code)).scalar_one_or_none()
            if cell is None:
                raise SystemExit(f"Cell not found: {code}")
            if s.get(UserCellScope, (tenant.id, user.id, cell.id)) is None:
                s.add(UserCellScope(tenant_id=tenant.id, user_id=user.id, cell_id=cell.id))

    print(f"Scopes updated for {email} in {tenant_slug}.")


def main() -> None:
    parser = argparse.ArgumentParser(description="Assign network/cell scopes to a church member.")
    parser.add_argument("--tenant-slug", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--network", action="append", default=[], help="Network code (repeatable)")
    parser.add_argument("--cell", action="append", default=[], help="Cell code (repeatable)")
    parser.add_argument("--role", choices=[r.value for r in PanelRole], default=None)
    args = parser.parse_args()
    assign_scope(
        tenant_slug=args.tenant_slug,
        email=args.email,
        network_codes=args.network,
        cell_codes=args.cell,
        role=args.role,
    )


if __name__ == "__main__":
    main()
