import os
import sys
from pathlib import Path

from sqlalchemy import func, select
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.cellhub.auth import DEFAULT_NETWORK_CODE, DEFAULT_NETWORK_NAME
from app.cellhub.models import ChurchNetwork, TenantMember, User
from app.cellhub.modules.module_names.models import DEFAULT_MODULE_NAMES, ModuleNameDefault
from app.cellhub.rbac import PanelRole
from app.cellhub.tenancy import create_tenant_with_slug
from scripts._db_utils import database_url, script_session


def seed_only(*, database_url_override: str | None = None) -> None:
    """
    Seed module-name defaults and, when ADMIN_EMAIL/ADMIN_PASSWORD are set,
    a demo church owned by that admin. Idempotent; never overwrites an
    existing user's password.
    """
    db_url = database_url(database_url_override)

    with script_session(db_url) as s:
        known = set(s.execute(select(ModuleNameDefault.code)).scalars())
        for code, label in DEFAULT_MODULE_NAMES:
            if code not in known:
                s.add(ModuleNameDefault(code=code, default_label=label))

        admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
        admin_password = os.environ.get("ADMIN_PASSWORD") or ""
        if not admin_email or not admin_password:
            print("Seeded module name defaults (no ADMIN_EMAIL/ADMIN_PASSWORD; demo church skipped).")
            return

        user = s.execute(
            select(User).where(func.lower(User.email) == admin_email, User.deleted_at.is_(None))
        ).scalar_one_or_none()
        if user is not None and user.memberships:
            print(f"Admin {admin_email} already belongs to a church; nothing to do.")
            return
        if user is None:
            user = User(
                full_name=(os.environ.get("ADMIN_NAME") or "Administrador").strip(),
                email=admin_email,
                password_hash=generate_password_hash(admin_password),
                is_active=True,
            )
            s.add(user)
            s.flush()

        church_name = (os.environ.get("CHURCH_NAME") or "Igreja Demo").strip()
        tenant = create_tenant_with_slug(s, church_name)
        s.add(TenantMember(tenant_id=tenant.id, user_id=user.id, role=PanelRole.ADMIN_GERAL.value, is_active=True))
        s.add(ChurchNetwork(tenant_id=tenant.id, name=DEFAULT_NETWORK_NAME, code=DEFAULT_NETWORK_CODE, is_active=True))

    print("Initialized database (seed_only).")
    print(f"Church: {church_name} (slug={tenant.slug})")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
