from __future__ import annotations

import uuid
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from functools import wraps
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.cellhub.access import AccessContext, build_access_context
from app.cellhub.audit import record_event
from app.cellhub.db import db_session
from app.cellhub.errors import AppError, Conflict, NotFound, SessionInvalid, Unauthorized, ValidationFailed
from app.cellhub.models import USER_EMAIL_CONSTRAINT, ChurchNetwork, Tenant, TenantMember, User
from app.cellhub.rbac import PanelRole
from app.cellhub.security import TokenClaims, current_identity, hash_password, sign_access_token, verify_password
from app.cellhub.tenancy import create_tenant_with_slug
from app.cellhub.utils import clean_email, clean_password, clean_text, json_body, raise_if_errors

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds

# Created with every new church so cells can be registered right away.
DEFAULT_NETWORK_NAME = "Rede Principal"
DEFAULT_NETWORK_CODE = "REDE-01"


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    # Sweep every client so IPs that stop retrying do not linger.
    for key in list(_login_attempts):
        recent = [t for t in _login_attempts[key] if t > cutoff]
        if recent:
            _login_attempts[key] = recent
        else:
            del _login_attempts[key]
    return len(_login_attempts.get(ip, ())) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def load_request_identity() -> None:
    """
    Assigns a per-request request_id (for audit/log correlation) and clears
    any cached bearer claims. Tokens are decoded lazily by current_identity().
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.auth = None
    g.access = None


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_identity()
        return fn(*args, **kwargs)

    return wrapped


def _account_context() -> AccessContext:
    identity = current_identity()
    try:
        return build_access_context(db_session(), identity.user_id, identity.tenant_id)
    except SessionInvalid:
        raise NotFound("Conta nao encontrada para a igreja informada.") from None


def _session_payload(user: dict[str, Any], tenant: dict[str, Any], role: str, token: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if token is not None:
        body["accessToken"] = token
    body.update({"user": user, "tenant": tenant, "membership": {"role": role}})
    return body


def validate_register_payload(payload: dict[str, Any]) -> tuple[dict[str, Any], dict[str, str]]:
    errors: dict[str, str] = {}
    data = {
        "church_name": clean_text(payload, "churchName", errors, min_len=2, max_len=120, required=True),
        "name": clean_text(payload, "name", errors, min_len=2, max_len=120, required=True),
        "email": clean_email(payload, "email", errors),
        "password": clean_password(payload, "password", errors),
    }
    return data, errors


@bp.post("/register")
def register():
    data, errors = validate_register_payload(json_body())
    raise_if_errors(errors)

    s = db_session()
    email = data["email"]
    try:
        existing = s.execute(
            select(User.id).where(func.lower(User.email) == email, User.deleted_at.is_(None)).limit(1)
        ).first()
        if existing:
            raise Conflict("Este e-mail ja esta cadastrado.")

        tenant = create_tenant_with_slug(s, data["church_name"])

        user = User(full_name=data["name"], email=email, password_hash=hash_password(data["password"]), is_active=True)
        s.add(user)
        try:
            s.flush()
        except IntegrityError as e:
            if USER_EMAIL_CONSTRAINT in str(e.orig):
                raise Conflict("Este e-mail ja esta cadastrado.") from None
            raise

        role = PanelRole.ADMIN_GERAL.value
        s.add(TenantMember(tenant_id=tenant.id, user_id=user.id, role=role, is_active=True))
        s.add(ChurchNetwork(tenant_id=tenant.id, name=DEFAULT_NETWORK_NAME, code=DEFAULT_NETWORK_CODE, is_active=True))
        record_event(
            s,
            actor=None,
            tenant_id=tenant.id,
            actor_user_id=user.id,
            actor_user_email=user.email,
            action="auth.register",
            entity_type="Tenant",
            entity_id=str(tenant.id),
            metadata={"slug": tenant.slug, "church_name": tenant.name},
        )
        s.commit()
    except Exception:
        s.rollback()
        raise

    token = sign_access_token(TokenClaims(user_id=user.id, tenant_id=tenant.id, role=role))
    body = _session_payload(
        {"id": user.id, "name": user.full_name, "email": user.email},
        {"id": tenant.id, "name": tenant.name, "slug": tenant.slug},
        role,
        token,
    )
    body["message"] = "Cadastro realizado com sucesso."
    return jsonify(body), 201


@bp.post("/login")
def login():
    payload = json_body()
    errors: dict[str, str] = {}
    email = clean_email(payload, "email", errors)
    password = clean_password(payload, "password", errors)
    raise_if_errors(errors)
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise AppError("Muitas tentativas de login. Aguarde 5 minutos.", status_code=429)

    _record_attempt(ip)

    s = db_session()
    try:
        row = s.execute(
            select(User, Tenant, TenantMember.role)
            .join(TenantMember, (TenantMember.user_id == User.id) & TenantMember.is_active.is_(True))
            .join(Tenant, (Tenant.id == TenantMember.tenant_id) & Tenant.is_active.is_(True))
            .where(func.lower(User.email) == email, User.is_active.is_(True), User.deleted_at.is_(None))
            .order_by(TenantMember.created_at.asc(), Tenant.name.asc())
            .limit(1)
        ).first()

        if row is None or not verify_password(password, row[0].password_hash):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            raise Unauthorized("Credenciais invalidas.")

        user, tenant, role = row
        _login_attempts.pop(ip, None)
        record_event(
            s,
            actor=None,
            tenant_id=tenant.id,
            actor_user_id=user.id,
            actor_user_email=user.email,
            action="auth.login",
            entity_type="User",
            entity_id=str(user.id),
        )
        s.commit()
    except AppError:
        raise
    except Exception:
        current_app.logger.exception("Login crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise

    token = sign_access_token(TokenClaims(user_id=user.id, tenant_id=tenant.id, role=role))
    body = _session_payload(
        {"id": user.id, "name": user.full_name, "email": user.email},
        {"id": tenant.id, "name": tenant.name, "slug": tenant.slug},
        role,
        token,
    )
    body["message"] = "Login realizado com sucesso."
    return jsonify(body)


@bp.get("/me")
@require_auth
def me_get():
    ctx = _account_context()
    return jsonify(
        _session_payload(
            {"id": ctx.user_id, "name": ctx.user_name, "email": ctx.user_email},
            {"id": ctx.tenant_id, "name": ctx.tenant_name},
            ctx.role.value,
        )
    )


@bp.put("/me")
@require_auth
def me_update():
    payload = json_body()
    errors: dict[str, str] = {}
    name = clean_text(payload, "name", errors, min_len=2, max_len=120)
    password = clean_password(payload, "password", errors, required=False)
    raise_if_errors(errors)
    if not name and not password:
        raise ValidationFailed("Informe ao menos um campo para atualizar.")

    ctx = _account_context()
    s = db_session()
    user = s.get(User, ctx.user_id)
    if user is None:
        raise NotFound("Conta nao encontrada.")

    changed: list[str] = []
    if name:
        user.full_name = name
        changed.append("name")
    if password:
        user.password_hash = hash_password(password)
        changed.append("password")
    user.updated_at = datetime.utcnow()
    record_event(s, actor=ctx, action="account.update", entity_type="User", entity_id=str(user.id), metadata={"fields": changed})
    s.commit()

    return jsonify(
        {
            "message": "Conta atualizada com sucesso.",
            "user": {"id": user.id, "name": user.full_name, "email": user.email},
        }
    )


@bp.delete("/me")
@require_auth
def me_delete():
    identity = current_identity()
    s = db_session()
    try:
        membership = s.execute(
            select(TenantMember)
            .join(Tenant, Tenant.id == TenantMember.tenant_id)
            .where(
                TenantMember.tenant_id == identity.tenant_id,
                TenantMember.user_id == identity.user_id,
                TenantMember.is_active.is_(True),
                Tenant.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if membership is None:
            raise NotFound("Vinculo de conta ja esta inativo.")

        now = datetime.utcnow()
        membership.is_active = False
        membership.updated_at = now
        s.flush()

        remaining = s.execute(
            select(func.count())
            .select_from(TenantMember)
            .where(TenantMember.user_id == identity.user_id, TenantMember.is_active.is_(True))
        ).scalar_one()
        user = s.get(User, identity.user_id)
        if remaining == 0 and user is not None and user.deleted_at is None:
            user.is_active = False
            user.deleted_at = now
            user.updated_at = now

        record_event(
            s,
            actor=None,
            tenant_id=identity.tenant_id,
            actor_user_id=identity.user_id,
            actor_user_email=user.email if user else None,
            action="account.delete",
            entity_type="TenantMember",
            entity_id=f"{identity.tenant_id}:{identity.user_id}",
            metadata={"user_soft_deleted": remaining == 0},
        )
        s.commit()
    except Exception:
        s.rollback()
        raise
    return "", 204
