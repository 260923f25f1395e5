from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app, g, request
from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from app.cellhub.errors import Unauthorized
from app.cellhub.rbac import is_known_role


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    tenant_id: int
    role: str


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def sign_access_token(claims: TokenClaims, *, expires_delta: timedelta | None = None) -> str:
    cfg = current_app.config
    if expires_delta is None:
        expires_delta = timedelta(minutes=int(cfg["JWT_EXPIRES_MINUTES"]))
    payload = {
        "sub": str(claims.user_id),
        "tenantId": str(claims.tenant_id),
        "role": claims.role,
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(payload, cfg["JWT_SECRET"], algorithm=cfg["JWT_ALGORITHM"])


def verify_access_token(token: str) -> TokenClaims:
    """Decode a bearer token. Any signature/expiry/shape problem is Unauthorized."""
    cfg = current_app.config
    try:
        payload = jwt.decode(token, cfg["JWT_SECRET"], algorithms=[cfg["JWT_ALGORITHM"]])
    except JWTError:
        raise Unauthorized("Token invalido ou expirado.") from None

    sub = payload.get("sub")
    tenant_id = payload.get("tenantId")
    role = payload.get("role")
    if not sub or not tenant_id or not isinstance(role, str) or not is_known_role(role):
        raise Unauthorized("Token invalido.")
    try:
        return TokenClaims(user_id=int(sub), tenant_id=int(tenant_id), role=role)
    except (TypeError, ValueError):
        raise Unauthorized("Token invalido.") from None


def parse_bearer(header: str | None) -> str:
    if not header:
        raise Unauthorized("Authorization header ausente.")
    scheme, _, token = header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise Unauthorized("Authorization header invalido.")
    return token.strip()


def current_identity() -> TokenClaims:
    """Verified bearer claims for this request (decoded once, cached on ``g``)."""
    claims = getattr(g, "auth", None)
    if claims is None:
        claims = verify_access_token(parse_bearer(request.headers.get("Authorization")))
        g.auth = claims
    return claims
