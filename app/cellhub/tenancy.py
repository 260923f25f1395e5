"""
Tenant provisioning: slug generation and allocation.

Slugs come from the church name and are not injective (two churches called
"Graca Viva" map to the same base), so allocation is an optimistic insert
against the unique index with a deterministic candidate sequence.
"""
from __future__ import annotations

import logging
import re
import time
import unicodedata
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.cellhub.models import TENANT_SLUG_CONSTRAINT, Tenant

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLUG_MAX_LENGTH = 60
SLUG_FALLBACK_BASE = "igreja"
SLUG_MAX_ATTEMPTS = 200
SLUG_PATTERN = re.compile(r"^[a-z0-9-]{1,60}$")

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def slugify_church_name(name: str) -> str:
    """
    Normalize a display name into a slug base.

    Examples:
        >>> slugify_church_name("Graça Viva")
        'graca-viva'
        >>> slugify_church_name("!!!")
        'igreja'
    """
    decomposed = unicodedata.normalize("NFD", name or "")
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    base = _NON_ALNUM.sub("-", ascii_only.lower())
    base = re.sub(r"-{2,}", "-", base.strip("-"))[:SLUG_MAX_LENGTH]
    return base or SLUG_FALLBACK_BASE


def build_slug_candidate(base: str, attempt: int) -> str:
    if attempt == 0:
        return base[:SLUG_MAX_LENGTH]
    suffix = str(attempt + 1)
    max_base_length = max(1, SLUG_MAX_LENGTH - len(suffix) - 1)
    return f"{base[:max_base_length]}-{suffix}"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def build_fallback_slug(base: str, now: float) -> str:
    return f"{base[:50]}-{_base36(int(now * 1000))}"[:SLUG_MAX_LENGTH]


def allocate_slug(
    name: str,
    try_insert: Callable[[str], T],
    is_conflict: Callable[[Exception], bool],
    *,
    max_attempts: int = SLUG_MAX_ATTEMPTS,
    clock: Callable[[], float] = time.time,
) -> T:
    """
    Insert a row under the first free slug candidate derived from ``name``.

    ``try_insert(candidate)`` is the commit attempt itself; when it raises an
    exception accepted by ``is_conflict`` the next candidate is tried, any
    other exception propagates untouched. Candidates are probed strictly in
    order. After ``max_attempts`` collisions a single time-based fallback is
    inserted without further retry.
    """
    base = slugify_church_name(name)
    for attempt in range(max_attempts):
        candidate = build_slug_candidate(base, attempt)
        try:
            return try_insert(candidate)
        except Exception as exc:
            if not is_conflict(exc):
                raise
            logger.debug("Slug %r taken (attempt %d); trying next candidate", candidate, attempt)

    fallback = build_fallback_slug(base, clock())
    logger.warning("Slug candidates exhausted for base %r; using fallback %r", base, fallback)
    return try_insert(fallback)


def is_slug_conflict(exc: Exception) -> bool:
    """True only for a uniqueness violation on the tenant slug index."""
    if not isinstance(exc, IntegrityError):
        return False
    return TENANT_SLUG_CONSTRAINT in str(exc.orig)


def create_tenant_with_slug(s: Session, church_name: str) -> Tenant:
    """
    Insert a Tenant row with a freshly allocated slug.

    Runs inside the caller's transaction; each candidate insert gets its own
    SAVEPOINT so a rejected candidate does not abort the enclosing unit.
    """

    def _insert(candidate: str) -> Tenant:
        tenant = Tenant(name=church_name, slug=candidate, is_active=True)
        with s.begin_nested():
            s.add(tenant)
            s.flush()
        return tenant

    tenant = allocate_slug(church_name, _insert, is_slug_conflict)
    logger.info("Tenant created id=%s slug=%s", tenant.id, tenant.slug)
    return tenant
