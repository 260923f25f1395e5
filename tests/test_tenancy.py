import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.cellhub.db import session_scope
from app.cellhub.models import Tenant
from app.cellhub.tenancy import (
    SLUG_MAX_ATTEMPTS,
    SLUG_MAX_LENGTH,
    SLUG_PATTERN,
    allocate_slug,
    build_fallback_slug,
    build_slug_candidate,
    create_tenant_with_slug,
    is_slug_conflict,
    slugify_church_name,
)


class SlugTaken(Exception):
    pass


def _fake_store(taken):
    """try_insert/is_conflict pair backed by a set; records every candidate tried."""
    tried = []

    def try_insert(candidate):
        tried.append(candidate)
        if candidate in taken:
            raise SlugTaken(candidate)
        taken.add(candidate)
        return candidate

    return try_insert, (lambda exc: isinstance(exc, SlugTaken)), tried


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Graça Viva", "graca-viva"),
        ("  Igreja   São João!! ", "igreja-sao-joao"),
        ("--Comunidade--Ágape--", "comunidade-agape"),
        ("Igreja 123", "igreja-123"),
        ("!!!", "igreja"),
        ("", "igreja"),
    ],
)
def test_slugify(name, expected):
    assert slugify_church_name(name) == expected


def test_slugify_truncates():
    slug = slugify_church_name("a" * 200)
    assert len(slug) == SLUG_MAX_LENGTH
    assert SLUG_PATTERN.match(slug)


def test_candidate_sequence():
    assert build_slug_candidate("graca-viva", 0) == "graca-viva"
    assert build_slug_candidate("graca-viva", 1) == "graca-viva-2"
    assert build_slug_candidate("graca-viva", 9) == "graca-viva-10"


def test_candidate_stays_within_max_length():
    base = "x" * SLUG_MAX_LENGTH
    for attempt in (0, 1, 10, 199):
        candidate = build_slug_candidate(base, attempt)
        assert len(candidate) <= SLUG_MAX_LENGTH
        assert SLUG_PATTERN.match(candidate)
    assert build_slug_candidate(base, 199).endswith("-200")


def test_allocate_first_free():
    try_insert, is_conflict, tried = _fake_store(set())
    assert allocate_slug("Graça Viva", try_insert, is_conflict) == "graca-viva"
    assert tried == ["graca-viva"]


def test_allocate_skips_taken_candidate():
    try_insert, is_conflict, tried = _fake_store({"graca-viva"})
    assert allocate_slug("Graça Viva", try_insert, is_conflict) == "graca-viva-2"
    assert tried == ["graca-viva", "graca-viva-2"]


def test_allocate_symbols_only_name():
    try_insert, is_conflict, _ = _fake_store(set())
    assert allocate_slug("!!!", try_insert, is_conflict) == "igreja"


def test_allocate_falls_back_after_max_attempts():
    taken = {build_slug_candidate("graca-viva", i) for i in range(SLUG_MAX_ATTEMPTS)}
    try_insert, is_conflict, tried = _fake_store(set(taken))

    slug = allocate_slug("Graça Viva", try_insert, is_conflict, clock=lambda: 1.0)

    # 1.0 s -> 1000 ms -> "rs" in base 36
    assert slug == "graca-viva-rs"
    assert len(tried) == SLUG_MAX_ATTEMPTS + 1
    assert slug not in taken


def test_fallback_shape():
    slug = build_fallback_slug("y" * SLUG_MAX_LENGTH, 1_700_000_000.123)
    assert len(slug) <= SLUG_MAX_LENGTH
    assert slug.startswith("y" * 50 + "-")
    assert SLUG_PATTERN.match(slug)


def test_non_conflict_error_propagates_immediately():
    calls = []

    def try_insert(candidate):
        calls.append(candidate)
        raise RuntimeError("datastore down")

    with pytest.raises(RuntimeError):
        allocate_slug("Graça Viva", try_insert, lambda exc: False)
    assert calls == ["graca-viva"]


def test_is_slug_conflict():
    slug_dup = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: index 'uq_tenants_slug_lower'"))
    other_dup = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: index 'uq_users_email_active'"))
    assert is_slug_conflict(slug_dup)
    assert not is_slug_conflict(other_dup)
    assert not is_slug_conflict(ValueError("uq_tenants_slug_lower"))


def test_create_tenant_with_slug_collides_case_insensitively(app):
    with session_scope(app) as s:
        s.add(Tenant(name="Legado", slug="GRACA-VIVA", is_active=True))

    with session_scope(app) as s:
        first = create_tenant_with_slug(s, "Graça Viva")
        second = create_tenant_with_slug(s, "Graca  Viva")
        assert first.slug == "graca-viva-2"
        assert second.slug == "graca-viva-3"

    with session_scope(app) as s:
        slugs = sorted(s.execute(select(Tenant.slug)).scalars())
    assert slugs == ["GRACA-VIVA", "graca-viva-2", "graca-viva-3"]
