from __future__ import annotations

import re
from datetime import date, time
from typing import Any

from flask import request

from app.cellhub.errors import ValidationFailed

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")
_DIGITS_RE = re.compile(r"^[0-9]{1,19}$")

# Largest value a BIGINT primary key can hold.
MAX_ID = 2**63 - 1


def json_body() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationFailed("Corpo da requisicao deve ser um objeto JSON.")
    return payload


def raise_if_errors(errors: dict[str, str]) -> None:
    if errors:
        raise ValidationFailed("Dados invalidos.", issues=errors)


def clean_text(
    payload: dict[str, Any],
    key: str,
    errors: dict[str, str],
    *,
    min_len: int = 0,
    max_len: int | None = None,
    required: bool = False,
) -> str | None:
    """Trimmed string field; records a message in ``errors`` instead of raising."""
    raw = payload.get(key)
    if raw is None:
        if required:
            errors[key] = "Campo obrigatorio."
        return None
    if not isinstance(raw, str):
        errors[key] = "Deve ser texto."
        return None
    value = raw.strip()
    if not value and not required:
        return None
    if len(value) < min_len:
        errors[key] = f"Minimo de {min_len} caracteres."
        return None
    if max_len is not None and len(value) > max_len:
        errors[key] = f"Maximo de {max_len} caracteres."
        return None
    return value


def clean_email(payload: dict[str, Any], key: str, errors: dict[str, str]) -> str | None:
    value = clean_text(payload, key, errors, max_len=160, required=True)
    if value is None:
        return None
    if not _EMAIL_RE.match(value):
        errors[key] = "E-mail invalido."
        return None
    return value.lower()


def clean_password(payload: dict[str, Any], key: str, errors: dict[str, str], *, required: bool = True) -> str | None:
    raw = payload.get(key)
    if raw is None:
        if required:
            errors[key] = "Campo obrigatorio."
        return None
    if not isinstance(raw, str) or not (8 <= len(raw) <= 72):
        errors[key] = "Senha deve ter entre 8 e 72 caracteres."
        return None
    return raw


def clean_id(payload: dict[str, Any], key: str, errors: dict[str, str], *, required: bool = True) -> int | None:
    raw = payload.get(key)
    if raw is None or raw == "":
        if required:
            errors[key] = "Campo obrigatorio."
        return None
    # JSON integers or digit-only strings (query args); floats are never ids.
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    elif isinstance(raw, str) and _DIGITS_RE.match(raw.strip()):
        value = int(raw.strip())
    else:
        errors[key] = "Identificador invalido."
        return None
    if not 1 <= value <= MAX_ID:
        errors[key] = "Identificador invalido."
        return None
    return value


def path_id(value: int, key: str = "id") -> int:
    """Bound an ``<int:...>`` URL argument the same way as body ids."""
    errors: dict[str, str] = {}
    clean_id({key: value}, key, errors)
    raise_if_errors(errors)
    return value


def clean_bool(payload: dict[str, Any], key: str, errors: dict[str, str]) -> bool | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if not isinstance(raw, bool):
        errors[key] = "Deve ser verdadeiro ou falso."
        return None
    return raw


def parse_date(s: str | None) -> date | None:
    """Parse YYYY-MM-DD date string."""
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    return date.fromisoformat(s)


def clean_date(payload: dict[str, Any], key: str, errors: dict[str, str], *, required: bool = False) -> date | None:
    raw = payload.get(key)
    if raw is None or raw == "":
        if required:
            errors[key] = "Campo obrigatorio."
        return None
    if not isinstance(raw, str):
        errors[key] = "Data invalida (use AAAA-MM-DD)."
        return None
    try:
        return parse_date(raw)
    except ValueError:
        errors[key] = "Data invalida (use AAAA-MM-DD)."
        return None


def clean_time(payload: dict[str, Any], key: str, errors: dict[str, str]) -> time | None:
    raw = payload.get(key)
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str) or not _TIME_RE.match(raw):
        errors[key] = "Horario invalido (use HH:MM)."
        return None
    try:
        return time.fromisoformat(raw)
    except ValueError:
        errors[key] = "Horario invalido (use HH:MM)."
        return None


def short_code(value: int) -> str:
    """Display code for an integer id, e.g. 42 -> '0000002A'."""
    return f"{value:08X}"


def clean_id_list(payload: dict[str, Any], key: str, errors: dict[str, str]) -> list[int]:
    """Non-empty list of positive ids, de-duplicated in order."""
    raw = payload.get(key)
    if not isinstance(raw, list) or not raw:
        errors[key] = "Informe ao menos um item."
        return []
    ids: list[int] = []
    for item in raw:
        value = clean_id({key: item}, key, errors)
        if value is None:
            return []
        if value not in ids:
            ids.append(value)
    return ids
