"""
Error taxonomy for the panel API.

Every user-visible failure is an AppError; the error handlers registered in
create_app() render it as {"error": kind, "message": ...}. Anything else is
treated as fatal and reported as an opaque 500.
"""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    status_code = 400
    kind = "error"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationFailed(AppError):
    status_code = 400
    kind = "validation_failed"

    def __init__(self, message: str = "Dados invalidos.", issues: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or {}

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        if self.issues:
            d["issues"] = dict(self.issues)
        return d


class Unauthorized(AppError):
    status_code = 401
    kind = "unauthorized"


class SessionInvalid(AppError):
    status_code = 401
    kind = "session_invalid"


class Forbidden(AppError):
    status_code = 403
    kind = "forbidden"


class NotFound(AppError):
    status_code = 404
    kind = "not_found"


class Conflict(AppError):
    status_code = 409
    kind = "conflict"


class InvalidRole(ValueError):
    """Raised by the role normalizer for values outside the known role sets."""

    def __init__(self, raw: object) -> None:
        super().__init__(f"Unknown role: {raw!r}")
        self.raw = raw


class MatrixIncomplete(RuntimeError):
    """The permission matrix is missing a (role, module) pair."""
