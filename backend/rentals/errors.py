from __future__ import annotations

from typing import Any


class RentalsError(Exception):
    """Base for every condition reported to the client with a specific code."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class NotFound(RentalsError):
    code = "not_found"
    status_code = 404


class Forbidden(RentalsError):
    code = "forbidden"
    status_code = 403


class Unauthenticated(RentalsError):
    code = "unauthenticated"
    status_code = 401


class BadRequest(RentalsError):
    code = "bad_request"
    status_code = 400


class NoFile(RentalsError):
    code = "no_file"
    status_code = 400


class Conflict(RentalsError):
    code = "conflict"
    status_code = 409


class ValidationFailed(RentalsError):
    code = "validation_failed"
    status_code = 400

    def __init__(self, fields: list[str], message: str = "Validation failed", issues: list[dict[str, Any]] | None = None) -> None:
        details: dict[str, Any] = {"fields": list(fields)}
        if issues:
            details["issues"] = issues
        super().__init__(message, details)
        self.fields = list(fields)


class FileTooLarge(RentalsError):
    code = "file_too_large"
    status_code = 413

    def __init__(self, max_bytes: int) -> None:
        super().__init__(f"File too large (max {max_bytes} bytes)", {"maxBytes": int(max_bytes)})
        self.max_bytes = int(max_bytes)
