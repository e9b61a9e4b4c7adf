# app/exceptions.py
from typing import Dict, List, Optional


class ClinicError(Exception):
    """Base error carrying the HTTP status and the JSON envelope to return."""

    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, List[str]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationFailed(ClinicError):
    status_code = 422
    default_message = "Validation failed"

    @classmethod
    def field(cls, field: str, message: str, summary: Optional[str] = None):
        return cls(summary or message, {field: [message]})


class AuthenticationFailed(ClinicError):
    status_code = 401
    default_message = "Unauthenticated"


class PermissionDenied(ClinicError):
    status_code = 403
    default_message = "You do not have permission to perform this action"


class NotFound(ClinicError):
    status_code = 404
    default_message = "Resource not found"


class InvalidTransition(ClinicError):
    status_code = 409
    default_message = "Invalid status transition"


class Conflict(ClinicError):
    status_code = 409
    default_message = "Conflict"

    def __init__(self, message: Optional[str] = None, errors=None, conflicts: Optional[list] = None):
        super().__init__(message, errors)
        self.conflicts = conflicts

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.conflicts is not None:
            body["conflicts"] = self.conflicts
        return body


class SettingsError(ClinicError):
    status_code = 500
    default_message = "Stored settings are malformed"


def field_errors(errors, prefix: Optional[str] = None) -> Dict[str, List[str]]:
    """Group pydantic error entries by dotted field path."""
    grouped: Dict[str, List[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        if prefix:
            loc.insert(0, prefix)
        key = ".".join(loc) or "request"
        grouped.setdefault(key, []).append(err.get("msg", "Invalid value"))
    return grouped
