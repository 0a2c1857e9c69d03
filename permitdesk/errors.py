"""Error taxonomy shared by the stores, services and HTTP layer."""

from __future__ import annotations


class PermitDeskError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(PermitDeskError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(PermitDeskError):
    status_code = 403
    default_message = "Admin access required"


class ValidationError(PermitDeskError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(PermitDeskError):
    status_code = 409
    default_message = "Resource already exists"


class NotFound(PermitDeskError):
    status_code = 404
    default_message = "Not found"


class InternalError(PermitDeskError):
    status_code = 500


__all__ = [
    "PermitDeskError",
    "Unauthorized",
    "Forbidden",
    "ValidationError",
    "ConflictError",
    "NotFound",
    "InternalError",
]
