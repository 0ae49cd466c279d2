from __future__ import annotations

from typing import Optional


class PortalError(Exception):
    """Base for every reported (recoverable) failure of a portal operation."""

    code = "PortalError"
    http_status = 500

    def __init__(self, message: str = "", status: Optional[str] = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        # Agent status as persisted after the failure, when known.
        self.status = status

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "error": self.code}


class NotFound(PortalError):
    code = "NotFound"
    http_status = 404


class Unauthorized(PortalError):
    code = "Unauthorized"
    http_status = 401


class ValidationError(PortalError):
    code = "ValidationError"
    http_status = 400


class IdentityProviderFailure(PortalError):
    code = "IdentityProviderFailure"
    http_status = 502


class PersistenceFailure(PortalError):
    code = "PersistenceFailure"
    http_status = 500

    def __init__(self, message: str = "", conflict: bool = False, status: Optional[str] = None) -> None:
        super().__init__(message, status=status)
        self.conflict = conflict
        if conflict:
            self.http_status = 409


class NotificationFailure(PortalError):
    code = "NotificationFailure"
    http_status = 502


class ConfigurationError(PortalError):
    code = "ConfigurationError"
    http_status = 500
