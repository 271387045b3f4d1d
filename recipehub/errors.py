"""Service-level exceptions.

Services raise these; `main.py` turns them into the error envelope with the
matching HTTP status. Routers should not need to catch them.
"""

from typing import Any, Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationFailed(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class AccountLocked(AuthenticationError):
    def __init__(self, message: str, minutes_remaining: int):
        super().__init__(message, errors=[{"minutes_remaining": minutes_remaining}])
        self.minutes_remaining = minutes_remaining


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class DeliveryError(RuntimeError):
    """Raised by email/push/oauth clients when the provider call fails."""
