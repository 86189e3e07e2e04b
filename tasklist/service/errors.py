from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses.

    Each subclass carries the HTTP ``status_code`` and the stable
    ``error_code`` placed in the response envelope.
    """

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or {}


class BadRequestError(ServiceError):
    """Request is malformed or invalid (400)."""
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(ServiceError):
    """Authentication failed or missing (401)."""
    status_code = 401
    error_code = "unauthorized"


class CredentialMissingError(AuthenticationError):
    """No bearer credential was presented."""
    pass


class InvalidTokenError(AuthenticationError):
    """A bearer token was presented but failed verification.

    Raised with the same message for every cause (bad signature, malformed,
    expired, disallowed algorithm).
    """
    pass


__all__ = [
    "ServiceError",
    "BadRequestError",
    "AuthenticationError",
    "CredentialMissingError",
    "InvalidTokenError",
]
