"""
HTTP-facing domain exceptions for the operator API.

These exceptions are mapped to the standard error envelope by the
exception handlers in main.py. Engine errors (exceptions.A2UError) are
translated with from_engine_error().
"""
from fastapi import HTTPException, status

from exceptions import (
    A2UError,
    AccountBusy,
    BackendRejected,
    BackendUnavailable,
    CancellationNotAllowed,
    ChainUnavailable,
    PaymentNotFound,
)


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainError):
    """Resource not found (404)."""
    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(DomainError):
    """Validation error (400)."""
    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        if field:
            message = f"Validation error on {field}: {message}"
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class UnauthorizedError(DomainError):
    """Unauthorized access (401)."""
    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class ConflictError(DomainError):
    """Resource conflict (409)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_409_CONFLICT, details=details)


class UpstreamError(DomainError):
    """Blockchain or payment-service failure (502)."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


def from_engine_error(exc: A2UError) -> DomainError:
    """Translate an engine exception into the matching HTTP error."""
    details = {"code": exc.code}
    if isinstance(exc, PaymentNotFound):
        return NotFoundError("Payment", str(exc), details=details)
    if isinstance(exc, (CancellationNotAllowed, AccountBusy)):
        return ConflictError(str(exc), details=details)
    if isinstance(exc, BackendRejected):
        details["upstream_status"] = exc.status_code
        return ValidationError(str(exc), details=details)
    if isinstance(exc, (BackendUnavailable, ChainUnavailable)):
        return UpstreamError(str(exc), details=details)
    return ValidationError(str(exc), details=details)
