# placeus/core/exceptions.py
from __future__ import annotations

"""
Placeus · Application Exceptions
================================
A small, consistent layer on top of FastAPI/Starlette's `HTTPException` that
lets us attach structured metadata and render one JSON error shape from
`placeus.core.exception_handlers`.

Taxonomy
--------
- `ValidationException`       400  malformed input (e.g. tags that are not a JSON list)
- `UnauthenticatedException`  401  no credential presented
- `InvalidTokenException`     401  credential failed verification (uniform message)
- `ForbiddenException`        403  authenticated but not allowed
- `NotFoundException`         404  item / comment absent
- `PayloadTooLargeException`  413  upload over `MAX_UPLOAD_BYTES`
- `ServiceUnavailableException` 503  verification keys could not be fetched
- `StorageFailureException`   500  object-store write failed during upload

Usage
-----
    raise NotFoundException("Video not found")
    raise AppException(status_code=409, message="Conflict", details={"field": "id"})
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "ValidationException",
    "UnauthenticatedException",
    "InvalidTokenException",
    "ForbiddenException",
    "NotFoundException",
    "ServiceUnavailableException",
    "PayloadTooLargeException",
    "StorageFailureException",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : int
        Optional typed error code. Defaults to `status_code`.
    details : Any
        Machine-readable details (validation errors, ids).
    headers : dict | None
        Optional headers (e.g. `{"WWW-Authenticate": "Bearer"}`).
    """

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        status_code = int(status_code or self.default_status)
        message = message or self.default_message
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: int = int(code or status_code)
        self.message: str = message
        self.details: Optional[Any] = details

    def to_problem(self, *, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Return a dict matching our JSON error shape."""
        body: Dict[str, Any] = {
            "error": self.__class__.__name__.replace("Exception", "") or "Error",
            "message": self.message,
            "status": self.status_code,
            "request_id": request_id or "N/A",
        }
        if self.details is not None:
            body["details"] = self.details
        return body


# ──────────────────────────────────────────────────────────────
# 🧾 Input
# ──────────────────────────────────────────────────────────────
class ValidationException(AppException):
    """Raised when request input is malformed; no side effects have been attempted."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


# ──────────────────────────────────────────────────────────────
# 🔑 Auth
# ──────────────────────────────────────────────────────────────
class UnauthenticatedException(AppException):
    """Raised when no bearer credential was presented."""

    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "No token provided"

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class InvalidTokenException(AppException):
    """Raised for any token verification failure.

    The message is deliberately identical for every failed check so callers
    cannot tell which one tripped.
    """

    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid token"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(self.default_message, **kwargs)


class ForbiddenException(AppException):
    default_status = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


# ──────────────────────────────────────────────────────────────
# 🔎 Lookup
# ──────────────────────────────────────────────────────────────
class NotFoundException(AppException):
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


# ──────────────────────────────────────────────────────────────
# 🌩️ Upstream
# ──────────────────────────────────────────────────────────────
class ServiceUnavailableException(AppException):
    """Raised when a dependency needed to answer (e.g. the key endpoint) is down."""

    default_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"


class PayloadTooLargeException(AppException):
    default_status = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "Upload exceeds the maximum allowed size"


class StorageFailureException(AppException):
    """Raised when a write to the object store fails mid-request."""

    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage operation failed"
