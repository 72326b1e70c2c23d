"""Application error taxonomy.

Engines raise these; ``compliance.main`` renders every one of them as
``{"error": ..., "code": ..., "message": ..., "details": ...}`` with the
matching status code.
"""

from typing import Any


class AppError(Exception):
    status_code = 500
    error = "InternalError"
    default_message = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        self.code = code
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.code:
            body["code"] = self.code
        if self.details:
            body["details"] = self.details
        return body

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(AppError):
    status_code = 400
    error = "ValidationError"
    default_message = "Invalid request"


class Unauthorized(AppError):
    status_code = 401
    error = "Unauthorized"
    default_message = "Authentication required"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AppError):
    status_code = 403
    error = "Forbidden"
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    error = "NotFound"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    error = "Conflict"
    default_message = "Resource already exists"


class ConflictingTransition(Conflict):
    error = "ConflictingTransition"
    default_message = "The resource changed state; reload and try again"


class FileTooLarge(AppError):
    status_code = 413
    error = "FileTooLarge"
    default_message = "File exceeds the maximum allowed size"


class UnsupportedMediaType(AppError):
    status_code = 415
    error = "UnsupportedMediaType"
    default_message = "File type not allowed"


class RateLimited(AppError):
    status_code = 429
    error = "RateLimited"
    default_message = "Too many attempts. Try again later."

    def __init__(self, message: str | None = None, *, retry_after: int = 60, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = max(1, int(retry_after))

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["retry_after_seconds"] = self.retry_after
        return body

    @property
    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class InternalError(AppError):
    pass
