"""
Application error taxonomy.

Services raise these; the handlers registered in `app.main` render them as
`{"success": false, "error": "..."}` with the class's status code. Server-side
failures (storage, persistence) are logged there and surfaced as an opaque 500.
"""
from __future__ import annotations

STATUS_BAD_REQUEST = 400
STATUS_UNAUTHORIZED = 401
STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500

MSG_INTERNAL_ERROR = "An internal server error occurred."


class AppError(Exception):
    status_code: int = STATUS_INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= STATUS_INTERNAL_ERROR


class ValidationError(AppError):
    """Missing/invalid required field or unknown referenced entity."""
    status_code = STATUS_BAD_REQUEST


class NotFound(AppError):
    status_code = STATUS_NOT_FOUND


class InvalidToken(NotFound):
    """Download token missing, unknown, or issued for another drop."""
    status_code = STATUS_UNAUTHORIZED


class Conflict(AppError):
    """Request is well-formed but the entity's current state refuses it."""
    status_code = STATUS_BAD_REQUEST


class StorageError(AppError):
    status_code = STATUS_INTERNAL_ERROR


class PersistenceError(AppError):
    status_code = STATUS_INTERNAL_ERROR
