"""
Application error taxonomy.

Every public operation raises one of these instead of letting a lower-layer
exception reach the transport boundary. The handlers registered in
``smsi.main`` render them as ``{"error": {"message", "type", "status_code"}}``.
"""
from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"
    default_message: str = "An internal error occurred"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message, "type": self.error_type, "status_code": self.status_code}
        if self.details is not None:
            body["details"] = self.details
        return {"error": body}


class AuthenticationError(AppError):
    """No token, malformed token, bad signature or expired token. Never says which."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "unauthenticated"
    default_message = "Authentication required"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "forbidden"
    default_message = "Insufficient permissions"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"
    default_message = "Validation failed"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"
    default_message = "Resource already exists"


class SelfDeletionError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "self_deletion_forbidden"
    default_message = "Cannot delete your own account"


class InternalError(AppError):
    pass
