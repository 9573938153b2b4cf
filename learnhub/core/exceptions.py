"""
Domain exceptions
Every service raises one of these; error_handlers.py turns them into the JSON envelope.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base class: carries an HTTP status, a stable error code and a user-facing message."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(status_code=status_code, detail=message, headers=headers)


class ResourceNotFoundException(AppException):
    """Community, course, lesson, enrollment, topic or user does not exist."""

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_404_NOT_FOUND, "not_found", message, details)


class PermissionDeniedException(AppException):
    """Authenticated, but lacking ownership / admin / membership rights."""

    def __init__(self, message: str = "Not authorized to perform this action", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_403_FORBIDDEN, "forbidden", message, details)


class ResourceConflictException(AppException):
    """Duplicate active enrollment, duplicate review, duplicate unique name."""

    def __init__(self, message: str = "Resource already exists", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_409_CONFLICT, "conflict", message, details)


class ValidationException(AppException):
    def __init__(self, message: str = "Invalid input", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, "validation_error", message, details)


class AuthenticationException(AppException):
    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            "unauthorized",
            message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class InternalServerException(AppException):
    """Unexpected storage or service fault. The message is shown to clients, keep it generic."""

    def __init__(self, message: str = "Internal server error", details: Optional[Dict[str, Any]] = None):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", message, details)
