"""Custom exceptions for the application."""

from typing import Any


class AppException(Exception):
    """Base exception for all application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


# Resource Exceptions
class NotFoundError(AppException):
    """Raised when resource is not found."""

    def __init__(
        self, resource: str = "Resource", identifier: str | None = None
    ):
        message = f"{resource} not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


class ConflictError(AppException):
    """Raised when a change would break a uniqueness rule."""

    def __init__(self, message: str = "Resource already exists", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class ActiveConversationExistsError(ConflictError):
    """Raised when a customer already has an open or assigned conversation."""

    def __init__(self, customer_id: str, conversation_id: str):
        super().__init__(
            message="Customer already has an active conversation",
            details={"customer_id": customer_id, "conversation_id": conversation_id},
        )
        self.error_code = "ACTIVE_CONVERSATION_EXISTS"


# Database Exceptions
class PersistenceError(AppException):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(
            message=message,
            status_code=500,
            error_code="DATABASE_ERROR",
        )
