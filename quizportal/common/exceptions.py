"""
Common Exception Classes

This module defines the error taxonomy shared by every portal component.
Domain errors (validation, not found, forbidden, conflict) are terminal to the
calling operation; RepositoryError marks infrastructure failures that a caller
may decide to retry.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for the portal"""
    UNKNOWN_ERROR = "unknown_error"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"
    FORBIDDEN_ERROR = "forbidden_error"
    CONFLICT_ERROR = "conflict_error"
    REPOSITORY_ERROR = "repository_error"


class PortalError(Exception):
    """Base class for all portal errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Error message, safe to show to end users
            code: Machine readable error code
            details: Optional structured details, also user safe
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the exception to an API error body."""
        body: Dict[str, Any] = {
            "status": "error",
            "message": self.message,
            "code": self.code.value,
        }
        if self.details:
            body["details"] = self.details
        return body

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(PortalError):
    """Exception raised for malformed or rule-violating input."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            errors: Dictionary of validation errors keyed by field path
        """
        self.errors = errors or {}
        super().__init__(
            message,
            code=ErrorCode.VALIDATION_ERROR,
            details={"errors": self.errors} if self.errors else None,
        )


class NotFoundError(PortalError):
    """Exception raised when a referenced resource does not exist."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        """
        Initialize the not found error.

        The identifier is kept for logging only and never enters the message.

        Args:
            resource_type: Type of resource that wasn't found
            resource_id: ID of the resource that wasn't found
        """
        super().__init__(f"{resource_type} not found", code=ErrorCode.NOT_FOUND_ERROR)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ForbiddenError(PortalError):
    """Exception raised when the caller may not act on a resource."""

    status_code = 403

    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.FORBIDDEN_ERROR)


class ConflictError(PortalError):
    """Exception raised when an operation clashes with existing state."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=ErrorCode.CONFLICT_ERROR, details=details)


class RepositoryError(PortalError):
    """Exception raised for storage-layer failures (connectivity, timeouts)."""

    status_code = 503

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the repository error.

        Args:
            message: Error message
            original_exception: Original storage exception
        """
        super().__init__(message, code=ErrorCode.REPOSITORY_ERROR)
        self.original_exception = original_exception
