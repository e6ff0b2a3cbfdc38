"""
Custom exception classes for the marketplace core
"""
from typing import Any, Dict, Optional
from fastapi import status


class BaseCustomException(Exception):
    """Base custom exception class"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Raised when input is missing or malformed, before anything is persisted"""

    def __init__(self, message: str, field: str = None, details: Optional[Dict[str, Any]] = None):
        if field:
            details = details or {}
            details["field"] = field

        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class ResourceNotFoundError(BaseCustomException):
    """Raised when a referenced user, product, conversation or transaction does not exist"""

    def __init__(self, resource: str, identifier: str, details: Optional[Dict[str, Any]] = None):
        message = f"{resource} with identifier '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class ConflictError(BaseCustomException):
    """Raised when a uniqueness or compare-and-swap check loses a race"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InvalidStateTransitionError(BaseCustomException):
    """Raised when a transaction status change is not an edge of the lifecycle"""

    def __init__(self, from_status: str, to_status: str, allowed: Optional[list] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message=f"Cannot move transaction from {from_status} to {to_status}",
            status_code=status.HTTP_409_CONFLICT,
            details={
                "from_status": from_status,
                "to_status": to_status,
                "allowed": allowed or []
            }
        )


class AuthenticationError(BaseCustomException):
    """Raised when authentication fails"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class AuthorizationError(BaseCustomException):
    """Raised when authorization fails"""

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )
