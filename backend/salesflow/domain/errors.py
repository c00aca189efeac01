"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Specific permission denied"""
    error_code = "PERMISSION_DENIED"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed before any write was issued"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class FlowNotFoundError(NotFoundError):
    """Flow instance not found"""
    error_code = "FLOW_NOT_FOUND"


class StageNotFoundError(NotFoundError):
    """Stage template not found"""
    error_code = "STAGE_NOT_FOUND"


class TaskNotFoundError(NotFoundError):
    """Task template not found"""
    error_code = "TASK_NOT_FOUND"


class CommentNotFoundError(NotFoundError):
    """Comment not found"""
    error_code = "COMMENT_NOT_FOUND"


class ReservationNotFoundError(NotFoundError):
    """Reservation not found"""
    error_code = "RESERVATION_NOT_FOUND"


class CommissionNotFoundError(NotFoundError):
    """Broker commission not found"""
    error_code = "COMMISSION_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict"""
    error_code = "CONFLICT"
    http_status = 409


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


# Store Errors
class StoreError(DomainError):
    """The backing store rejected or failed an operation; the caller may retry"""
    error_code = "STORE_ERROR"
    http_status = 502
