"""
Exceptions raised inside the outing workflow.

Validators, the state machine, the OTP gateway and the gate tracker raise
these; the application services catch them and hand back a failed
ServiceResult. ``message`` is the text shown to the user and ``details``
carries whatever a client needs to react (remaining attempts, when a gate
pass opens, the status that blocked an action).
"""

from typing import Any, Dict, List, Optional
from enum import Enum


class ErrorCode(str, Enum):
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    DATABASE_ERROR = "DATABASE_ERROR"

    AUTHORIZATION_FAILED = "AUTHORIZATION_FAILED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    VALIDATION_ERROR = "VALIDATION_ERROR"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"

    STATE_CONFLICT = "STATE_CONFLICT"
    INVALID_OTP = "INVALID_OTP"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NOT_AVAILABLE = "NOT_AVAILABLE"
    DUPLICATE_SCAN = "DUPLICATE_SCAN"

    SMS_SERVICE_ERROR = "SMS_SERVICE_ERROR"


class BaseAppException(Exception):
    """Root of the outing exceptions."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"


# ========================================
# Input and access
# ========================================

class ValidationError(BaseAppException):
    """Submitted data was rejected. ``field_errors`` maps field name to messages."""

    error_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: Optional[ErrorCode] = None,
    ):
        self.field_errors = field_errors or {}
        super().__init__(
            message,
            error_code,
            {"field_errors": self.field_errors} if self.field_errors else None,
        )

    @classmethod
    def for_field(cls, field: str, message: str, **kwargs) -> "ValidationError":
        return cls(message, field_errors={field: [message]}, **kwargs)


class ResourceNotFoundError(BaseAppException):
    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str = "Resource", resource_id: Optional[str] = None):
        message = f"{resource_type} not found"
        if resource_id:
            message += f" (ID: {resource_id})"
        super().__init__(message, details={"resource_type": resource_type, "resource_id": resource_id})


class AuthorizationError(BaseAppException):
    """The actor may not touch this request, or lacks the role for the action."""

    error_code = ErrorCode.AUTHORIZATION_FAILED

    def __init__(
        self,
        message: str = "Access denied",
        required_permission: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
    ):
        details = {"required_permission": required_permission} if required_permission else None
        super().__init__(message, error_code, details)


# ========================================
# Request lifecycle
# ========================================

class StateConflictError(BaseAppException):
    """The request's current status does not allow ``action``."""

    error_code = ErrorCode.STATE_CONFLICT

    def __init__(
        self,
        message: str = "Request state does not allow this action",
        current_status: Optional[str] = None,
        action: Optional[str] = None,
    ):
        super().__init__(message, details={"current_status": current_status, "action": action})


class InvalidOtpError(BaseAppException):
    error_code = ErrorCode.INVALID_OTP

    def __init__(self, message: str = "Invalid OTP", attempts_remaining: Optional[int] = None):
        details = {"attempts_remaining": attempts_remaining} if attempts_remaining is not None else None
        super().__init__(message, details=details)


class RateLimitExceededError(BaseAppException):
    """An OTP action was retried inside its cooldown or lockout."""

    error_code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after_seconds: Optional[int] = None,
        identifier: Optional[str] = None,
    ):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message,
            details={"retry_after_seconds": retry_after_seconds, "identifier": identifier},
        )


# ========================================
# Gate
# ========================================

class NotAvailableError(BaseAppException):
    """The gate pass exists but cannot be shown or scanned at this moment."""

    error_code = ErrorCode.NOT_AVAILABLE

    def __init__(
        self,
        message: str = "Gate pass is not available",
        reason: Optional[str] = None,
        available_from: Optional[str] = None,
        snapshot: Optional[Dict[str, Any]] = None,
    ):
        # snapshot: visit counters and lock state of the pass, for QR views
        super().__init__(
            message,
            details={"reason": reason, "available_from": available_from, **(snapshot or {})},
        )


class DuplicateScanError(BaseAppException):
    error_code = ErrorCode.DUPLICATE_SCAN

    def __init__(
        self,
        message: str = "Duplicate scan detected. Please wait before scanning again.",
        scanned_by: Optional[str] = None,
        window_seconds: Optional[int] = None,
    ):
        super().__init__(message, details={"scanned_by": scanned_by, "window_seconds": window_seconds})


# ========================================
# Parent SMS gateway
# ========================================

class SMSServiceError(BaseAppException):
    error_code = ErrorCode.SMS_SERVICE_ERROR

    def __init__(self, message: str = "SMS service error", phone_number: Optional[str] = None):
        super().__init__(message, details={"phone_number": phone_number} if phone_number else None)


__all__ = [
    "ErrorCode",
    "BaseAppException",
    "ValidationError",
    "ResourceNotFoundError",
    "AuthorizationError",
    "StateConflictError",
    "InvalidOtpError",
    "RateLimitExceededError",
    "NotAvailableError",
    "DuplicateScanError",
    "SMSServiceError",
]
