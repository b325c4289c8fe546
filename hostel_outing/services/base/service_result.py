"""
Result envelope returned by every outing service operation.

Services never raise for expected workflow outcomes (wrong OTP, a gate pass
that is not open yet, a request someone else already decided). They hand
back a failed ``ServiceResult`` carrying an ``ErrorCode`` the caller can
branch on, and keep exceptions for genuine faults.
"""

from typing import TypeVar, Generic, Optional, Any, Dict, List
from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime, timezone


class ErrorCode(str, Enum):
    """Machine-readable failure reasons."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Request lifecycle
    STATE_CONFLICT = "STATE_CONFLICT"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    INVALID_OTP = "INVALID_OTP"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Gate
    NOT_AVAILABLE = "NOT_AVAILABLE"
    DUPLICATE_SCAN = "DUPLICATE_SCAN"

    # Infrastructure
    DATABASE_ERROR = "DATABASE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class ServiceError:
    code: ErrorCode
    message: str
    severity: ErrorSeverity = ErrorSeverity.ERROR
    details: Optional[Dict[str, Any]] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


TData = TypeVar("TData")


@dataclass
class ServiceResult(Generic[TData]):
    """
    Outcome of a service call.

    ``message`` always holds the user-facing text: the success message, or
    the error message on failure. Non-fatal problems (an SMS that did not go
    out, a notification that timed out) are collected under
    ``metadata["warnings"]`` while the operation itself still succeeds.
    """

    is_success: bool
    data: Optional[TData] = None
    error: Optional[ServiceError] = None
    message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(
        cls,
        data: Optional[TData] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult[TData]":
        return cls(is_success=True, data=data, message=message, metadata=metadata or {})

    @classmethod
    def failure(
        cls,
        error: ServiceError,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "ServiceResult[TData]":
        return cls(is_success=False, error=error, message=error.message, metadata=metadata or {})

    @classmethod
    def not_found(cls, resource_type: str, resource_id: Optional[str] = None) -> "ServiceResult[TData]":
        """``"<resource_type> not found (ID: <id>)"`` with a NOT_FOUND code."""
        message = f"{resource_type} not found"
        if resource_id:
            message += f" (ID: {resource_id})"
        return cls.failure(
            ServiceError(
                code=ErrorCode.NOT_FOUND,
                message=message,
                severity=ErrorSeverity.WARNING,
                details={"resource_type": resource_type, "resource_id": resource_id},
            )
        )

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    @property
    def warnings(self) -> List[str]:
        return list(self.metadata.get("warnings", []))

    def add_warning(self, warning: str) -> "ServiceResult[TData]":
        self.metadata.setdefault("warnings", []).append(warning)
        return self

    def __bool__(self) -> bool:
        return self.is_success


__all__ = [
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]
