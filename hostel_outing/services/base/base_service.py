"""
Common plumbing for the outing services: session ownership, the clock,
exception-to-result translation and commit/rollback handling.
"""

from typing import TypeVar, Generic, Optional, Dict, Any, Callable
from abc import ABC
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import SQLAlchemyError

from hostel_outing.core.exceptions import BaseAppException, ErrorCode as AppErrorCode
from hostel_outing.core.logging import get_logger
from hostel_outing.repositories.base.base_repository import BaseRepository
from hostel_outing.services.base.service_result import (
    ServiceResult,
    ServiceError,
    ErrorCode,
    ErrorSeverity,
)
from hostel_outing.utils.date_utils import ensure_utc, now_utc


TModel = TypeVar("TModel")
TRepo = TypeVar("TRepo", bound=BaseRepository)

Clock = Callable[[], datetime]

_APP_ERROR_CODES: Dict[AppErrorCode, ErrorCode] = {
    AppErrorCode.VALIDATION_ERROR: ErrorCode.VALIDATION_ERROR,
    AppErrorCode.DAILY_LIMIT_EXCEEDED: ErrorCode.DAILY_LIMIT_EXCEEDED,
    AppErrorCode.RESOURCE_NOT_FOUND: ErrorCode.NOT_FOUND,
    AppErrorCode.AUTHORIZATION_FAILED: ErrorCode.UNAUTHORIZED,
    AppErrorCode.INSUFFICIENT_PERMISSIONS: ErrorCode.INSUFFICIENT_PERMISSIONS,
    AppErrorCode.STATE_CONFLICT: ErrorCode.STATE_CONFLICT,
    AppErrorCode.INVALID_OTP: ErrorCode.INVALID_OTP,
    AppErrorCode.NOT_AVAILABLE: ErrorCode.NOT_AVAILABLE,
    AppErrorCode.DUPLICATE_SCAN: ErrorCode.DUPLICATE_SCAN,
    AppErrorCode.RATE_LIMIT_EXCEEDED: ErrorCode.RATE_LIMIT_EXCEEDED,
    AppErrorCode.SMS_SERVICE_ERROR: ErrorCode.EXTERNAL_SERVICE_ERROR,
    AppErrorCode.DATABASE_ERROR: ErrorCode.DATABASE_ERROR,
}

CONCURRENT_MODIFICATION_MESSAGE = "Request was modified by another action. Please reload and try again."


class BaseService(ABC, Generic[TModel, TRepo]):
    """
    Parent of every service that works on a single repository.

    Subclasses wrap each public operation in ``try/except`` and pass anything
    they catch to ``_handle_exception``, so callers only ever see a
    ``ServiceResult``.
    """

    def __init__(
        self,
        repository: TRepo,
        db_session: Session,
        clock: Optional[Clock] = None,
    ):
        self.repository: TRepo = repository
        self.db: Session = db_session
        # Tests pin this to a fixed instant; stored values are always UTC.
        self._clock: Clock = clock or now_utc
        self._logger = get_logger(self.__class__.__name__)

    def _now(self) -> datetime:
        return ensure_utc(self._clock())

    # -------------------------------------------------------------------------
    # Failures
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Turn a caught exception into a failed ServiceResult.

        Workflow refusals (``BaseAppException``) and lost optimistic-lock
        races are expected and logged at warning level with the user-facing
        message preserved. Anything else is a fault: it is logged with a
        traceback and reported as ``"Failed to <operation>"``.
        """
        ref = str(entity_ref) if entity_ref is not None else None
        context = {
            "operation": operation,
            "entity_ref": ref,
            "exception_type": type(exception).__name__,
            **(additional_context or {}),
        }
        code = self._error_code_for(exception)

        if isinstance(exception, BaseAppException):
            self._logger.warning(f"{operation} refused: {exception.message}", extra=context)
            return self._failure(code, exception.message, exception.details or None)

        if isinstance(exception, StaleDataError):
            self._logger.warning(f"{operation} lost a concurrent update: {exception}", extra=context)
            return self._failure(code, CONCURRENT_MODIFICATION_MESSAGE, {"entity_ref": ref})

        self._logger.error(f"Error during {operation}: {exception}", exc_info=True, extra=context)
        return self._failure(
            code,
            f"Failed to {operation}",
            {"error": str(exception), "entity_ref": ref},
            severity=ErrorSeverity.CRITICAL,
        )

    @staticmethod
    def _failure(
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
    ) -> ServiceResult:
        return ServiceResult.failure(
            ServiceError(code=code, message=message, details=details, severity=severity)
        )

    @staticmethod
    def _error_code_for(exception: Exception) -> ErrorCode:
        if isinstance(exception, BaseAppException):
            return _APP_ERROR_CODES.get(exception.error_code, ErrorCode.INTERNAL_ERROR)
        if isinstance(exception, StaleDataError):
            return ErrorCode.STATE_CONFLICT
        if isinstance(exception, SQLAlchemyError):
            return ErrorCode.DATABASE_ERROR
        return ErrorCode.INTERNAL_ERROR

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self):
        """Commit on clean exit, roll back and re-raise otherwise."""
        try:
            yield self.db
            self._commit()
        except Exception:
            self._rollback()
            raise

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception as e:
            self._logger.warning(f"Commit failed: {e}")
            self._rollback()
            raise

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            # Never let a failed rollback hide the error being handled.
            self._logger.warning(f"Rollback failed: {e}")

    def _log_operation(
        self,
        operation: str,
        entity_ref: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = {"entity_ref": str(entity_ref) if entity_ref else None, **(extra or {})}
        self._logger.info(f"Operation: {operation}", extra=context)
