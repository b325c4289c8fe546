"""
Parent OTP lifecycle: issue, resend throttling, verification and
best-effort SMS delivery.
"""

import math
import secrets
from datetime import datetime, timedelta
from typing import Optional

from hostel_outing.core.config import NotificationSettings, OtpSettings, settings
from hostel_outing.core.exceptions import RateLimitExceededError, StateConflictError
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.schemas.directory.profiles import StudentProfile
from hostel_outing.services.base.collaborators import OtpSmsSender

logger = get_logger(__name__)

OTP_APPLICATION_TYPES = frozenset({ApplicationType.LEAVE, ApplicationType.PERMISSION})


class OtpGateway:
    """
    Owns the OTP fields of a leave request.

    Methods mutate the request in memory; persisting the change is the
    caller's job.
    """

    def __init__(
        self,
        sms_sender: Optional[OtpSmsSender] = None,
        otp_settings: Optional[OtpSettings] = None,
        notification_settings: Optional[NotificationSettings] = None,
    ):
        self.sms_sender = sms_sender
        self.config = otp_settings or settings.otp
        self.notifications = notification_settings or settings.notifications

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    @staticmethod
    def generate() -> str:
        """Four-digit code in 1000-9999 from a CSPRNG."""
        return str(1000 + secrets.randbelow(9000))

    def is_required(self, application_type: ApplicationType, student: StudentProfile) -> bool:
        if application_type == ApplicationType.PERMISSION:
            return student.parent_permission_for_outing
        return application_type in OTP_APPLICATION_TYPES

    def issue(self, request: LeaveRequest) -> str:
        code = self.generate()
        request.otp_code = code
        request.otp_resend_count = 0
        request.otp_last_resend_at = None
        request.otp_failed_attempts = 0
        request.otp_locked_until = None
        return code

    # -------------------------------------------------------------------------
    # Resend
    # -------------------------------------------------------------------------

    def check_resend(self, request: LeaveRequest, now: datetime) -> None:
        """
        Raises:
            StateConflictError: If the request is no longer awaiting OTP verification
            RateLimitExceededError: If the resend cooldown has not elapsed
        """
        if request.status != LeaveRequestStatus.PENDING_OTP_VERIFICATION or not request.otp_code:
            raise StateConflictError(
                "Invalid leave status for OTP resend",
                current_status=request.status.value,
                action="resend OTP",
            )

        reference = request.otp_last_resend_at or request.created_at
        cooldown = timedelta(minutes=self.config.OTP_RESEND_COOLDOWN_MINUTES)
        remaining = (reference + cooldown) - now
        if remaining > timedelta(0):
            remaining_seconds = math.ceil(remaining.total_seconds())
            remaining_minutes = math.ceil(remaining_seconds / 60)
            raise RateLimitExceededError(
                f"Please wait {remaining_minutes} more minutes before resending OTP",
                retry_after_seconds=remaining_seconds,
                identifier=request.id,
            )

    def mark_resent(self, request: LeaveRequest, now: datetime) -> None:
        """Record a resend. The code itself is reused."""
        request.otp_resend_count = (request.otp_resend_count or 0) + 1
        request.otp_last_resend_at = now

    # -------------------------------------------------------------------------
    # Verify
    # -------------------------------------------------------------------------

    @property
    def lockout_enabled(self) -> bool:
        return self.config.OTP_MAX_FAILED_ATTEMPTS > 0

    def is_locked(self, request: LeaveRequest, now: datetime) -> bool:
        return request.otp_locked_until is not None and now < request.otp_locked_until

    def attempts_remaining(self, request: LeaveRequest, now: datetime) -> Optional[int]:
        if not self.lockout_enabled:
            return None
        if self.is_locked(request, now):
            return 0
        return max(self.config.OTP_MAX_FAILED_ATTEMPTS - (request.otp_failed_attempts or 0), 0)

    def verify(self, request: LeaveRequest, code: Optional[str], now: datetime) -> bool:
        """
        Compare ``code`` with the stored OTP.

        A mismatch increments the failed-attempt counter; reaching the
        limit locks verification for the lockout period and resets the
        counter.

        Raises:
            RateLimitExceededError: While verification is locked
        """
        if self.is_locked(request, now):
            remaining = request.otp_locked_until - now
            remaining_seconds = math.ceil(remaining.total_seconds())
            raise RateLimitExceededError(
                f"Too many incorrect OTP attempts. Try again in {math.ceil(remaining_seconds / 60)} minutes",
                retry_after_seconds=remaining_seconds,
                identifier=request.id,
            )

        submitted = str(code or "").strip()
        if request.otp_code and secrets.compare_digest(submitted, request.otp_code):
            request.otp_failed_attempts = 0
            request.otp_locked_until = None
            return True

        request.otp_failed_attempts = (request.otp_failed_attempts or 0) + 1
        if self.lockout_enabled and request.otp_failed_attempts >= self.config.OTP_MAX_FAILED_ATTEMPTS:
            request.otp_locked_until = now + timedelta(minutes=self.config.OTP_LOCKOUT_MINUTES)
            request.otp_failed_attempts = 0
            logger.warning(
                f"OTP verification locked for request {request.id} until {request.otp_locked_until.isoformat()}",
                extra={"request_id": request.id},
            )
        return False

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def deliver(self, student: StudentProfile, code: str) -> Optional[str]:
        """
        Send the OTP to the student's parent.

        Never raises. Returns a warning message when the OTP could not be
        delivered, ``None`` otherwise.
        """
        if not self.notifications.SMS_ENABLED or self.sms_sender is None:
            logger.info(f"SMS delivery disabled; OTP for student {student.id} not sent")
            return "SMS delivery is disabled; OTP was not sent to the parent"

        if not student.parent_phone:
            logger.warning(f"No parent phone number for student {student.id}")
            return "Parent phone number not available; OTP was not sent"

        try:
            result = self.sms_sender.send_otp(student.parent_phone, code, student)
        except Exception as exc:
            logger.error(f"OTP SMS delivery failed for student {student.id}: {exc}", exc_info=True)
            return "OTP SMS could not be sent. Please ask for a resend."

        if not result.success:
            logger.warning(f"OTP SMS not accepted for student {student.id}: {result.error}")
            return "OTP SMS could not be sent. Please ask for a resend."

        logger.info(
            f"OTP SMS sent for student {student.id}",
            extra={"message_ids": result.message_ids, "languages": result.languages},
        )
        return None


__all__ = [
    "OtpGateway",
    "OTP_APPLICATION_TYPES",
]
