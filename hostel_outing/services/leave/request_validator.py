"""
Creation-time validation of leave requests.

Checks run in order: application type, reason, per-student daily
limit, field group shape, then date rules that depend on the current
hostel-local time.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from hostel_outing.core.config import OutingSettings, settings
from hostel_outing.core.exceptions import ErrorCode, ValidationError
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import ApplicationType
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.leave.leave_base import (
    FIELD_GROUPS,
    LeaveFields,
    PermissionFields,
    RequestFields,
    StayInHostelFields,
)
from hostel_outing.utils.date_utils import TimeWindow, default_time_window

logger = get_logger(__name__)


@dataclass
class ValidatedRequest:
    student_id: str
    application_type: ApplicationType
    reason: str
    fields: RequestFields


class RequestValidator:
    """Turns raw creation input into a ValidatedRequest or a ValidationError."""

    def __init__(
        self,
        repository: LeaveRequestRepository,
        time_window: Optional[TimeWindow] = None,
        outing_settings: Optional[OutingSettings] = None,
    ):
        self.repository = repository
        self.time_window = time_window or default_time_window()
        self.outing = outing_settings or settings.outing

    @property
    def gate_pass_cutoff(self) -> time:
        return time(self.outing.GATE_PASS_CUTOFF_HOUR, self.outing.GATE_PASS_CUTOFF_MINUTE)

    def validate(
        self,
        student_id: str,
        application_type: Any,
        reason: Optional[str],
        raw_fields: Optional[Mapping[str, Any]],
        now: datetime,
    ) -> ValidatedRequest:
        """
        Validate a new request for ``student_id`` at time ``now``.

        Raises:
            ValidationError: With per-field messages; the daily limit is
                reported with error code DAILY_LIMIT_EXCEEDED
        """
        app_type = self.parse_application_type(application_type)

        reason_text = (reason or "").strip()
        if not reason_text:
            raise ValidationError.for_field("reason", "Reason is required")

        self.check_daily_limit(student_id, app_type, now)

        fields = self.parse_fields(app_type, raw_fields or {})

        errors = self.temporal_errors(fields, now)
        if errors:
            first_message = next(iter(errors.values()))[0]
            raise ValidationError(first_message, field_errors=errors)

        return ValidatedRequest(
            student_id=student_id,
            application_type=app_type,
            reason=reason_text,
            fields=fields,
        )

    def parse_application_type(self, value: Any) -> ApplicationType:
        if isinstance(value, ApplicationType):
            return value
        try:
            return ApplicationType(value)
        except ValueError:
            raise ValidationError.for_field(
                "application_type",
                'Invalid application type. Must be "Leave", "Permission", or "Stay in Hostel"',
            )

    def check_daily_limit(self, student_id: str, application_type: ApplicationType, now: datetime) -> None:
        """At most one request per student per type per hostel-local day."""
        start, end = self.time_window.today_window(now)
        if self.repository.exists_created_between(student_id, application_type, start, end):
            logger.info(
                f"Daily limit hit for student {student_id} ({application_type.value})",
                extra={"student_id": student_id},
            )
            raise daily_limit_error(application_type)

    def parse_fields(self, application_type: ApplicationType, raw_fields: Mapping[str, Any]) -> RequestFields:
        schema = FIELD_GROUPS[application_type]
        try:
            return schema.model_validate(dict(raw_fields))
        except PydanticValidationError as exc:
            errors = field_errors_from(exc, application_type)
            first_message = next(iter(errors.values()))[0]
            raise ValidationError(first_message, field_errors=errors)

    def temporal_errors(self, fields: RequestFields, now: datetime) -> Dict[str, List[str]]:
        window = self.time_window
        errors: Dict[str, List[str]] = {}

        if isinstance(fields, LeaveFields):
            if window.is_before_today(fields.start_date, now):
                errors["start_date"] = ["Start date cannot be in the past"]
            if fields.end_date <= fields.start_date:
                errors["end_date"] = ["End date must be after start date"]
            gate_pass_error = self.gate_pass_error(fields, now)
            if gate_pass_error:
                errors["gate_pass_at"] = [gate_pass_error]

        elif isinstance(fields, PermissionFields):
            if window.is_before_today(fields.permission_date, now):
                errors["permission_date"] = ["Permission date cannot be in the past"]

        elif isinstance(fields, StayInHostelFields):
            today = window.today(now)
            if fields.stay_date not in (today, today + timedelta(days=1)):
                errors["stay_date"] = ["Stay date must be today or tomorrow only"]

        return errors

    def gate_pass_error(self, fields: LeaveFields, now: datetime) -> Optional[str]:
        """
        Same-day leaves may not pick a gate-pass time in the past; leaves
        starting on a later day may only pass the gate after the cutoff.
        """
        if self.time_window.is_today(fields.start_date, now):
            if fields.gate_pass_at < now:
                return "Gate pass time cannot be in the past for same day leave"
            return None

        cutoff = self.gate_pass_cutoff
        if self.time_window.time_of_day(fields.gate_pass_at) < cutoff:
            return f"Gate pass must be after {format_time_12h(cutoff)} for future dates"
        return None


def daily_limit_error(application_type: ApplicationType) -> ValidationError:
    return ValidationError.for_field(
        "application_type",
        f"You have only one {application_type.value} request per day",
        error_code=ErrorCode.DAILY_LIMIT_EXCEEDED,
    )


_MODEL_ERROR_FIELDS = {"time_order": "in_time"}


def field_errors_from(exc: PydanticValidationError, application_type: ApplicationType) -> Dict[str, List[str]]:
    """Flatten pydantic errors into ``{field: [messages]}``."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else _MODEL_ERROR_FIELDS.get(error.get("type"), "fields")
        if error.get("type") == "extra_forbidden":
            message = f"Field '{field}' is not allowed for {application_type.value} applications"
        elif error.get("type") == "missing":
            message = f"{field} is required for {application_type.value} applications"
        else:
            message = error.get("msg", "Invalid value")
        errors.setdefault(field, []).append(message)
    return errors


def format_time_12h(value: time) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


__all__ = [
    "ValidatedRequest",
    "RequestValidator",
    "daily_limit_error",
    "field_errors_from",
    "format_time_12h",
]
