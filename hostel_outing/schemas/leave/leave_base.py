"""
Type-specific field groups of a leave request.

Each application type has its own input model and exactly one of them is
attached to a request. Keys belonging to another group are rejected at
parse time, so a request can never carry a mixture of groups.
"""

from __future__ import annotations

from datetime import date as Date, datetime
from typing import ClassVar, Dict, Type, Union

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from hostel_outing.models.base.enums import ApplicationType
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.schemas.common.base import BaseInputSchema
from hostel_outing.utils.date_utils import default_time_window, parse_time_of_day

__all__ = [
    "LeaveFields",
    "PermissionFields",
    "StayInHostelFields",
    "RequestFields",
    "FIELD_GROUPS",
    "fields_of",
    "apply_fields",
]


def _parse_datetime_input(value):
    try:
        return default_time_window().parse_datetime(value)
    except (TypeError, ValueError):
        raise PydanticCustomError("datetime_parsing", "Invalid date/time value: {value}", {"value": str(value)})


def _parse_date_input(value):
    try:
        return default_time_window().parse_date(value)
    except (TypeError, ValueError):
        raise PydanticCustomError("date_parsing", "Invalid date value: {value}", {"value": str(value)})


class LeaveFields(BaseInputSchema):
    """
    Multi-day leave.

    ``gate_pass_at`` is when the student intends to pass the gate on the
    first day. Naive inputs are read as hostel-local time; a bare date
    means local midnight.
    """

    application_type: ClassVar[ApplicationType] = ApplicationType.LEAVE

    start_date: datetime = Field(..., validation_alias=AliasChoices("start_date", "startDate"))
    end_date: datetime = Field(..., validation_alias=AliasChoices("end_date", "endDate"))
    gate_pass_at: datetime = Field(
        ...,
        validation_alias=AliasChoices("gate_pass_at", "gatePassDateTime"),
    )

    @field_validator("start_date", "end_date", "gate_pass_at", mode="before")
    @classmethod
    def parse_local_datetime(cls, v):
        return _parse_datetime_input(v)


class PermissionFields(BaseInputSchema):
    """Same-day permission between ``out_time`` and ``in_time`` (HH:MM, 24-hour)."""

    application_type: ClassVar[ApplicationType] = ApplicationType.PERMISSION

    permission_date: Date = Field(..., validation_alias=AliasChoices("permission_date", "permissionDate"))
    out_time: str = Field(..., validation_alias=AliasChoices("out_time", "outTime"))
    in_time: str = Field(..., validation_alias=AliasChoices("in_time", "inTime"))

    @field_validator("permission_date", mode="before")
    @classmethod
    def parse_local_date(cls, v):
        return _parse_date_input(v)

    @field_validator("out_time", "in_time", mode="before")
    @classmethod
    def normalize_time(cls, v):
        try:
            return parse_time_of_day(v).strftime("%H:%M")
        except (TypeError, ValueError):
            raise PydanticCustomError("time_format", "Time must be in HH:MM format (24-hour)")

    @model_validator(mode="after")
    def check_time_order(self) -> "PermissionFields":
        if parse_time_of_day(self.out_time) >= parse_time_of_day(self.in_time):
            raise PydanticCustomError("time_order", "Out time must be before in time")
        return self


class StayInHostelFields(BaseInputSchema):
    """Request to stay in the hostel on ``stay_date``."""

    application_type: ClassVar[ApplicationType] = ApplicationType.STAY_IN_HOSTEL

    stay_date: Date = Field(..., validation_alias=AliasChoices("stay_date", "stayDate"))

    @field_validator("stay_date", mode="before")
    @classmethod
    def parse_local_date(cls, v):
        return _parse_date_input(v)


RequestFields = Union[LeaveFields, PermissionFields, StayInHostelFields]

FIELD_GROUPS: Dict[ApplicationType, Type[BaseInputSchema]] = {
    ApplicationType.LEAVE: LeaveFields,
    ApplicationType.PERMISSION: PermissionFields,
    ApplicationType.STAY_IN_HOSTEL: StayInHostelFields,
}


def fields_of(request: LeaveRequest) -> RequestFields:
    """Rebuild the populated field group of a stored request."""
    if request.application_type == ApplicationType.LEAVE:
        return LeaveFields.model_construct(
            start_date=request.start_date,
            end_date=request.end_date,
            gate_pass_at=request.gate_pass_at,
        )
    if request.application_type == ApplicationType.PERMISSION:
        return PermissionFields.model_construct(
            permission_date=request.permission_date,
            out_time=request.out_time,
            in_time=request.in_time,
        )
    return StayInHostelFields.model_construct(stay_date=request.stay_date)


def apply_fields(request: LeaveRequest, fields: RequestFields) -> None:
    """Populate the column group for ``fields`` on a new request."""
    request.application_type = fields.application_type
    if isinstance(fields, LeaveFields):
        request.start_date = fields.start_date
        request.end_date = fields.end_date
        request.gate_pass_at = fields.gate_pass_at
    elif isinstance(fields, PermissionFields):
        request.permission_date = fields.permission_date
        request.out_time = fields.out_time
        request.in_time = fields.in_time
    else:
        request.stay_date = fields.stay_date
