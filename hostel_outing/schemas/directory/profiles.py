"""
Directory records consumed by the outing workflow.

Students, staff and courses live in the hostel directory; the outing
engine only reads these snapshots.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from hostel_outing.models.base.enums import Gender, StaffRole
from hostel_outing.schemas.common.base import BaseSchema

__all__ = [
    "StudentProfile",
    "StaffProfile",
    "LEAVE_MANAGEMENT_PERMISSION",
]

LEAVE_MANAGEMENT_PERMISSION = "leave_management"


class StudentProfile(BaseSchema):
    id: str
    name: str
    gender: Optional[Gender] = None
    parent_phone: Optional[str] = None
    course: Optional[str] = Field(default=None, description="Course name or SQL-style course id")
    branch: Optional[str] = None
    parent_permission_for_outing: bool = Field(
        default=True,
        description="Parent has consented to OTP verification of outings",
    )


class StaffProfile(BaseSchema):
    id: str
    name: str
    role: StaffRole
    course: Optional[str] = Field(default=None, description="Principal's course")
    branch: Optional[str] = Field(default=None, description="Principal's branch, if limited to one")
    assigned_courses: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    is_active: bool = True

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions
