"""
Course-scoped authorization for wardens, sub-admins and principals.
"""

import re
from typing import Dict, List, Optional

from hostel_outing.core.exceptions import AuthorizationError, ErrorCode
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import StaffRole
from hostel_outing.schemas.directory.profiles import (
    LEAVE_MANAGEMENT_PERMISSION,
    StaffProfile,
    StudentProfile,
)
from hostel_outing.services.base.collaborators import StudentDirectory

logger = get_logger(__name__)

COURSE_ID_PATTERN = re.compile(r'^(sql_)?\d+$', re.IGNORECASE)

_CANONICAL_COURSES: Dict[str, str] = {
    "BTECH": "B.Tech",
    "B.TECH": "B.Tech",
    "B TECH": "B.Tech",
    "B-TECH": "B.Tech",
    "DIPLOMA": "Diploma",
    "PHARMACY": "Pharmacy",
    "DEGREE": "Degree",
}

HOSTEL_WIDE_ROLES = frozenset({StaffRole.WARDEN, StaffRole.ADMIN, StaffRole.SUPER_ADMIN})
GATE_ROLES = frozenset({StaffRole.SECURITY, StaffRole.WARDEN, StaffRole.ADMIN, StaffRole.SUPER_ADMIN})


def normalize_course_name(name: Optional[str]) -> Optional[str]:
    """Map spelling variants (``BTECH``, ``B Tech``...) to one display name."""
    if name is None:
        return None
    stripped = name.strip()
    return _CANONICAL_COURSES.get(stripped.upper(), stripped)


class CourseScopeResolver:
    """Decides which staff may act on which students' requests."""

    def __init__(self, directory: StudentDirectory):
        self.directory = directory

    # -------------------------------------------------------------------------
    # Course names
    # -------------------------------------------------------------------------

    def resolve_course_name(self, course_ref: Optional[str]) -> Optional[str]:
        """Resolve a course id through the directory, then normalize it."""
        if not course_ref:
            return None
        course_ref = str(course_ref).strip()
        if COURSE_ID_PATTERN.match(course_ref):
            resolved = self.directory.resolve_course_name(course_ref)
            if resolved:
                course_ref = resolved
            else:
                logger.warning(f"Unknown course id {course_ref}")
        return normalize_course_name(course_ref)

    def allowed_course_names(self, staff: StaffProfile) -> List[str]:
        refs = list(staff.assigned_courses)
        if staff.role == StaffRole.PRINCIPAL and staff.course:
            refs.append(staff.course)
        names = []
        for ref in refs:
            name = self.resolve_course_name(ref)
            if name and name not in names:
                names.append(name)
        return names

    def course_matches(self, staff: StaffProfile, student: StudentProfile) -> bool:
        student_course = self.resolve_course_name(student.course)
        if not student_course:
            return False
        return student_course.lower() in {name.lower() for name in self.allowed_course_names(staff)}

    # -------------------------------------------------------------------------
    # Authorization
    # -------------------------------------------------------------------------

    def ensure_warden_scope(self, staff: Optional[StaffProfile], student: StudentProfile) -> None:
        """
        Wardens, admins and super admins act hostel-wide unless they have
        assigned courses. Sub-admins need the leave management permission
        and a matching assigned course.

        Raises:
            AuthorizationError: If ``staff`` may not act for ``student``
        """
        self._ensure_active(staff)

        if staff.role in HOSTEL_WIDE_ROLES:
            if staff.role == StaffRole.SUPER_ADMIN or not staff.assigned_courses:
                return
            if not self.course_matches(staff, student):
                raise AuthorizationError(
                    "You are not authorized to approve leave requests for this student's course"
                )
            return

        if staff.role == StaffRole.SUB_ADMIN:
            if not staff.has_permission(LEAVE_MANAGEMENT_PERMISSION):
                raise AuthorizationError(
                    "You do not have permission to manage leave requests",
                    required_permission=LEAVE_MANAGEMENT_PERMISSION,
                    error_code=ErrorCode.INSUFFICIENT_PERMISSIONS,
                )
            if not staff.assigned_courses or not self.course_matches(staff, student):
                raise AuthorizationError(
                    "You are not authorized to approve leave requests for this student's course"
                )
            return

        raise AuthorizationError("Only wardens and administrators can perform this action")

    def ensure_principal_scope(self, staff: Optional[StaffProfile], student: StudentProfile) -> None:
        """
        A principal acts on students of their course and, when the
        principal is limited to a branch, of that branch.

        Raises:
            AuthorizationError: If ``staff`` is not a principal for ``student``
        """
        self.ensure_principal_role(staff)

        if not self.allowed_course_names(staff):
            raise AuthorizationError("Principal is not assigned to any course")

        if not self.course_matches(staff, student) or not self._branch_matches(staff, student):
            raise AuthorizationError(
                "You are not authorized to approve leave requests for this student's course/branch"
            )

    def ensure_gate_staff(self, staff: Optional[StaffProfile]) -> None:
        self._ensure_active(staff)
        if staff.role not in GATE_ROLES:
            raise AuthorizationError("Only security staff can scan gate passes")

    def ensure_warden_role(self, staff: Optional[StaffProfile]) -> None:
        self._ensure_active(staff)
        if staff.role not in HOSTEL_WIDE_ROLES and staff.role != StaffRole.SUB_ADMIN:
            raise AuthorizationError("Only wardens and administrators can perform this action")

    def ensure_principal_role(self, staff: Optional[StaffProfile]) -> None:
        self._ensure_active(staff)
        if staff.role != StaffRole.PRINCIPAL:
            raise AuthorizationError("Only principals can perform this action")

    def in_warden_scope(self, staff: StaffProfile, student: StudentProfile) -> bool:
        try:
            self.ensure_warden_scope(staff, student)
        except AuthorizationError:
            return False
        return True

    def in_principal_scope(self, staff: StaffProfile, student: StudentProfile) -> bool:
        try:
            self.ensure_principal_scope(staff, student)
        except AuthorizationError:
            return False
        return True

    # -------------------------------------------------------------------------
    # Recipients
    # -------------------------------------------------------------------------

    def principals_for(self, student: StudentProfile) -> List[StaffProfile]:
        return [
            principal
            for principal in self.directory.find_staff(StaffRole.PRINCIPAL)
            if principal.is_active and self.in_principal_scope(principal, student)
        ]

    def wardens_for(self, student: StudentProfile) -> List[StaffProfile]:
        return [
            warden
            for warden in self.directory.find_staff(StaffRole.WARDEN)
            if warden.is_active and self.in_warden_scope(warden, student)
        ]

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _ensure_active(staff: Optional[StaffProfile]) -> None:
        if staff is None:
            raise AuthorizationError("Staff member not found")
        if not staff.is_active:
            raise AuthorizationError("Staff account is inactive")

    @staticmethod
    def _branch_matches(staff: StaffProfile, student: StudentProfile) -> bool:
        if not staff.branch:
            return True
        return (student.branch or "").strip().lower() == staff.branch.strip().lower()


__all__ = [
    "CourseScopeResolver",
    "normalize_course_name",
    "HOSTEL_WIDE_ROLES",
    "GATE_ROLES",
]
