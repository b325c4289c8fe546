from hostel_outing.schemas.directory.profiles import (
    LEAVE_MANAGEMENT_PERMISSION,
    StaffProfile,
    StudentProfile,
)

__all__ = [
    "LEAVE_MANAGEMENT_PERMISSION",
    "StaffProfile",
    "StudentProfile",
]
