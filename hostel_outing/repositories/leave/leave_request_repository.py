"""
Leave request repository.

Domain queries over leave requests: the per-day limit probe, queue and
history listings, and locked reads for state-changing operations.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, exists, select
from sqlalchemy.orm import Session

from hostel_outing.core.exceptions import ResourceNotFoundError
from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.repositories.base.base_repository import BaseRepository


class LeaveRequestRepository(BaseRepository[LeaveRequest]):
    """Repository for leave requests and their gate-pass visits."""

    def __init__(self, db: Session):
        super().__init__(LeaveRequest, db)

    def get_for_update(self, request_id: str) -> LeaveRequest:
        """
        Load the current committed state of a request and lock its row.

        The row lock is honoured where the backend supports ``SELECT ...
        FOR UPDATE``; the version column guards the write either way.

        Raises:
            ResourceNotFoundError: If the request does not exist
        """
        return self._load_current(request_id, lock=True)

    def get_current(self, request_id: str) -> LeaveRequest:
        """Like ``get_for_update`` but without the row lock."""
        return self._load_current(request_id, lock=False)

    def _load_current(self, request_id: str, lock: bool) -> LeaveRequest:
        stmt = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        request = self.db.scalars(stmt).first()
        if request is None:
            raise ResourceNotFoundError("Leave request", request_id)
        return request

    def exists_created_between(
        self,
        student_id: str,
        application_type: ApplicationType,
        start: datetime,
        end: datetime,
    ) -> bool:
        """True when the student already has a request of this type created in ``[start, end)``."""
        stmt = select(
            exists().where(
                and_(
                    LeaveRequest.student_id == student_id,
                    LeaveRequest.application_type == application_type,
                    LeaveRequest.created_at >= start,
                    LeaveRequest.created_at < end,
                )
            )
        )
        return bool(self.db.scalar(stmt))

    def find_by_student(
        self,
        student_id: str,
        exclude_statuses: Optional[Iterable[LeaveRequestStatus]] = None,
        limit: Optional[int] = None,
    ) -> List[LeaveRequest]:
        """Requests of a student, newest first."""
        stmt = select(LeaveRequest).where(LeaveRequest.student_id == student_id)
        if exclude_statuses:
            stmt = stmt.where(LeaveRequest.status.not_in(list(exclude_statuses)))
        stmt = stmt.order_by(LeaveRequest.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def find_by_statuses(
        self,
        statuses: Iterable[LeaveRequestStatus],
        application_types: Optional[Iterable[ApplicationType]] = None,
        student_ids: Optional[Iterable[str]] = None,
    ) -> List[LeaveRequest]:
        """Requests in any of ``statuses``, newest first."""
        stmt = select(LeaveRequest).where(LeaveRequest.status.in_(list(statuses)))
        if application_types is not None:
            stmt = stmt.where(LeaveRequest.application_type.in_(list(application_types)))
        if student_ids is not None:
            stmt = stmt.where(LeaveRequest.student_id.in_(list(student_ids)))
        stmt = stmt.order_by(LeaveRequest.created_at.desc())
        return list(self.db.scalars(stmt))
