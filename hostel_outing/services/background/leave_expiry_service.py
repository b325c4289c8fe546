"""
Background expiry of stale pending leave requests.

A request still waiting for OTP verification, warden review or
principal approval after its date has passed is of no use to anyone.
The reaper notifies the student and deletes such requests. Each delete
is version-checked, so a request that was acted on after the sweep read
it is left alone.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hostel_outing.core.exceptions import ResourceNotFoundError
from hostel_outing.core.logging import bind_log_context
from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.services.base.base_service import BaseService, Clock
from hostel_outing.services.base.service_result import ServiceResult
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.utils.date_utils import TimeWindow, default_time_window

REAPABLE_STATUSES = (
    LeaveRequestStatus.PENDING,
    LeaveRequestStatus.PENDING_OTP_VERIFICATION,
    LeaveRequestStatus.WARDEN_VERIFIED,
    LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL,
)


@dataclass
class ExpiryRunResult:
    """Outcome of one reaper sweep."""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    examined: int = 0
    deleted: int = 0
    skipped: int = 0
    failed: List[str] = field(default_factory=list)
    duration_ms: float = 0.0


class LeaveExpiryService(BaseService[LeaveRequest, LeaveRequestRepository]):
    """
    Deletes pending requests whose date has passed.

    Safe to run concurrently with itself and with user actions.
    """

    def __init__(
        self,
        repository: LeaveRequestRepository,
        db_session: Session,
        notifier: LeaveNotifier,
        time_window: Optional[TimeWindow] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(repository, db_session, clock=clock)
        self.notifier = notifier
        self.time_window = time_window or default_time_window()

    def is_expired(self, request: LeaveRequest, now: datetime) -> bool:
        """True when the request's relevant date is before today (hostel-local)."""
        if request.status not in REAPABLE_STATUSES:
            return False
        if request.application_type == ApplicationType.LEAVE:
            relevant = request.end_date
        elif request.application_type == ApplicationType.PERMISSION:
            relevant = request.permission_date
        else:
            relevant = request.stay_date
        return relevant is not None and self.time_window.is_before_today(relevant, now)

    def find_expired(self, now: Optional[datetime] = None) -> List[LeaveRequest]:
        """Pending requests whose relevant date is before today."""
        now = now or self._now()
        return [r for r in self.repository.find_by_statuses(REAPABLE_STATUSES) if self.is_expired(r, now)]

    def run_expiry_reaper(self) -> ServiceResult[int]:
        """
        Sweep expired pending requests.

        Returns:
            ServiceResult containing the number of deleted requests, with
            per-run counters in ``metadata["run"]``
        """
        run = ExpiryRunResult()
        with bind_log_context(expiry_run=run.run_id):
            return self._sweep(run)

    def _sweep(self, run: ExpiryRunResult) -> ServiceResult[int]:
        started = self._now()

        try:
            candidate_ids = [r.id for r in self.find_expired(started)]
            run.examined = len(candidate_ids)
            self._rollback()
        except Exception as e:
            return self._handle_exception(e, "run leave expiry reaper")

        for request_id in candidate_ids:
            outcome = self._reap_one(request_id)
            if outcome is True:
                run.deleted += 1
            elif outcome is False:
                run.skipped += 1
            else:
                run.failed.append(request_id)

        run.duration_ms = (self._now() - started).total_seconds() * 1000
        self._logger.info(
            f"Leave expiry reaper: examined {run.examined}, deleted {run.deleted}, "
            f"skipped {run.skipped}, failed {len(run.failed)}",
            extra={"deleted": run.deleted, "failed_count": len(run.failed)},
        )
        return ServiceResult.success(
            run.deleted,
            message=f"Deleted {run.deleted} expired leave requests",
            metadata={"run": asdict(run)},
        )

    def _reap_one(self, request_id: str) -> Optional[bool]:
        """
        True if deleted, False if no longer eligible, None on failure.

        The student is notified with no transaction open. The delete is
        then conditioned on the version that was read, so a request acted
        on while the notification was going out raises StaleDataError and
        is skipped.
        """
        try:
            now = self._now()
            request = self.repository.get_current(request_id)
            if not self.is_expired(request, now):
                self._rollback()
                return False
            # Ends the read; attributes stay loaded (expire_on_commit=False)
            self._commit()

            self.notifier.auto_deleted(request)

            self.repository.remove(request)
            self._commit()
        except (ResourceNotFoundError, StaleDataError) as e:
            self._rollback()
            self._logger.info(f"Expired request {request_id} changed during sweep: {e}")
            return False
        except Exception as e:
            self._rollback()
            self._logger.error(f"Failed to delete expired request {request_id}: {e}", exc_info=True)
            return None

        self._logger.info(
            f"Deleted expired {request.application_type.value} request {request_id} ({request.status.value})",
            extra={"request_id": request_id, "student_id": request.student_id},
        )
        return True


__all__ = [
    "LeaveExpiryService",
    "ExpiryRunResult",
    "REAPABLE_STATUSES",
]
