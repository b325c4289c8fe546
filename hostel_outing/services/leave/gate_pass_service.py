"""
Gate pass service: QR views for students and scan recording for security.

Scans are read-modify-write on the visit counters. Two guards scanning
the same pass at once race on the version column; the loser reloads the
current state and re-applies its checks, so a retried scan can still be
refused as a duplicate or for exceeding the visit limit.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from hostel_outing.core.config import OutingSettings, settings
from hostel_outing.core.exceptions import AuthorizationError, StateConflictError, ValidationError
from hostel_outing.models.base.enums import VerificationStatus, VisitType
from hostel_outing.models.leave.leave_request import GatePassVisit, LeaveRequest
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.common.base import BaseSchema
from hostel_outing.schemas.leave.leave_response import (
    GatePassView,
    IncomingGatePassView,
    LeaveRequestResponse,
    VisitRecordResponse,
)
from hostel_outing.services.base.base_service import Clock
from hostel_outing.services.base.collaborators import StudentDirectory
from hostel_outing.services.base.service_result import ServiceResult
from hostel_outing.services.leave.base_leave_service import LeaveWorkflowService
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.services.leave.gate_pass_tracker import Availability, GatePassTracker
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.state_machine import ApprovalStateMachine
from hostel_outing.utils.date_utils import TimeWindow

RecordVisit = Callable[[LeaveRequest, str, Optional[str], datetime], GatePassVisit]


class GatePassService(LeaveWorkflowService):
    """QR availability and gate scans."""

    def __init__(
        self,
        repository: LeaveRequestRepository,
        db_session: Session,
        directory: StudentDirectory,
        notifier: LeaveNotifier,
        tracker: GatePassTracker,
        scope_resolver: Optional[CourseScopeResolver] = None,
        state_machine: Optional[ApprovalStateMachine] = None,
        time_window: Optional[TimeWindow] = None,
        clock: Optional[Clock] = None,
        outing_settings: Optional[OutingSettings] = None,
    ):
        super().__init__(
            repository,
            db_session,
            directory,
            notifier,
            scope_resolver=scope_resolver,
            state_machine=state_machine,
            time_window=time_window,
            clock=clock,
        )
        self.tracker = tracker
        self.outing = outing_settings or settings.outing

    # -------------------------------------------------------------------------
    # Student QR views
    # -------------------------------------------------------------------------

    def request_qr_view(self, request_id: str, student_id: str) -> ServiceResult[GatePassView]:
        """
        Outgoing QR for the student's approved request.

        Outside the pass window or once the visit limit is reached the
        result fails with NOT_AVAILABLE, but still carries the snapshot:
        ``data`` is the view with ``available=False`` and the reason, and
        the error details repeat the visit counters and lock state.
        """
        operation = "view gate pass"
        try:
            now = self._now()
            request = self._load_own(request_id, student_id)
            availability = self.tracker.availability(request, now)
        except Exception as e:
            return self._handle_exception(e, operation, request_id)

        view = GatePassView(
            request_id=request.id,
            student_id=request.student_id,
            application_type=request.application_type,
            available=availability.available,
            reason=availability.reason,
            available_from=availability.available_from,
            valid_until=availability.valid_until,
            visit_count=request.visit_count,
            max_visits=request.max_visits,
            remaining_visits=self.tracker.remaining_visits(request),
            visit_locked=request.visit_locked,
        )
        if view.available:
            return ServiceResult.success(view)
        return self._refused_view(
            availability,
            view,
            operation,
            {
                "visit_count": view.visit_count,
                "max_visits": view.max_visits,
                "remaining_visits": view.remaining_visits,
                "visit_locked": view.visit_locked,
            },
        )

    def request_incoming_qr_view(self, request_id: str, student_id: str) -> ServiceResult[IncomingGatePassView]:
        """Return QR, available after the first outgoing scan until it expires."""
        operation = "view incoming gate pass"
        try:
            now = self._now()
            request = self._load_own(request_id, student_id)
            availability = self.tracker.incoming_availability(request, now)
        except Exception as e:
            return self._handle_exception(e, operation, request_id)

        view = IncomingGatePassView(
            request_id=request.id,
            student_id=request.student_id,
            available=availability.available,
            reason=availability.reason,
            generated_at=request.incoming_qr_generated_at,
            expires_at=request.incoming_qr_expires_at,
            outgoing_visit_count=request.outgoing_visit_count,
            incoming_visit_count=request.incoming_visit_count,
        )
        if view.available:
            return ServiceResult.success(view)
        return self._refused_view(
            availability,
            view,
            operation,
            {
                "outgoing_visit_count": view.outgoing_visit_count,
                "incoming_visit_count": view.incoming_visit_count,
                "expires_at": view.expires_at.isoformat() if view.expires_at else None,
            },
        )

    # -------------------------------------------------------------------------
    # Security scans
    # -------------------------------------------------------------------------

    def record_outgoing_visit(
        self,
        request_id: str,
        scanner_id: str,
        location: Optional[str] = None,
    ) -> ServiceResult[VisitRecordResponse]:
        return self._record_visit(
            "record outgoing visit",
            request_id,
            scanner_id,
            location,
            VisitType.OUTGOING,
            self.tracker.record_outgoing,
        )

    def record_incoming_visit(
        self,
        request_id: str,
        scanner_id: str,
        location: Optional[str] = None,
    ) -> ServiceResult[VisitRecordResponse]:
        return self._record_visit(
            "record incoming visit",
            request_id,
            scanner_id,
            location,
            VisitType.INCOMING,
            self.tracker.record_incoming,
        )

    def update_verification_status(
        self,
        request_id: str,
        actor_id: str,
        verification_status: VerificationStatus,
    ) -> ServiceResult[LeaveRequestResponse]:
        """Security marks an approved pass as Verified or Expired."""
        operation = "update verification status"
        try:
            if not isinstance(verification_status, VerificationStatus):
                try:
                    verification_status = VerificationStatus(verification_status)
                except ValueError:
                    raise ValidationError.for_field(
                        "verification_status",
                        'Verification status must be "Verified" or "Expired"',
                    )
            now = self._now()
            self.scope_resolver.ensure_gate_staff(self._get_staff(actor_id))
            request = self.repository.get_for_update(request_id)
            self.tracker.update_verification_status(request, verification_status, now)
            self._commit()
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, operation, request_id, {"actor_id": actor_id})

        self._log_operation(operation, request_id, {"verification_status": verification_status.value})
        return ServiceResult.success(
            self._to_response(request),
            message=f"Leave marked as {verification_status.value.lower()}",
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_own(self, request_id: str, student_id: str) -> LeaveRequest:
        request = self.repository.get_by_id(request_id)
        if request.student_id != student_id:
            raise AuthorizationError("You can only view your own gate pass")
        return request

    def _refused_view(
        self,
        availability: Availability,
        view: BaseSchema,
        operation: str,
        snapshot: Dict[str, Any],
    ) -> ServiceResult:
        result = self._handle_exception(availability.to_error(snapshot), operation, view.request_id)
        result.data = view
        return result

    def _record_visit(
        self,
        operation: str,
        request_id: str,
        scanner_id: str,
        location: Optional[str],
        visit_type: VisitType,
        record: RecordVisit,
    ) -> ServiceResult[VisitRecordResponse]:
        try:
            if not scanner_id:
                raise ValidationError.for_field("scanner_id", "Scanner id is required")
            self.scope_resolver.ensure_gate_staff(self._get_staff(scanner_id))
        except Exception as e:
            return self._handle_exception(e, operation, request_id)

        max_attempts = self.outing.SCAN_MAX_RETRIES
        for attempt in range(1, max_attempts + 1):
            try:
                now = self._now()
                request = self.repository.get_for_update(request_id)
                visit = record(request, scanner_id, location, now)
                self._commit()
            except StaleDataError:
                self._rollback()
                self._logger.info(
                    f"{operation}: concurrent update on {request_id}, attempt {attempt}/{max_attempts}",
                    extra={"request_id": request_id, "scanner_id": scanner_id},
                )
                continue
            except Exception as e:
                self._rollback()
                return self._handle_exception(e, operation, request_id, {"scanner_id": scanner_id})

            self._logger.info(
                f"{operation}: {request_id} scanned by {scanner_id} "
                f"(visits {request.visit_count}/{request.max_visits})",
                extra={"request_id": request_id, "scanner_id": scanner_id},
            )
            return ServiceResult.success(
                VisitRecordResponse(
                    request_id=request.id,
                    visit_type=visit_type,
                    scanned_at=visit.scanned_at,
                    visit_count=request.visit_count,
                    max_visits=request.max_visits,
                    remaining_visits=self.tracker.remaining_visits(request),
                    visit_locked=request.visit_locked,
                    outgoing_visit_count=request.outgoing_visit_count,
                    incoming_visit_count=request.incoming_visit_count,
                    incoming_qr_generated=request.incoming_qr_generated,
                    incoming_qr_expires_at=request.incoming_qr_expires_at,
                    verification_status=request.verification_status,
                ),
                message=f"{visit_type.value.capitalize()} visit recorded",
            )

        return self._handle_exception(
            StateConflictError(
                "Gate pass is being updated by another scan. Please scan again.",
                action=operation,
            ),
            operation,
            request_id,
            {"scanner_id": scanner_id, "attempts": max_attempts},
        )


__all__ = ["GatePassService"]
