"""
Gate pass availability windows and visit accounting.

A Leave pass opens a few minutes before ``start_date`` and closes at
``end_date``. A Permission pass is valid for the whole hostel-local day
of ``permission_date``. Stay in Hostel requests have no gate pass.

Every scan appends a GatePassVisit and recomputes the counters from the
visit list, so ``visit_count`` always equals ``min(len(visits), max_visits)``.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from hostel_outing.core.config import OutingSettings, settings
from hostel_outing.core.exceptions import (
    DuplicateScanError,
    NotAvailableError,
    StateConflictError,
    ValidationError,
)
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import (
    ApplicationType,
    LeaveRequestStatus,
    VerificationStatus,
    VisitType,
)
from hostel_outing.models.leave.leave_request import GatePassVisit, LeaveRequest
from hostel_outing.utils.date_utils import TimeWindow, default_time_window

logger = get_logger(__name__)

NOT_APPROVED_REASON = "Gate pass is only available for approved requests"
NO_GATE_PASS_REASON = "Stay in Hostel requests do not have a gate pass"
MAX_VISITS_REASON = "Maximum visits reached for this leave"
EXPIRED_REASON = "Leave period has expired"
INCOMING_NOT_GENERATED_REASON = "Incoming QR code has not been generated yet"
INCOMING_EXPIRED_REASON = "Incoming QR code has expired"

GUARD_VERIFICATION_STATUSES = frozenset({VerificationStatus.VERIFIED, VerificationStatus.EXPIRED})


@dataclass
class Availability:
    available: bool
    reason: Optional[str] = None
    available_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    def to_error(self, snapshot: Optional[Dict[str, Any]] = None) -> NotAvailableError:
        return NotAvailableError(
            self.reason or "Gate pass is not available",
            reason=self.reason,
            available_from=self.available_from.isoformat() if self.available_from else None,
            snapshot=snapshot,
        )

    def raise_if_unavailable(self) -> None:
        if not self.available:
            raise self.to_error()


class GatePassTracker:
    """Availability checks and scan recording for approved requests."""

    def __init__(
        self,
        time_window: Optional[TimeWindow] = None,
        outing_settings: Optional[OutingSettings] = None,
    ):
        self.time_window = time_window or default_time_window()
        self.outing = outing_settings or settings.outing

    @property
    def duplicate_window(self) -> timedelta:
        return timedelta(seconds=self.outing.DUPLICATE_SCAN_WINDOW_SECONDS)

    # -------------------------------------------------------------------------
    # Windows
    # -------------------------------------------------------------------------

    def initialize(self, request: LeaveRequest) -> None:
        """Set the gate pass fields of a new request."""
        request.max_visits = self.outing.MAX_VISITS
        request.visit_count = 0
        request.visit_locked = False
        request.outgoing_visit_count = 0
        request.incoming_visit_count = 0
        request.incoming_qr_generated = False
        request.verification_status = VerificationStatus.NOT_VERIFIED
        request.qr_available_from = self.qr_available_from(request)

    def qr_available_from(self, request: LeaveRequest) -> Optional[datetime]:
        if request.application_type == ApplicationType.LEAVE:
            return request.start_date - timedelta(minutes=self.outing.QR_LEAD_MINUTES)
        if request.application_type == ApplicationType.PERMISSION:
            return self.time_window.start_of_day(request.permission_date)
        return None

    def end_of_period(self, request: LeaveRequest) -> Optional[datetime]:
        if request.application_type == ApplicationType.LEAVE:
            return request.end_date
        if request.application_type == ApplicationType.PERMISSION:
            return self.time_window.end_of_day(request.permission_date)
        return None

    def remaining_visits(self, request: LeaveRequest) -> int:
        return max(request.max_visits - request.visit_count, 0)

    def availability(self, request: LeaveRequest, now: datetime) -> Availability:
        """Whether the outgoing QR may be shown or scanned at ``now``."""
        if request.application_type == ApplicationType.STAY_IN_HOSTEL:
            return Availability(False, NO_GATE_PASS_REASON)

        available_from = request.qr_available_from or self.qr_available_from(request)
        valid_until = self.end_of_period(request)

        if request.status != LeaveRequestStatus.APPROVED:
            return Availability(False, NOT_APPROVED_REASON, available_from, valid_until)

        if request.visit_locked or request.visit_count >= request.max_visits:
            return Availability(False, MAX_VISITS_REASON, available_from, valid_until)

        if now < available_from:
            minutes = math.ceil((available_from - now).total_seconds() / 60)
            return Availability(
                False,
                f"QR code will be available in {minutes} minutes",
                available_from,
                valid_until,
            )

        if now > valid_until:
            return Availability(False, EXPIRED_REASON, available_from, valid_until)

        return Availability(True, None, available_from, valid_until)

    def incoming_availability(self, request: LeaveRequest, now: datetime) -> Availability:
        """Whether the return QR may be shown or scanned at ``now``."""
        expires_at = request.incoming_qr_expires_at

        if request.status != LeaveRequestStatus.APPROVED:
            return Availability(False, NOT_APPROVED_REASON, valid_until=expires_at)
        if not request.incoming_qr_generated:
            return Availability(False, INCOMING_NOT_GENERATED_REASON)
        if expires_at is not None and now > expires_at:
            return Availability(False, INCOMING_EXPIRED_REASON, request.incoming_qr_generated_at, expires_at)
        return Availability(True, None, request.incoming_qr_generated_at, expires_at)

    # -------------------------------------------------------------------------
    # Scans
    # -------------------------------------------------------------------------

    def record_outgoing(
        self,
        request: LeaveRequest,
        scanned_by: str,
        location: Optional[str],
        now: datetime,
    ) -> GatePassVisit:
        """
        Record a student leaving through the gate.

        The first outgoing scan issues the return QR, valid for the
        configured TTL but never beyond the end of the pass period.

        Raises:
            NotAvailableError: If the pass cannot be used at ``now``
            DuplicateScanError: If the same scanner scanned within the window
        """
        self.availability(request, now).raise_if_unavailable()
        self._check_duplicate(request, scanned_by, now, visit_type=None)

        visit = self._append_visit(request, VisitType.OUTGOING, scanned_by, location, now)

        if request.outgoing_visit_count == 1 and not request.incoming_qr_generated:
            ttl_expiry = now + timedelta(hours=self.outing.INCOMING_QR_TTL_HOURS)
            end = self.end_of_period(request)
            request.incoming_qr_generated = True
            request.incoming_qr_generated_at = now
            request.incoming_qr_expires_at = min(ttl_expiry, end) if end else ttl_expiry
            logger.info(
                f"Incoming QR generated for request {request.id}, expires {request.incoming_qr_expires_at.isoformat()}",
                extra={"request_id": request.id},
            )

        return visit

    def record_incoming(
        self,
        request: LeaveRequest,
        scanned_by: str,
        location: Optional[str],
        now: datetime,
    ) -> GatePassVisit:
        """
        Record a student returning through the gate and complete the pass.

        Raises:
            NotAvailableError: If the return QR cannot be used at ``now``
            DuplicateScanError: If the same scanner scanned an incoming visit within the window
        """
        self.incoming_availability(request, now).raise_if_unavailable()
        self._check_duplicate(request, scanned_by, now, visit_type=VisitType.INCOMING)

        visit = self._append_visit(request, VisitType.INCOMING, scanned_by, location, now)
        request.verification_status = VerificationStatus.COMPLETED
        request.completed_at = now
        return visit

    def update_verification_status(
        self,
        request: LeaveRequest,
        verification_status: VerificationStatus,
        now: datetime,
    ) -> None:
        """
        Guard marks an approved pass as verified or expired.

        Raises:
            ValidationError: If the status is not Verified or Expired
            StateConflictError: If the request is not approved
        """
        if verification_status not in GUARD_VERIFICATION_STATUSES:
            raise ValidationError.for_field(
                "verification_status",
                'Verification status must be "Verified" or "Expired"',
            )
        if request.status != LeaveRequestStatus.APPROVED:
            raise StateConflictError(
                "Only approved leaves can be verified",
                current_status=request.status.value,
                action="update verification status",
            )
        request.verification_status = verification_status
        request.verified_at = now

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _check_duplicate(
        self,
        request: LeaveRequest,
        scanned_by: str,
        now: datetime,
        visit_type: Optional[VisitType],
    ) -> None:
        window = self.duplicate_window
        for visit in request.visits:
            if visit.scanned_by != scanned_by:
                continue
            if visit_type is not None and visit.visit_type != visit_type:
                continue
            if abs(now - visit.scanned_at) < window:
                raise DuplicateScanError(
                    scanned_by=scanned_by,
                    window_seconds=self.outing.DUPLICATE_SCAN_WINDOW_SECONDS,
                )

    def _append_visit(
        self,
        request: LeaveRequest,
        visit_type: VisitType,
        scanned_by: str,
        location: Optional[str],
        now: datetime,
    ) -> GatePassVisit:
        visit = GatePassVisit(
            scanned_at=now,
            scanned_by=scanned_by,
            location=location or self.outing.DEFAULT_SCAN_LOCATION,
            visit_type=visit_type,
        )
        request.visits.append(visit)
        self._recount(request)
        return visit

    def _recount(self, request: LeaveRequest) -> None:
        total = len(request.visits)
        request.visit_count = min(total, request.max_visits)
        request.visit_locked = total >= request.max_visits
        request.outgoing_visit_count = len(request.visits_of_type(VisitType.OUTGOING))
        request.incoming_visit_count = len(request.visits_of_type(VisitType.INCOMING))


__all__ = [
    "Availability",
    "GatePassTracker",
    "NOT_APPROVED_REASON",
    "NO_GATE_PASS_REASON",
    "MAX_VISITS_REASON",
    "EXPIRED_REASON",
    "INCOMING_NOT_GENERATED_REASON",
    "INCOMING_EXPIRED_REASON",
]
