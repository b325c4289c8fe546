"""
Approval state machine for leave requests.

Two tracks share one status column:

- Leave / Permission: PendingOtpVerification -> WardenVerified -> Approved,
  or PendingPrincipalApproval -> Approved for a Permission whose parent
  has not opted in to OTP verification.
- Stay in Hostel: Pending -> WardenRecommended -> PrincipalApproved.

Approved, Rejected, PrincipalApproved and PrincipalRejected are terminal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet

from hostel_outing.core.exceptions import StateConflictError
from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest

Status = LeaveRequestStatus


class Action(str, Enum):
    VERIFY_OTP = "verify_otp"
    PRINCIPAL_APPROVE = "principal_approve"
    PRINCIPAL_REJECT = "principal_reject"
    WARDEN_REJECT = "warden_reject"
    WARDEN_RECOMMEND = "warden_recommend"
    WARDEN_NOT_RECOMMEND = "warden_not_recommend"
    PRINCIPAL_DECIDE_APPROVE = "principal_decide_approve"
    PRINCIPAL_DECIDE_REJECT = "principal_decide_reject"

    @property
    def label(self) -> str:
        return _ACTION_LABELS[self]


_ACTION_LABELS = {
    Action.VERIFY_OTP: "verify the OTP of",
    Action.PRINCIPAL_APPROVE: "approve",
    Action.PRINCIPAL_REJECT: "reject",
    Action.WARDEN_REJECT: "reject",
    Action.WARDEN_RECOMMEND: "recommend",
    Action.WARDEN_NOT_RECOMMEND: "not recommend",
    Action.PRINCIPAL_DECIDE_APPROVE: "approve",
    Action.PRINCIPAL_DECIDE_REJECT: "reject",
}


LEAVE_TRACK: FrozenSet[ApplicationType] = frozenset({ApplicationType.LEAVE, ApplicationType.PERMISSION})
STAY_TRACK: FrozenSet[ApplicationType] = frozenset({ApplicationType.STAY_IN_HOSTEL})
ALL_TRACKS: FrozenSet[ApplicationType] = LEAVE_TRACK | STAY_TRACK


@dataclass(frozen=True)
class Transition:
    sources: FrozenSet[LeaveRequestStatus]
    target: LeaveRequestStatus
    tracks: FrozenSet[ApplicationType]


TRANSITIONS: Dict[Action, Transition] = {
    Action.VERIFY_OTP: Transition(
        frozenset({Status.PENDING_OTP_VERIFICATION}),
        Status.WARDEN_VERIFIED,
        LEAVE_TRACK,
    ),
    Action.PRINCIPAL_APPROVE: Transition(
        frozenset({Status.WARDEN_VERIFIED, Status.PENDING_PRINCIPAL_APPROVAL}),
        Status.APPROVED,
        LEAVE_TRACK,
    ),
    Action.PRINCIPAL_REJECT: Transition(
        frozenset({Status.WARDEN_VERIFIED, Status.PENDING_PRINCIPAL_APPROVAL}),
        Status.REJECTED,
        LEAVE_TRACK,
    ),
    Action.WARDEN_REJECT: Transition(
        frozenset({
            Status.PENDING,
            Status.PENDING_OTP_VERIFICATION,
            Status.WARDEN_VERIFIED,
            Status.PENDING_PRINCIPAL_APPROVAL,
        }),
        Status.REJECTED,
        ALL_TRACKS,
    ),
    Action.WARDEN_RECOMMEND: Transition(
        frozenset({Status.PENDING}),
        Status.WARDEN_RECOMMENDED,
        STAY_TRACK,
    ),
    Action.WARDEN_NOT_RECOMMEND: Transition(
        frozenset({Status.PENDING}),
        Status.REJECTED,
        STAY_TRACK,
    ),
    Action.PRINCIPAL_DECIDE_APPROVE: Transition(
        frozenset({Status.WARDEN_RECOMMENDED}),
        Status.PRINCIPAL_APPROVED,
        STAY_TRACK,
    ),
    Action.PRINCIPAL_DECIDE_REJECT: Transition(
        frozenset({Status.WARDEN_RECOMMENDED}),
        Status.PRINCIPAL_REJECTED,
        STAY_TRACK,
    ),
}

TERMINAL_STATUSES: FrozenSet[LeaveRequestStatus] = frozenset({
    Status.APPROVED,
    Status.REJECTED,
    Status.PRINCIPAL_APPROVED,
    Status.PRINCIPAL_REJECTED,
})

DELETABLE_STATUSES: FrozenSet[LeaveRequestStatus] = frozenset(LeaveRequestStatus) - TERMINAL_STATUSES


class ApprovalStateMachine:
    """Decides initial status and guards every status change."""

    def initial_status(
        self,
        application_type: ApplicationType,
        parent_permission_for_outing: bool,
    ) -> LeaveRequestStatus:
        if application_type == ApplicationType.STAY_IN_HOSTEL:
            return Status.PENDING
        if application_type == ApplicationType.PERMISSION and not parent_permission_for_outing:
            return Status.PENDING_PRINCIPAL_APPROVAL
        return Status.PENDING_OTP_VERIFICATION

    def is_terminal(self, status: LeaveRequestStatus) -> bool:
        return status in TERMINAL_STATUSES

    def can_delete(self, status: LeaveRequestStatus) -> bool:
        return status in DELETABLE_STATUSES

    def target_for(self, request: LeaveRequest, action: Action) -> LeaveRequestStatus:
        """
        Status ``request`` would move to under ``action``.

        Raises:
            StateConflictError: If the action is not valid for the request's
                track or current status
        """
        transition = TRANSITIONS[action]
        current = request.status

        if request.application_type not in transition.tracks:
            if request.application_type == ApplicationType.STAY_IN_HOSTEL:
                message = "Stay in Hostel requests follow the warden recommendation workflow"
            else:
                message = "This request is not a Stay in Hostel request"
            raise StateConflictError(message, current_status=current.value, action=action.label)

        if current in TERMINAL_STATUSES:
            raise StateConflictError(
                f"Request has already been processed. Current status: {current.value}",
                current_status=current.value,
                action=action.label,
            )

        if current not in transition.sources:
            raise StateConflictError(
                f"Cannot {action.label} a request in status '{current.value}'",
                current_status=current.value,
                action=action.label,
            )

        return transition.target

    def apply(self, request: LeaveRequest, action: Action) -> LeaveRequestStatus:
        """Move ``request`` along ``action`` and return the previous status."""
        previous = request.status
        request.status = self.target_for(request, action)
        return previous


__all__ = [
    "Action",
    "Transition",
    "TRANSITIONS",
    "TERMINAL_STATUSES",
    "DELETABLE_STATUSES",
    "ApprovalStateMachine",
]
