"""
Leave approval service: warden and principal decisions.

Every decision loads the current row under lock, checks the actor's
course scope and the request's current status, applies the transition
and commits with the version check. Notifications go out only after the
commit succeeds.
"""

from datetime import datetime
from typing import Any, Callable, Optional, Tuple

from hostel_outing.core.exceptions import ValidationError
from hostel_outing.models.base.enums import PrincipalDecision, WardenRecommendation
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.leave.leave_response import LeaveRequestResponse
from hostel_outing.services.base.service_result import ServiceResult
from hostel_outing.services.leave.base_leave_service import LeaveWorkflowService
from hostel_outing.services.leave.state_machine import Action

Authorize = Callable[[Optional[StaffProfile], StudentProfile], None]
Mutate = Callable[[LeaveRequest, StaffProfile, datetime], None]

WARDEN_PREFIX = "Warden: "
PRINCIPAL_PREFIX = "Principal: "

_DECISION_ALIASES = {
    "approved": PrincipalDecision.APPROVED,
    "approve": PrincipalDecision.APPROVED,
    "rejected": PrincipalDecision.REJECTED,
    "reject": PrincipalDecision.REJECTED,
}

_RECOMMENDATION_ALIASES = {
    "recommended": WardenRecommendation.RECOMMENDED,
    "not recommended": WardenRecommendation.NOT_RECOMMENDED,
    "notrecommended": WardenRecommendation.NOT_RECOMMENDED,
}


def parse_principal_decision(value: Any) -> PrincipalDecision:
    if isinstance(value, PrincipalDecision):
        return value
    decision = _DECISION_ALIASES.get(str(value or "").strip().lower())
    if decision is None:
        raise ValidationError.for_field("decision", 'Decision must be "Approved" or "Rejected"')
    return decision


def parse_warden_recommendation(value: Any) -> WardenRecommendation:
    if isinstance(value, WardenRecommendation):
        return value
    recommendation = _RECOMMENDATION_ALIASES.get(str(value or "").strip().lower())
    if recommendation is None:
        raise ValidationError.for_field(
            "recommendation",
            'Recommendation must be "Recommended" or "Not Recommended"',
        )
    return recommendation


def _clean(text: Optional[str]) -> Optional[str]:
    text = (text or "").strip()
    return text or None


class LeaveApprovalService(LeaveWorkflowService):
    """Warden and principal decisions on leave requests."""

    # -------------------------------------------------------------------------
    # Leave / Permission track
    # -------------------------------------------------------------------------

    def warden_reject(
        self,
        request_id: str,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        """Warden rejects a request that has not reached a decision yet."""
        reason = _clean(reason) or "No reason provided"

        def mutate(request: LeaveRequest, staff: StaffProfile, now: datetime) -> None:
            request.rejection_reason = f"{WARDEN_PREFIX}{reason}"
            request.rejected_by = staff.id
            request.rejected_at = now

        result, request, _, staff = self._decide(
            "warden reject leave request",
            request_id,
            actor_id,
            Action.WARDEN_REJECT,
            self.scope_resolver.ensure_warden_scope,
            mutate,
        )
        if result.is_success:
            self.notifier.decision(request, staff, approved=False)
        return result

    def principal_approve(
        self,
        request_id: str,
        actor_id: str,
        comment: Optional[str] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        """Principal approves a warden-verified (or parent-exempt) request."""
        comment = _clean(comment)

        def mutate(request: LeaveRequest, staff: StaffProfile, now: datetime) -> None:
            request.principal_decision = PrincipalDecision.APPROVED
            request.principal_comment = comment
            request.decided_by = staff.id
            request.decided_at = now

        result, request, _, staff = self._decide(
            "principal approve leave request",
            request_id,
            actor_id,
            Action.PRINCIPAL_APPROVE,
            self.scope_resolver.ensure_principal_scope,
            mutate,
        )
        if result.is_success:
            self.notifier.decision(request, staff, approved=True)
        return result

    def principal_reject(
        self,
        request_id: str,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        reason = _clean(reason) or "No reason provided"

        def mutate(request: LeaveRequest, staff: StaffProfile, now: datetime) -> None:
            request.principal_decision = PrincipalDecision.REJECTED
            request.principal_comment = reason
            request.decided_by = staff.id
            request.decided_at = now
            request.rejection_reason = f"{PRINCIPAL_PREFIX}{reason}"
            request.rejected_by = staff.id
            request.rejected_at = now

        result, request, _, staff = self._decide(
            "principal reject leave request",
            request_id,
            actor_id,
            Action.PRINCIPAL_REJECT,
            self.scope_resolver.ensure_principal_scope,
            mutate,
        )
        if result.is_success:
            self.notifier.decision(request, staff, approved=False)
        return result

    # -------------------------------------------------------------------------
    # Stay in Hostel track
    # -------------------------------------------------------------------------

    def warden_recommend(
        self,
        request_id: str,
        actor_id: str,
        recommendation: Any,
        comment: Optional[str] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        """
        Warden reviews a Stay in Hostel request.

        "Recommended" forwards it to the principal; "Not Recommended"
        rejects it outright.
        """
        operation = "warden recommend stay request"
        try:
            recommendation = parse_warden_recommendation(recommendation)
        except ValidationError as e:
            return self._handle_exception(e, operation, request_id)

        comment = _clean(comment)
        recommended = recommendation == WardenRecommendation.RECOMMENDED

        def mutate(request: LeaveRequest, staff: StaffProfile, now: datetime) -> None:
            request.warden_recommendation = recommendation
            request.warden_comment = comment
            request.recommended_by = staff.id
            request.recommended_at = now
            if not recommended:
                request.rejection_reason = f"{WARDEN_PREFIX}{comment or 'Not recommended'}"
                request.rejected_by = staff.id
                request.rejected_at = now

        result, request, student, staff = self._decide(
            operation,
            request_id,
            actor_id,
            Action.WARDEN_RECOMMEND if recommended else Action.WARDEN_NOT_RECOMMEND,
            self.scope_resolver.ensure_warden_scope,
            mutate,
        )
        if result.is_success:
            if recommended:
                self.notifier.warden_recommended(request, student, staff)
            else:
                self.notifier.warden_not_recommended(request, staff)
        return result

    def principal_decide(
        self,
        request_id: str,
        actor_id: str,
        decision: Any,
        comment: Optional[str] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        """Principal's final decision on a warden-recommended Stay in Hostel request."""
        operation = "principal decide stay request"
        try:
            decision = parse_principal_decision(decision)
        except ValidationError as e:
            return self._handle_exception(e, operation, request_id)

        comment = _clean(comment)
        approved = decision == PrincipalDecision.APPROVED

        def mutate(request: LeaveRequest, staff: StaffProfile, now: datetime) -> None:
            request.principal_decision = decision
            request.principal_comment = comment
            request.decided_by = staff.id
            request.decided_at = now

        result, request, _, staff = self._decide(
            operation,
            request_id,
            actor_id,
            Action.PRINCIPAL_DECIDE_APPROVE if approved else Action.PRINCIPAL_DECIDE_REJECT,
            self.scope_resolver.ensure_principal_scope,
            mutate,
        )
        if result.is_success:
            self.notifier.stay_decision(request, staff)
        return result

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _decide(
        self,
        operation: str,
        request_id: str,
        actor_id: str,
        action: Action,
        authorize: Authorize,
        mutate: Mutate,
    ) -> Tuple[ServiceResult[LeaveRequestResponse], Optional[LeaveRequest], Optional[StudentProfile], Optional[StaffProfile]]:
        try:
            now = self._now()
            staff = self._get_staff(actor_id)
            request = self.repository.get_for_update(request_id)
            student = self._get_student(request.student_id)
            authorize(staff, student)
            previous = self.state_machine.apply(request, action)
            mutate(request, staff, now)
            self._commit()
        except Exception as e:
            self._rollback()
            return (
                self._handle_exception(e, operation, request_id, {"actor_id": actor_id, "action": action.value}),
                None,
                None,
                None,
            )

        self._logger.info(
            f"{operation}: {request_id} {previous.value} -> {request.status.value} by {actor_id}",
            extra={"request_id": request_id, "actor_id": actor_id},
        )
        result = ServiceResult.success(
            self._to_response(request),
            message=f"Request {request.status.value.lower()}",
            metadata={"previous_status": previous.value, "status": request.status.value},
        )
        return result, request, student, staff


__all__ = [
    "LeaveApprovalService",
    "parse_principal_decision",
    "parse_warden_recommendation",
]
