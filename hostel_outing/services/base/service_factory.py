"""
Service factory for dependency injection and service instantiation.
"""

from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from hostel_outing.core.config import Settings, settings as default_settings
from hostel_outing.core.logging import get_logger
from hostel_outing.db.session import create_session_factory
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.services.background.leave_expiry_service import LeaveExpiryService
from hostel_outing.services.base.base_service import Clock
from hostel_outing.services.base.collaborators import (
    NotificationSender,
    OtpSmsSender,
    StudentDirectory,
)
from hostel_outing.services.base.notification_dispatcher import (
    InAppNotificationSender,
    NotificationDispatcher,
)
from hostel_outing.services.communication.sms_service import BulkSmsService
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.services.leave.gate_pass_service import GatePassService
from hostel_outing.services.leave.gate_pass_tracker import GatePassTracker
from hostel_outing.services.leave.leave_approval_service import LeaveApprovalService
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.leave_otp_service import LeaveOtpService
from hostel_outing.services.leave.leave_request_service import LeaveRequestService
from hostel_outing.services.leave.otp_gateway import OtpGateway
from hostel_outing.services.leave.request_validator import RequestValidator
from hostel_outing.services.leave.state_machine import ApprovalStateMachine
from hostel_outing.utils.date_utils import TimeWindow


class OutingServiceFactory:
    """
    Factory for the outing workflow services.

    Provides:
    - One shared set of collaborators per session
    - Service caching/reuse
    - Configuration from Settings
    """

    def __init__(
        self,
        db_session: Session,
        directory: StudentDirectory,
        notification_sender: Optional[NotificationSender] = None,
        sms_sender: Optional[OtpSmsSender] = None,
        session_factory: Optional[sessionmaker] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize service factory.

        Args:
            db_session: SQLAlchemy database session used by the services
            directory: Student/staff directory
            notification_sender: Defaults to in-app notifications stored
                through ``session_factory``
            sms_sender: Defaults to the BulkSMS gateway
            session_factory: Session factory for in-app notifications
            clock: Callable returning the current time
            settings: Application settings
        """
        self.db = db_session
        self.directory = directory
        self.clock = clock
        self.settings = settings or default_settings
        self._logger = get_logger(self.__class__.__name__)
        self._cache: Dict[str, Any] = {}

        if notification_sender is None:
            if session_factory is None:
                session_factory = create_session_factory(db_session.get_bind())
            notification_sender = InAppNotificationSender(session_factory)
        self.notification_sender = notification_sender
        self.sms_sender = sms_sender

    # -------------------------------------------------------------------------
    # Shared collaborators
    # -------------------------------------------------------------------------

    def _cached(self, key: str, build: Callable[[], Any]) -> Any:
        if key not in self._cache:
            self._cache[key] = build()
            self._logger.debug(f"Created {type(self._cache[key]).__name__} instance")
        return self._cache[key]

    def repository(self) -> LeaveRequestRepository:
        return self._cached("repository", lambda: LeaveRequestRepository(self.db))

    def time_window(self) -> TimeWindow:
        return self._cached("time_window", lambda: TimeWindow(self.settings.outing.TIMEZONE))

    def scope_resolver(self) -> CourseScopeResolver:
        return self._cached("scope_resolver", lambda: CourseScopeResolver(self.directory))

    def state_machine(self) -> ApprovalStateMachine:
        return self._cached("state_machine", ApprovalStateMachine)

    def dispatcher(self) -> NotificationDispatcher:
        return self._cached(
            "dispatcher",
            lambda: NotificationDispatcher(
                self.notification_sender,
                max_workers=self.settings.notifications.NOTIFICATION_MAX_WORKERS,
                timeout_seconds=self.settings.notifications.NOTIFICATION_TIMEOUT_SECONDS,
            ),
        )

    def notifier(self) -> LeaveNotifier:
        return self._cached(
            "notifier",
            lambda: LeaveNotifier(self.dispatcher(), self.scope_resolver(), self.time_window()),
        )

    def otp_gateway(self) -> OtpGateway:
        def build() -> OtpGateway:
            sms_sender = self.sms_sender
            if sms_sender is None and self.settings.notifications.SMS_ENABLED:
                sms_sender = BulkSmsService(notification_settings=self.settings.notifications)
            return OtpGateway(sms_sender, self.settings.otp, self.settings.notifications)

        return self._cached("otp_gateway", build)

    def tracker(self) -> GatePassTracker:
        return self._cached("tracker", lambda: GatePassTracker(self.time_window(), self.settings.outing))

    def validator(self) -> RequestValidator:
        return self._cached(
            "validator",
            lambda: RequestValidator(self.repository(), self.time_window(), self.settings.outing),
        )

    def _workflow_kwargs(self) -> Dict[str, Any]:
        return {
            "scope_resolver": self.scope_resolver(),
            "state_machine": self.state_machine(),
            "time_window": self.time_window(),
            "clock": self.clock,
        }

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def leave_requests(self) -> LeaveRequestService:
        return self._cached(
            "leave_requests",
            lambda: LeaveRequestService(
                self.repository(),
                self.db,
                self.directory,
                self.notifier(),
                self.validator(),
                self.otp_gateway(),
                self.tracker(),
                **self._workflow_kwargs(),
            ),
        )

    def otp(self) -> LeaveOtpService:
        return self._cached(
            "otp",
            lambda: LeaveOtpService(
                self.repository(),
                self.db,
                self.directory,
                self.notifier(),
                self.otp_gateway(),
                **self._workflow_kwargs(),
            ),
        )

    def approvals(self) -> LeaveApprovalService:
        return self._cached(
            "approvals",
            lambda: LeaveApprovalService(
                self.repository(),
                self.db,
                self.directory,
                self.notifier(),
                **self._workflow_kwargs(),
            ),
        )

    def gate_pass(self) -> GatePassService:
        return self._cached(
            "gate_pass",
            lambda: GatePassService(
                self.repository(),
                self.db,
                self.directory,
                self.notifier(),
                self.tracker(),
                outing_settings=self.settings.outing,
                **self._workflow_kwargs(),
            ),
        )

    def expiry(self) -> LeaveExpiryService:
        return self._cached(
            "expiry",
            lambda: LeaveExpiryService(
                self.repository(),
                self.db,
                self.notifier(),
                time_window=self.time_window(),
                clock=self.clock,
            ),
        )

    def close(self) -> None:
        """Stop the notification worker pool."""
        dispatcher = self._cache.pop("dispatcher", None)
        if dispatcher is not None:
            dispatcher.shutdown()


__all__ = ["OutingServiceFactory"]
