"""
Notification dispatcher for post-commit, best-effort fan-out.

Notifications are sent after the state change they describe has been
committed. Delivery runs on a bounded worker pool with a timeout, and a
failed or slow recipient never fails the operation that triggered it.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.orm import sessionmaker

from hostel_outing.core.config import settings
from hostel_outing.core.logging import get_logger
from hostel_outing.repositories.notification.notification_repository import NotificationRepository
from hostel_outing.schemas.notification.notification import NotificationPayload
from hostel_outing.services.base.collaborators import NotificationSender

logger = get_logger(__name__)


@dataclass
class DispatchReport:
    """Outcome of one fan-out."""

    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    timed_out: List[str] = field(default_factory=list)

    @property
    def all_delivered(self) -> bool:
        return not self.failed and not self.timed_out


class NotificationDispatcher:
    """
    Fan a payload out to recipients through a NotificationSender.
    """

    def __init__(
        self,
        sender: NotificationSender,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.sender = sender
        self.timeout_seconds = timeout_seconds or settings.notifications.NOTIFICATION_TIMEOUT_SECONDS
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.notifications.NOTIFICATION_MAX_WORKERS,
            thread_name_prefix="outing-notify",
        )

    def dispatch(self, recipient_ids: Iterable[str], payload: NotificationPayload) -> DispatchReport:
        """
        Deliver ``payload`` to each distinct recipient.

        Never raises; failures and timeouts are logged and reported.
        """
        report = DispatchReport()
        recipients = list(dict.fromkeys(r for r in recipient_ids if r))
        if not recipients:
            return report

        futures = {
            self._executor.submit(self.sender.notify, recipient_id, payload): recipient_id
            for recipient_id in recipients
        }
        done, not_done = wait(futures, timeout=self.timeout_seconds)

        for future in done:
            recipient_id = futures[future]
            error = future.exception()
            if error is None:
                report.delivered.append(recipient_id)
            else:
                report.failed.append(recipient_id)
                logger.warning(
                    f"Notification '{payload.title}' to {recipient_id} failed: {error}",
                    extra={"recipient_id": recipient_id, "related_id": payload.related_id},
                )

        for future in not_done:
            recipient_id = futures[future]
            future.cancel()
            report.timed_out.append(recipient_id)
            logger.warning(
                f"Notification '{payload.title}' to {recipient_id} timed out after {self.timeout_seconds}s",
                extra={"recipient_id": recipient_id, "related_id": payload.related_id},
            )

        logger.debug(
            f"Dispatched '{payload.title}': {len(report.delivered)} delivered, "
            f"{len(report.failed)} failed, {len(report.timed_out)} timed out"
        )
        return report

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)


class InAppNotificationSender:
    """
    NotificationSender that stores notifications in the ``notifications`` table.

    Each delivery uses its own session so it is safe to call from the
    dispatcher's worker threads.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def notify(self, user_id: str, payload: NotificationPayload) -> None:
        db = self.session_factory()
        try:
            NotificationRepository(db).create_notification(
                recipient_id=user_id,
                title=payload.title,
                message=payload.message,
                notification_type=payload.notification_type.value,
                related_id=payload.related_id,
                sender_id=payload.sender_id,
                priority=payload.priority,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
