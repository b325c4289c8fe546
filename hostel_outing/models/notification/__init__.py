from hostel_outing.models.notification.notification import Notification

__all__ = ["Notification"]
