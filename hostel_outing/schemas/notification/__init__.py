from hostel_outing.schemas.notification.notification import NotificationPayload, SmsDeliveryResult

__all__ = ["NotificationPayload", "SmsDeliveryResult"]
