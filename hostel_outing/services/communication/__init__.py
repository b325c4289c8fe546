from hostel_outing.services.communication.sms_service import BulkSmsService

__all__ = ["BulkSmsService"]
