"""
Parent OTP delivery over the BulkSMS HTTP gateway.

Each OTP goes out twice: once with the Telugu DLT template (unicode
endpoint) and once with the English template. Delivery counts as
successful when at least one of them is accepted.
"""

import re
from typing import Dict, List, Optional

import requests

from hostel_outing.core.config import NotificationSettings, settings
from hostel_outing.core.exceptions import SMSServiceError
from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import Gender
from hostel_outing.schemas.directory.profiles import StudentProfile
from hostel_outing.schemas.notification.notification import SmsDeliveryResult

logger = get_logger(__name__)

TELUGU_OTP_TEMPLATE = (
    "ప్రియమైన తల్లిదండ్రులారా, మీ {relation} {name} హాస్టల్ నుండి సెలవు కోరుతున్నారు. "
    "ఈ OTP {otp} ని షేర్ చేయండి. మీరు అంగీకరిస్తేనే -Pydah Hostel"
)
ENGLISH_OTP_TEMPLATE = (
    "Dear Parents, your child {name} is seeking leave from hostel. "
    "share this OTP {otp}. Only if you would like to approve-Pydah Hostel"
)

TELUGU_SON = "కొడుకు"
TELUGU_DAUGHTER = "కూతురు"

MESSAGE_ID_PATTERN = re.compile(r'MessageId-(\d+)')


def telugu_relation(gender: Optional[Gender]) -> str:
    return TELUGU_DAUGHTER if gender == Gender.FEMALE else TELUGU_SON


def extract_message_id(body: str) -> Optional[str]:
    """
    Pull the gateway message id out of a response body.

    The gateway answers either ``MessageId-<n>``, a bare number, or an
    HTML page that embeds ``MessageId-<n>``.
    """
    if not body:
        return None
    match = MESSAGE_ID_PATTERN.search(body)
    if match:
        return match.group(1)
    stripped = body.strip()
    if stripped.isdigit():
        return stripped
    return None


class BulkSmsService:
    """
    OtpSmsSender backed by the BulkSMS gateway.
    """

    def __init__(
        self,
        http: Optional[requests.Session] = None,
        api_key: Optional[str] = None,
        sender_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        notification_settings: Optional[NotificationSettings] = None,
    ):
        config = notification_settings or settings.notifications
        self.http = http or requests.Session()
        self.api_key = api_key or config.SMS_API_KEY
        self.sender_id = sender_id or config.SMS_SENDER_ID
        self.timeout_seconds = timeout_seconds or config.SMS_TIMEOUT_SECONDS
        self.english_url = config.SMS_API_URL
        self.unicode_url = config.SMS_UNICODE_API_URL
        self.english_template_id = config.SMS_ENGLISH_TEMPLATE_ID
        self.telugu_template_id = config.SMS_TELUGU_TEMPLATE_ID

    def send_otp(self, phone: str, code: str, student: StudentProfile) -> SmsDeliveryResult:
        """
        Send the OTP to a parent's phone in Telugu and English.

        Raises:
            SMSServiceError: If the gateway is not configured
        """
        if not self.api_key:
            raise SMSServiceError("SMS service configuration missing", phone_number=phone)

        name = student.name or "Student"
        messages = [
            (
                "Telugu",
                self.unicode_url,
                {
                    "message": TELUGU_OTP_TEMPLATE.format(
                        relation=telugu_relation(student.gender), name=name, otp=code
                    ),
                    "templateid": self.telugu_template_id,
                    "coding": "3",
                },
            ),
            (
                "English",
                self.english_url,
                {
                    "message": ENGLISH_OTP_TEMPLATE.format(name=name, otp=code),
                    "templateid": self.english_template_id,
                },
            ),
        ]

        message_ids: List[str] = []
        languages: List[str] = []
        errors: List[str] = []
        for language, url, extra_params in messages:
            params: Dict[str, str] = {
                "apikey": self.api_key,
                "sender": self.sender_id,
                "number": phone,
                **extra_params,
            }
            try:
                message_id = self._post(url, params)
            except requests.RequestException as exc:
                errors.append(f"{language}: {exc}")
                logger.warning(f"{language} OTP SMS request failed: {exc}")
                continue

            if message_id:
                message_ids.append(message_id)
                languages.append(language)
                logger.info(f"{language} OTP SMS accepted", extra={"message_id": message_id})
            else:
                errors.append(f"{language}: gateway returned no message id")
                logger.warning(f"{language} OTP SMS rejected by gateway")

        return SmsDeliveryResult(
            success=bool(message_ids),
            message_ids=message_ids,
            languages=languages,
            error="; ".join(errors) or None,
        )

    def _post(self, url: str, params: Dict[str, str]) -> Optional[str]:
        response = self.http.post(
            url,
            params=params,
            headers={"Accept": "text/plain"},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return extract_message_id(response.text)
