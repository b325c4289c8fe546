import pytest
import requests

from hostel_outing.core.config import NotificationSettings
from hostel_outing.core.exceptions import SMSServiceError
from hostel_outing.models.base.enums import Gender
from hostel_outing.schemas.directory.profiles import StudentProfile
from hostel_outing.services.base.service_factory import OutingServiceFactory
from hostel_outing.services.communication.sms_service import (
    TELUGU_DAUGHTER,
    TELUGU_SON,
    BulkSmsService,
    extract_message_id,
)


class FakeResponse:
    def __init__(self, text="", status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeHttp:
    def __init__(self, responses):
        self.responses = list(responses)
        self.posts = []

    def post(self, url, params=None, headers=None, timeout=None):
        self.posts.append({"url": url, "params": params, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def son():
    return StudentProfile(id="s1", name="Ravi Kumar", gender=Gender.MALE, parent_phone="9876543210")


def service(http, **kwargs):
    kwargs.setdefault("api_key", "test-key")
    kwargs.setdefault("sender_id", "PYDAHK")
    kwargs.setdefault("timeout_seconds", 3)
    return BulkSmsService(http=http, **kwargs)


@pytest.mark.parametrize("body, expected", [
    ("MessageId-12345", "12345"),
    ("<html><body>Sent MessageId-987 ok</body></html>", "987"),
    (" 4242\n", "4242"),
    ("Invalid API key", None),
    ("", None),
])
def test_extract_message_id(body, expected):
    assert extract_message_id(body) == expected


class TestSendOtp:
    def test_sends_telugu_then_english(self, son):
        http = FakeHttp([FakeResponse("MessageId-1"), FakeResponse("MessageId-2")])

        result = service(http).send_otp("9876543210", "4821", son)

        assert result.success
        assert result.message_ids == ["1", "2"]
        assert result.languages == ["Telugu", "English"]
        assert result.error is None

        telugu, english = http.posts
        assert telugu["url"] == service(http).unicode_url
        assert telugu["params"]["coding"] == "3"
        assert TELUGU_SON in telugu["params"]["message"]
        assert "4821" in telugu["params"]["message"]
        assert english["url"] == service(http).english_url
        assert "coding" not in english["params"]
        assert english["params"]["message"].startswith("Dear Parents, your child Ravi Kumar")
        assert english["params"]["number"] == "9876543210"
        assert english["params"]["sender"] == "PYDAHK"
        assert english["timeout"] == 3

    def test_daughter_wording(self):
        daughter = StudentProfile(id="s2", name="Lakshmi", gender=Gender.FEMALE)
        http = FakeHttp([FakeResponse("MessageId-1"), FakeResponse("MessageId-2")])

        service(http).send_otp("9876500000", "1111", daughter)

        assert TELUGU_DAUGHTER in http.posts[0]["params"]["message"]

    def test_one_language_is_enough(self, son):
        http = FakeHttp([requests.ConnectionError("unreachable"), FakeResponse("MessageId-7")])

        result = service(http).send_otp("9876543210", "4821", son)

        assert result.success
        assert result.languages == ["English"]
        assert result.error.startswith("Telugu: ")

    def test_both_rejected(self, son):
        http = FakeHttp([FakeResponse("", status_code=500), FakeResponse("Invalid template")])

        result = service(http).send_otp("9876543210", "4821", son)

        assert not result.success
        assert result.message_ids == []
        assert "English: gateway returned no message id" in result.error

    def test_missing_api_key(self, son, monkeypatch):
        sender = service(FakeHttp([]))
        monkeypatch.setattr(sender, "api_key", None)

        with pytest.raises(SMSServiceError) as exc_info:
            sender.send_otp("9876543210", "4821", son)
        assert exc_info.value.message == "SMS service configuration missing"


class TestConfiguration:
    def test_reads_injected_settings(self):
        config = NotificationSettings(SMS_API_KEY="injected-key", SMS_SENDER_ID="HSTLOT", SMS_TIMEOUT_SECONDS=2.5)

        sender = BulkSmsService(http=FakeHttp([]), notification_settings=config)

        assert sender.api_key == "injected-key"
        assert sender.sender_id == "HSTLOT"
        assert sender.timeout_seconds == 2.5

    def test_factory_builds_sender_from_its_settings(self, db, directory, notifications, app_settings):
        configured = app_settings.model_copy(update={
            "notifications": NotificationSettings(SMS_ENABLED=True, SMS_API_KEY="factory-key", SMS_TIMEOUT_SECONDS=4.0),
        })
        factory = OutingServiceFactory(db, directory, notification_sender=notifications, settings=configured)
        try:
            sender = factory.otp_gateway().sms_sender
        finally:
            factory.close()

        assert isinstance(sender, BulkSmsService)
        assert sender.api_key == "factory-key"
        assert sender.timeout_seconds == 4.0
