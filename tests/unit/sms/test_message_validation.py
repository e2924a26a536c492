import pytest

from src.sms.domain.exceptions import MessageValidationError
from src.sms.domain.services.message_validation import is_e164, validate_outbound
from src.sms.domain.value_objects.message_status import MessageChannel

VALID = dict(tenant_id="t1", from_number="+15550001111", to_number="+15550002222", content="hello")


def test_e164():
    assert is_e164("+15550001111")
    assert not is_e164("15550001111")
    assert not is_e164("+0123")
    assert not is_e164("")
    assert not is_e164("+1555000111122223")


def test_valid_sms():
    assert validate_outbound(**VALID) is MessageChannel.SMS


def test_media_makes_mms_and_allows_empty_body():
    fields = {**VALID, "content": ""}
    assert validate_outbound(**fields, media_urls=["https://cdn.example.com/a.png"]) is MessageChannel.MMS


@pytest.mark.parametrize("field", ["tenant_id", "from_number", "to_number", "content"])
def test_required_fields(field):
    with pytest.raises(MessageValidationError) as exc:
        validate_outbound(**{**VALID, field: "  "})
    assert exc.value.details["field"] == field


def test_bad_number():
    with pytest.raises(MessageValidationError) as exc:
        validate_outbound(**{**VALID, "to_number": "555-0100"})
    assert exc.value.details["field"] == "to_number"


def test_sms_too_long():
    with pytest.raises(MessageValidationError):
        validate_outbound(**{**VALID, "content": "x" * 1601})
    assert validate_outbound(**{**VALID, "content": "x" * 1600}) is MessageChannel.SMS
