from src.sms.domain.services.rate_limit_keys import RateLimitKeyGenerator, window_ttl
from src.sms.domain.value_objects.rate_limit import MessageType, TimeWindow


def test_generate_key_layout():
    keys = RateLimitKeyGenerator()
    assert keys.generate_key("test-workspace-123", MessageType.SMS, TimeWindow.MINUTE) == \
        "sms:rate_limit:test-workspace-123:sms:minute"
    assert keys.generate_key("t1", MessageType.MMS, TimeWindow.DAY) == "sms:rate_limit:t1:mms:day"


def test_generate_keys_in_window_order():
    assert RateLimitKeyGenerator().generate_keys("t1", MessageType.SMS) == [
        "sms:rate_limit:t1:sms:minute",
        "sms:rate_limit:t1:sms:hour",
        "sms:rate_limit:t1:sms:day",
    ]


def test_parse_key_roundtrip_with_colon_in_tenant():
    keys = RateLimitKeyGenerator()
    parsed = keys.parse_key(keys.generate_key("org:team", MessageType.MMS, TimeWindow.HOUR))
    assert parsed is not None
    assert (parsed.tenant_id, parsed.message_type, parsed.window) == ("org:team", MessageType.MMS, TimeWindow.HOUR)


def test_parse_key_rejects_foreign_keys():
    keys = RateLimitKeyGenerator()
    assert keys.parse_key("other:prefix:t1:sms:minute") is None
    assert keys.parse_key("sms:rate_limit:t1:fax:minute") is None
    assert keys.parse_key("sms:rate_limit:t1:sms:week") is None
    assert keys.parse_key("sms:rate_limit:sms:minute") is None


def test_window_ttls():
    assert window_ttl(TimeWindow.MINUTE) == 60
    assert window_ttl(TimeWindow.HOUR) == 3600
    assert window_ttl(TimeWindow.DAY) == 86400


def test_custom_prefix():
    keys = RateLimitKeyGenerator("rl:")
    assert keys.generate_key("t1", MessageType.SMS, TimeWindow.HOUR) == "rl:t1:sms:hour"
    assert keys.tenant_pattern("t1") == "rl:t1:*"
