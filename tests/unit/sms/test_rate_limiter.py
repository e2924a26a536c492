from datetime import timedelta

import pytest

from src.shared.exceptions import StoreUnavailableError
from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.domain.protocols.counter_store import CounterStore
from src.sms.domain.value_objects.rate_limit import MessageType, TimeWindow
from tests.conftest import FIXED_NOW, TENANT

MINUTE_KEY = f"sms:rate_limit:{TENANT}:sms:minute"
HOUR_KEY = f"sms:rate_limit:{TENANT}:sms:hour"
DAY_KEY = f"sms:rate_limit:{TENANT}:sms:day"


class BrokenStore(CounterStore):
    async def get(self, key):
        raise StoreUnavailableError("down")

    async def increment_and_expire(self, entries):
        raise StoreUnavailableError("down")

    async def delete(self, *keys):
        raise StoreUnavailableError("down")

    async def keys(self, pattern):
        raise StoreUnavailableError("down")


class RefusingStore(BrokenStore):
    async def get(self, key):
        raise ConnectionError("counter store refused connection")


class CorruptCounterStore(BrokenStore):
    async def get(self, key):
        return 0

    async def increment_and_expire(self, entries):
        raise ValueError("invalid literal for int() with base 10: b'x'")


@pytest.fixture
def limiter(counter_store, calculator) -> SmsRateLimiter:
    return SmsRateLimiter(counter_store, calculator)


async def test_admission_increments_every_window(limiter, counter_store):
    result = await limiter.check_and_increment(TENANT, MessageType.SMS)

    assert result.allowed is True
    # free SMS: the day window is the most restrictive per minute
    assert result.limiting_window is TimeWindow.DAY
    assert (result.current, result.limit, result.remaining) == (1, 100, 99)
    assert [await counter_store.get(k) for k in (MINUTE_KEY, HOUR_KEY, DAY_KEY)] == [1, 1, 1]


async def test_sixth_send_in_a_minute_is_denied(limiter, counter_store):
    for _ in range(5):
        assert (await limiter.check_and_increment(TENANT)).allowed

    denied = await limiter.check_and_increment(TENANT)

    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.limiting_window is TimeWindow.MINUTE
    assert (denied.current, denied.limit) == (5, 5)
    assert denied.reset_time == FIXED_NOW.replace(second=0) + timedelta(minutes=1)
    assert [await counter_store.get(k) for k in (MINUTE_KEY, HOUR_KEY, DAY_KEY)] == [5, 5, 5]


async def test_minute_window_expires(limiter, clock):
    for _ in range(5):
        await limiter.check_and_increment(TENANT)
    clock.advance(61)
    assert (await limiter.check_and_increment(TENANT)).allowed


async def test_hour_window_denies_after_minute_resets(limiter, counter_store):
    await counter_store.increment_and_expire([(HOUR_KEY, 3600)] * 25)

    denied = await limiter.check_and_increment(TENANT)

    assert denied.allowed is False
    assert denied.limiting_window is TimeWindow.HOUR
    assert await counter_store.get(MINUTE_KEY) == 0


async def test_types_are_counted_separately(limiter, counter_store):
    for _ in range(2):
        await limiter.check_and_increment(TENANT, MessageType.MMS)
    assert not (await limiter.check_and_increment(TENANT, MessageType.MMS)).allowed
    assert (await limiter.check_and_increment(TENANT, MessageType.SMS)).allowed


async def test_check_only_does_not_consume(limiter, counter_store):
    result = await limiter.check_only(TENANT)
    assert result.allowed
    assert await counter_store.get(MINUTE_KEY) == 0


async def test_fail_open_when_store_is_down(calculator):
    limiter = SmsRateLimiter(BrokenStore(), calculator, fail_open_reset_seconds=60)

    result = await limiter.check_and_increment(TENANT)

    assert result.allowed is True
    assert result.remaining == 0
    assert result.reset_time == FIXED_NOW + timedelta(seconds=60)
    assert (await limiter.check_only(TENANT)).allowed


async def test_fail_open_on_unexpected_store_errors(calculator):
    limiter = SmsRateLimiter(RefusingStore(), calculator)

    result = await limiter.check_and_increment(TENANT)

    assert result.allowed is True
    assert result.remaining == 0
    assert (await limiter.check_only(TENANT)).allowed
    usage = await limiter.get_current_usage(TENANT)
    assert all(w.current == 0 for w in usage.windows)

    corrupt = await SmsRateLimiter(CorruptCounterStore(), calculator).check_and_increment(TENANT)
    assert corrupt.allowed is True
    assert corrupt.remaining == 0


async def test_usage_reports_each_window(limiter):
    for _ in range(3):
        await limiter.check_and_increment(TENANT)

    usage = await limiter.get_current_usage(TENANT)

    minute = usage.for_window(TimeWindow.MINUTE)
    assert (minute.current, minute.limit, minute.remaining) == (3, 5, 2)
    assert usage.for_window(TimeWindow.DAY).remaining == 97


async def test_usage_is_zero_when_store_is_down(calculator):
    usage = await SmsRateLimiter(BrokenStore(), calculator).get_current_usage(TENANT)
    assert all(w.current == 0 for w in usage.windows)


async def test_reset_single_window(limiter, counter_store):
    await limiter.check_and_increment(TENANT)

    removed = await limiter.reset_limits(TENANT, MessageType.SMS, TimeWindow.MINUTE)

    assert removed == 1
    assert await counter_store.get(MINUTE_KEY) == 0
    assert await counter_store.get(HOUR_KEY) == 1


async def test_reset_whole_tenant_keeps_other_tenants(limiter, counter_store):
    await limiter.check_and_increment(TENANT, MessageType.SMS)
    await limiter.check_and_increment(TENANT, MessageType.MMS)
    await limiter.check_and_increment(f"{TENANT}:child", MessageType.SMS)

    removed = await limiter.reset_limits(TENANT)

    assert removed == 6
    assert await counter_store.get(f"sms:rate_limit:{TENANT}:child:sms:minute") == 1


async def test_reset_propagates_store_errors(calculator):
    with pytest.raises(StoreUnavailableError):
        await SmsRateLimiter(BrokenStore(), calculator).reset_limits(TENANT, MessageType.SMS)
