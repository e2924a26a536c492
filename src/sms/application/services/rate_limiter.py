"""
Multi-window, multi-tenant rate limiter for outbound messages.

Counters live in a shared counter store under one key per
(tenant, message type, window). A send is admitted only when none of the
minute, hour and day windows is exhausted; admission increments all three.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.protocols.counter_store import CounterStore
from src.sms.domain.services.rate_limit_calculator import RateLimitCalculator
from src.sms.domain.services.rate_limit_keys import RateLimitKeyGenerator, window_ttl
from src.sms.domain.value_objects.rate_limit import (
    WINDOW_ORDER,
    MessageType,
    RateLimitConfig,
    RateLimitResult,
    RateLimitUsage,
    TimeWindow,
    WindowUsage,
)

logger = get_logger(__name__)


class SmsRateLimiter:
    """
    Application service enforcing tier quotas.

    When any counter store call fails the limiter fails open: the send is
    admitted with ``remaining=0`` and a warning is logged.

    Example:
        result = await limiter.check_and_increment("tenant-1", MessageType.SMS)
        if not result.allowed:
            raise RateLimitExceededError(result, ...)
    """

    def __init__(
        self,
        counter_store: CounterStore,
        calculator: RateLimitCalculator,
        key_generator: Optional[RateLimitKeyGenerator] = None,
        fail_open_reset_seconds: int = 60,
    ) -> None:
        self._store = counter_store
        self._calculator = calculator
        self._keys = key_generator or RateLimitKeyGenerator()
        self._fail_open_reset_seconds = fail_open_reset_seconds

    @property
    def calculator(self) -> RateLimitCalculator:
        return self._calculator

    async def check_and_increment(
        self,
        tenant_id: str,
        message_type: MessageType = MessageType.SMS,
    ) -> RateLimitResult:
        """
        Admit or deny one send, consuming quota on admission.

        Windows are read in order (minute, hour, day); the first exhausted
        window denies the send and nothing is incremented. The read and the
        increment are separate round-trips, so concurrent callers near a
        ceiling can both be admitted.
        """
        try:
            config = self._calculator.get_limits(tenant_id, message_type)
            denial = await self._first_exhausted_window(tenant_id, message_type, config)
            if denial is not None:
                logger.info(
                    "Rate limit exceeded",
                    tenant_id=tenant_id,
                    message_type=message_type.value,
                    window=denial.limiting_window.value if denial.limiting_window else None,
                    current=denial.current,
                    limit=denial.limit,
                )
                return denial

            entries = [
                (self._keys.generate_key(tenant_id, message_type, window), window_ttl(window))
                for window in WINDOW_ORDER
            ]
            counts = dict(zip(WINDOW_ORDER, await self._store.increment_and_expire(entries)))
        except Exception as e:
            return self._fail_open(tenant_id, message_type, e)

        window = self._calculator.get_most_restrictive_limit(config)
        limit = config.limit_for(window)
        return RateLimitResult(
            allowed=True,
            remaining=self._calculator.calculate_remaining(counts[window], limit),
            reset_time=self._calculator.calculate_reset_time(window),
            limiting_window=window,
            current=counts[window],
            limit=limit,
        )

    async def check_only(
        self,
        tenant_id: str,
        message_type: MessageType = MessageType.SMS,
    ) -> RateLimitResult:
        """Same evaluation as ``check_and_increment`` without consuming quota."""
        try:
            config = self._calculator.get_limits(tenant_id, message_type)
            denial = await self._first_exhausted_window(tenant_id, message_type, config)
            if denial is not None:
                return denial
            window = self._calculator.get_most_restrictive_limit(config)
            current = await self._store.get(self._keys.generate_key(tenant_id, message_type, window))
        except Exception as e:
            return self._fail_open(tenant_id, message_type, e)

        limit = config.limit_for(window)
        return RateLimitResult(
            allowed=True,
            remaining=self._calculator.calculate_remaining(current, limit),
            reset_time=self._calculator.calculate_reset_time(window),
            limiting_window=window,
            current=current,
            limit=limit,
        )

    async def get_current_usage(
        self,
        tenant_id: str,
        message_type: MessageType = MessageType.SMS,
    ) -> RateLimitUsage:
        """Per-window usage; reports zero usage for windows the store fails to read."""
        config = self._calculator.get_limits(tenant_id, message_type)
        windows = []
        for window in WINDOW_ORDER:
            limit = config.limit_for(window)
            try:
                current = await self._store.get(self._keys.generate_key(tenant_id, message_type, window))
            except Exception as e:
                logger.warning(
                    "Rate limit usage unavailable, reporting zero usage",
                    tenant_id=tenant_id,
                    window=window.value,
                    error=str(e),
                )
                current = 0
            windows.append(
                WindowUsage(
                    window=window,
                    current=current,
                    limit=limit,
                    remaining=self._calculator.calculate_remaining(current, limit),
                    reset_time=self._calculator.calculate_reset_time(window),
                )
            )
        return RateLimitUsage(tenant_id=tenant_id, message_type=message_type, windows=tuple(windows))

    async def reset_limits(
        self,
        tenant_id: str,
        message_type: Optional[MessageType] = None,
        window: Optional[TimeWindow] = None,
    ) -> int:
        """
        Administrative reset of a tenant's counters.

        Without ``message_type`` every counter of the tenant is removed;
        without ``window`` all windows of the type are removed.

        Raises:
            StoreUnavailableError: If the store is unreachable (never fails open)
        """
        if message_type is None:
            keys = []
            for key in await self._store.keys(self._keys.tenant_pattern(tenant_id)):
                parsed = self._keys.parse_key(key)
                if parsed is not None and parsed.tenant_id == tenant_id:
                    keys.append(key)
        elif window is None:
            keys = self._keys.generate_keys(tenant_id, message_type)
        else:
            keys = [self._keys.generate_key(tenant_id, message_type, window)]

        removed = await self._store.delete(*keys)
        logger.info(
            "Rate limits reset",
            tenant_id=tenant_id,
            message_type=message_type.value if message_type else None,
            window=window.value if window else None,
            removed=removed,
        )
        return removed

    async def _first_exhausted_window(
        self,
        tenant_id: str,
        message_type: MessageType,
        config: RateLimitConfig,
    ) -> Optional[RateLimitResult]:
        for window in WINDOW_ORDER:
            limit = config.limit_for(window)
            current = await self._store.get(self._keys.generate_key(tenant_id, message_type, window))
            if self._calculator.is_limit_exceeded(current, limit):
                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=self._calculator.calculate_reset_time(window),
                    limiting_window=window,
                    current=current,
                    limit=limit,
                )
        return None

    def _fail_open(
        self,
        tenant_id: str,
        message_type: MessageType,
        error: Exception,
    ) -> RateLimitResult:
        logger.warning(
            "Rate limit store unavailable, allowing request",
            tenant_id=tenant_id,
            message_type=message_type.value,
            error=str(error),
        )
        return RateLimitResult(
            allowed=True,
            remaining=0,
            reset_time=self._calculator.now() + timedelta(seconds=self._fail_open_reset_seconds),
        )
