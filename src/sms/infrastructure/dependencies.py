"""Wiring for the SMS module (shared by the API process and the dispatch worker)."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis

from src.config import Settings
from src.shared.infrastructure.database.session import DatabaseSessionFactory
from src.shared.infrastructure.observability.logger import get_logger
from src.sms.application.services.rate_limiter import SmsRateLimiter
from src.sms.application.services.sms_service import SmsService
from src.sms.application.services.status_updater import StatusUpdater
from src.sms.application.services.webhook_service import WebhookService
from src.sms.application.worker.dispatch_processor import SmsDispatchProcessor
from src.sms.domain.protocols.change_notifier import ChangeNotifier
from src.sms.domain.protocols.counter_store import CounterStore
from src.sms.domain.protocols.provider_client import ProviderClient
from src.sms.domain.services.rate_limit_calculator import RateLimitCalculator
from src.sms.domain.services.rate_limit_keys import RateLimitKeyGenerator
from src.sms.domain.value_objects.dispatch import BackoffPolicy, ProviderConfig
from src.sms.infrastructure.cache.memory_counter_store import InMemoryCounterStore
from src.sms.infrastructure.cache.redis_counter_store import RedisCounterStore
from src.sms.infrastructure.events.change_notifier import LoggingChangeNotifier, RedisChangeNotifier
from src.sms.infrastructure.persistence.unit_of_work import sms_unit_of_work_factory
from src.sms.infrastructure.providers.dry_run import DryRunProviderClient
from src.sms.infrastructure.queue.outbox_queue import OutboxDispatchQueue
from src.sms.infrastructure.tiers import StaticTierResolver

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Process-wide singletons; built once at startup and closed at shutdown."""
    settings: Settings
    database: DatabaseSessionFactory
    redis: Optional[redis.Redis]
    counter_store: CounterStore
    notifier: ChangeNotifier
    provider: ProviderClient
    queue: OutboxDispatchQueue
    rate_limiter: SmsRateLimiter
    status_updater: StatusUpdater
    sms_service: SmsService
    webhook_service: WebhookService
    dispatch_processor: SmsDispatchProcessor

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
        await self.database.dispose()


def _build_provider(settings: Settings) -> ProviderClient:
    if settings.SMS_PROVIDER == "dry-run":
        return DryRunProviderClient()
    raise ValueError(f"Unsupported SMS provider: {settings.SMS_PROVIDER}")


def build_container(
    settings: Settings,
    *,
    counter_store: Optional[CounterStore] = None,
    notifier: Optional[ChangeNotifier] = None,
    provider: Optional[ProviderClient] = None,
    calculator: Optional[RateLimitCalculator] = None,
) -> ServiceContainer:
    """
    Build every service from settings.

    Explicit collaborators override the configured ones (tests, local runs).
    Without ``REDIS_URL`` the counter store and notifier fall back to their
    in-process variants.
    """
    database = DatabaseSessionFactory(
        settings.DATABASE_URL,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )

    redis_client: Optional[redis.Redis] = None
    if settings.redis_enabled and (counter_store is None or notifier is None):
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)

    if counter_store is None:
        counter_store = RedisCounterStore(redis_client) if redis_client else InMemoryCounterStore()
    if notifier is None:
        notifier = (
            RedisChangeNotifier(redis_client, channel_prefix=settings.CHANGE_EVENTS_CHANNEL_PREFIX)
            if redis_client
            else LoggingChangeNotifier()
        )
    provider = provider or _build_provider(settings)

    if calculator is None:
        calculator = RateLimitCalculator(
            StaticTierResolver(
                tenant_tiers=settings.RATE_LIMIT_TENANT_TIERS,
                default_tier=settings.RATE_LIMIT_DEFAULT_TIER,
            )
        )
    rate_limiter = SmsRateLimiter(
        counter_store,
        calculator,
        RateLimitKeyGenerator(settings.RATE_LIMIT_KEY_PREFIX),
        fail_open_reset_seconds=settings.RATE_LIMIT_FAIL_OPEN_RESET_SECONDS,
    )

    uow_factory = sms_unit_of_work_factory(database.session_factory)
    queue = OutboxDispatchQueue(database.session_factory)
    status_updater = StatusUpdater(uow_factory, notifier)
    sms_service = SmsService(
        uow_factory=uow_factory,
        rate_limiter=rate_limiter,
        queue=queue,
        notifier=notifier,
        status_updater=status_updater,
        default_provider_config=ProviderConfig(
            provider=settings.SMS_PROVIDER,
            account_id=settings.SMS_PROVIDER_ACCOUNT_ID,
        ),
        max_attempts=settings.DISPATCH_MAX_ATTEMPTS,
        backoff=BackoffPolicy(
            delay_seconds=settings.DISPATCH_BACKOFF_DELAY_SECONDS,
            multiplier=settings.DISPATCH_BACKOFF_MULTIPLIER,
            max_delay_seconds=settings.DISPATCH_BACKOFF_MAX_DELAY_SECONDS,
        ),
        max_length=settings.SMS_MAX_LENGTH,
    )

    logger.info(
        "SMS services wired",
        redis=redis_client is not None,
        counter_store=type(counter_store).__name__,
        provider=type(provider).__name__,
    )
    return ServiceContainer(
        settings=settings,
        database=database,
        redis=redis_client,
        counter_store=counter_store,
        notifier=notifier,
        provider=provider,
        queue=queue,
        rate_limiter=rate_limiter,
        status_updater=status_updater,
        sms_service=sms_service,
        webhook_service=WebhookService(uow_factory, status_updater),
        dispatch_processor=SmsDispatchProcessor(
            provider,
            status_updater,
            provider_timeout_seconds=settings.PROVIDER_TIMEOUT_SECONDS,
        ),
    )
