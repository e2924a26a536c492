from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from src.config import Settings
from src.shared.infrastructure.database.session import DatabaseSessionFactory
from src.sms.application.services.status_updater import StatusUpdater
from src.sms.domain.entities.message import Message
from src.sms.domain.protocols.change_notifier import ChangeAction
from src.sms.domain.services.rate_limit_calculator import RateLimitCalculator
from src.sms.domain.value_objects.message_status import MessageDirection, MessageStatus
from src.sms.infrastructure.cache.memory_counter_store import InMemoryCounterStore
from src.sms.infrastructure.persistence.unit_of_work import sms_unit_of_work_factory
from src.sms.infrastructure.tiers import StaticTierResolver

TENANT = "test-workspace-123"
FIXED_NOW = datetime(2024, 3, 15, 10, 30, 45, tzinfo=timezone.utc)


@dataclass
class EmittedChange:
    entity_name: str
    action: ChangeAction
    tenant_id: str
    record_id: str
    after: dict[str, Any]
    before: Optional[dict[str, Any]]


class RecordingNotifier:
    def __init__(self) -> None:
        self.events: list[EmittedChange] = []

    async def emit(self, entity_name, action, *, tenant_id, record_id, after, before=None) -> None:
        self.events.append(EmittedChange(entity_name, action, tenant_id, record_id, after, before))

    def of(self, action: ChangeAction) -> list[EmittedChange]:
        return [e for e in self.events if e.action is action]


class ManualClock:
    """Monotonic clock for the in-memory counter store."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'sms.db'}",
        REDIS_URL="",
        LOG_JSON=False,
        DATABASE_CREATE_SCHEMA=True,
        DISPATCH_BACKOFF_DELAY_SECONDS=0,
    )


@pytest.fixture
async def database(settings):
    db = DatabaseSessionFactory(settings.DATABASE_URL)
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture
def uow_factory(database):
    return sms_unit_of_work_factory(database.session_factory)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def status_updater(uow_factory, notifier) -> StatusUpdater:
    return StatusUpdater(uow_factory, notifier)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def counter_store(clock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def calculator() -> RateLimitCalculator:
    return RateLimitCalculator(StaticTierResolver(), clock=lambda: FIXED_NOW)


@pytest.fixture
def create_message(uow_factory):
    async def _create(status: MessageStatus = MessageStatus.QUEUED, tenant_id: str = TENANT, **kwargs) -> Message:
        fields = dict(
            tenant_id=tenant_id,
            direction=MessageDirection.OUTBOUND,
            from_number="+15550001111",
            to_number="+15550002222",
            content="hello",
            status=status,
        )
        fields.update(kwargs)
        async with uow_factory(tenant_id) as uow:
            message = await uow.messages.create(Message(**fields))
            await uow.commit()
        return message

    return _create
