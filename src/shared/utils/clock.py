"""Time helpers shared by entities, repositories and the dispatch queue."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Naive UTC timestamp, the form persisted in every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def local_now() -> datetime:
    """Timezone-aware local time, used for calendar-aligned window boundaries."""
    return datetime.now().astimezone()
