"""Change notification protocol consumed by downstream listeners."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Protocol


class ChangeAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class ChangeNotifier(Protocol):
    async def emit(
        self,
        entity_name: str,
        action: ChangeAction,
        *,
        tenant_id: str,
        record_id: str,
        after: dict[str, Any],
        before: Optional[dict[str, Any]] = None,
    ) -> None:
        """Fire-and-forget: implementations must not raise on delivery failure."""
        ...
