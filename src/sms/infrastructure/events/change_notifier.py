"""Change notifications for downstream listeners (Redis pub/sub)."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.shared.infrastructure.observability.logger import get_logger
from src.sms.domain.protocols.change_notifier import ChangeAction

logger = get_logger(__name__)


def build_change_event(
    entity_name: str,
    action: ChangeAction,
    *,
    tenant_id: str,
    record_id: str,
    after: dict[str, Any],
    before: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    return {
        "event_id": str(uuid4()),
        "entity": entity_name,
        "action": action.value,
        "tenant_id": tenant_id,
        "record_id": record_id,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "before": before,
        "after": after,
    }


class RedisChangeNotifier:
    """
    Publishes change events on ``{prefix}:{entity}.{action}``.

    Publishing is fire-and-forget: a Redis failure is logged and dropped so
    it never undoes a committed status change.
    """

    def __init__(self, redis: Redis, channel_prefix: str = "events") -> None:
        self.redis = redis
        self.channel_prefix = channel_prefix

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
        event = build_change_event(
            entity_name, action, tenant_id=tenant_id, record_id=record_id, after=after, before=before
        )
        channel = f"{self.channel_prefix}:{entity_name}.{action.value}"
        try:
            await self.redis.publish(channel, json.dumps(event, default=str))
        except (RedisError, OSError) as e:
            logger.warning(
                "Change notification dropped",
                channel=channel,
                record_id=record_id,
                error=str(e),
            )
            return
        logger.debug("Change notification published", channel=channel, record_id=record_id)


class LoggingChangeNotifier:
    """Writes change events to the log; used when no Redis is configured."""

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
        logger.info(
            "Change notification",
            entity=entity_name,
            action=action.value,
            tenant_id=tenant_id,
            record_id=record_id,
            status=after.get("status"),
        )
