import json
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from src.sms.domain.protocols.change_notifier import ChangeAction
from src.sms.infrastructure.events.change_notifier import LoggingChangeNotifier, RedisChangeNotifier


async def test_publishes_on_entity_action_channel():
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=1)
    notifier = RedisChangeNotifier(redis, channel_prefix="events")

    await notifier.emit(
        "sms_message",
        ChangeAction.UPDATED,
        tenant_id="t1",
        record_id="m1",
        before={"status": "sent"},
        after={"status": "delivered"},
    )

    channel, body = redis.publish.call_args.args
    assert channel == "events:sms_message.updated"
    event = json.loads(body)
    assert (event["tenant_id"], event["record_id"], event["action"]) == ("t1", "m1", "updated")
    assert event["before"] == {"status": "sent"}
    assert event["after"] == {"status": "delivered"}


async def test_publish_failure_is_dropped():
    redis = MagicMock()
    redis.publish = AsyncMock(side_effect=RedisConnectionError("down"))

    await RedisChangeNotifier(redis).emit(
        "sms_message", ChangeAction.CREATED, tenant_id="t1", record_id="m1", after={}
    )


async def test_logging_notifier_accepts_events():
    await LoggingChangeNotifier().emit(
        "sms_message", ChangeAction.CREATED, tenant_id="t1", record_id="m1", after={"status": "queued"}
    )
