import json
import logging
from typing import Any, Dict, Iterable

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.core.config import settings

logger = logging.getLogger("app.events")

INCIDENT_CHANNEL_PREFIX = "incident:"
USER_CHANNEL_PREFIX = "user:"
ALL_INCIDENTS_CHANNEL = "incidents:all"

redis_client = redis.Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    db=settings.REDIS_DB,
    password=settings.REDIS_PASSWORD,
    decode_responses=True,
)


async def publish_message(channel: str, message: Any) -> int:
    """Publish a JSON message to a redis channel."""
    serialized_message = json.dumps(message, default=str)
    return await redis_client.publish(channel, serialized_message)


async def publish_incident_event(event_type: str, incident_id: int, data: Dict[str, Any]) -> bool:
    """
    Publish an incident event on the incident's channel and the global one.

    The state change behind the event is already committed, so a redis
    failure is logged and reported as False instead of raised.
    """
    if not settings.EVENTS_ENABLED:
        return False
    message = {"type": event_type, "data": {"incident_id": incident_id, **data}}
    try:
        await publish_message(f"{INCIDENT_CHANNEL_PREFIX}{incident_id}", message)
        await publish_message(ALL_INCIDENTS_CHANNEL, message)
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to publish {event_type} for incident_id={incident_id}: {e}")
        return False
    return True


async def notify_users(user_ids: Iterable[str], event_type: str, data: Dict[str, Any]) -> int:
    """
    Send an event to each user's channel. Returns how many were published.
    """
    if not settings.EVENTS_ENABLED:
        return 0
    sent = 0
    for user_id in dict.fromkeys(user_ids):
        try:
            await publish_message(f"{USER_CHANNEL_PREFIX}{user_id}", {"type": event_type, "data": data})
            sent += 1
        except (RedisError, OSError) as e:
            logger.warning(f"Failed to notify user_id={user_id} of {event_type}: {e}")
    return sent
