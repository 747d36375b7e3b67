"""
backend/salon_booking/services/events.py

Notification outbox: pushes notification intents to a Redis queue for an
external consumer that owns delivery and retries.

Queue:
- events:p2p: one JSON event per intent (client confirmation, owner alert)

Enqueue is fire-and-forget: failures are logged and never reach the
booking caller.
"""

import enum
import json
import time
import logging
from typing import Protocol

from redis import Redis

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


class Audience(str, enum.Enum):
    CLIENT = "client"
    OWNER = "owner"


class NotificationOutbox(Protocol):
    def enqueue(self, reservation_id: int, audience: Audience, kind: str, payload: dict) -> None:
        ...


class RedisOutbox:
    """Outbox backed by a Redis list."""

    def __init__(self, redis: Redis, queue: str = P2P_QUEUE):
        self.redis = redis
        self.queue = queue

    def enqueue(self, reservation_id: int, audience: Audience, kind: str, payload: dict) -> None:
        event = {
            "type": f"booking_{kind}",
            "reservation_id": reservation_id,
            "audience": audience.value,
            "kind": kind,
            **payload,
            "ts": int(time.time()),
        }
        try:
            self.redis.rpush(self.queue, json.dumps(event, default=str))
            logger.info(f"Event emitted: {event['type']} ({audience.value}) → {self.queue}")
        except Exception as e:
            logger.error(f"Failed to emit event {event['type']} for reservation {reservation_id}: {e}")
