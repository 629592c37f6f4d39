"""
Redis Stream mirror for execution events.

Registered as a handler on the in-memory event bus when
``EVENTS_REDIS_ENABLED`` is set, so processes outside the API can follow
executions by reading the stream.

Each entry carries::

    event_type      started | progress | completed | failed
    execution_id
    project_id
    payload         the full event as JSON
"""
import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as aioredis

from core.settings.modules.events_settings import EventsSettings


logger = logging.getLogger(__name__)


def stream_fields(payload: Dict[str, Any]) -> Dict[str, str]:
    """Flatten an event payload into Redis stream fields."""
    return {
        "event_type": str(payload.get("type", "")),
        "execution_id": str(payload.get("execution_id", "")),
        "project_id": str(payload.get("project_id") or ""),
        "payload": json.dumps(payload, default=str),
    }


class RedisStreamPublisher:
    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        stream_name: str = "cukeflow:executions:stream",
        maxlen: int = 10000,
    ):
        self.redis_url = redis_url
        self.stream_name = stream_name
        # Approximate trim bound passed to XADD
        self.maxlen = maxlen
        self._redis_client: Optional[aioredis.Redis] = None

    @classmethod
    def from_settings(cls, settings: EventsSettings) -> "RedisStreamPublisher":
        return cls(
            redis_url=settings.redis_url,
            stream_name=settings.redis_stream,
            maxlen=settings.redis_maxlen,
        )

    @property
    def connected(self) -> bool:
        return self._redis_client is not None

    async def connect(self) -> None:
        """Open the client and ping it; a failed ping leaves the publisher disconnected."""
        if self.connected:
            return
        client = aioredis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Redis unavailable at {self.redis_url}: {e}")
            await client.aclose()
            raise
        self._redis_client = client
        logger.info(f"✅ Connected to Redis: {self.redis_url}")

    async def disconnect(self) -> None:
        if not self.connected:
            return
        client, self._redis_client = self._redis_client, None
        await client.aclose()
        logger.info("Redis stream publisher disconnected")

    async def publish_execution_event(self, payload: Dict[str, Any]) -> str:
        """Append one event payload (``ExecutionEvent.to_dict()``) and return the stream entry id."""
        if not self.connected:
            await self.connect()

        fields = stream_fields(payload)
        try:
            entry_id = await self._redis_client.xadd(
                self.stream_name, fields, maxlen=self.maxlen, approximate=True
            )
        except Exception as e:
            logger.error(
                f"XADD to {self.stream_name} failed for execution {fields['execution_id']}: {e}",
                exc_info=True,
            )
            raise

        logger.debug(f"{fields['event_type']} event for {fields['execution_id']} -> {entry_id}")
        return entry_id

    async def __call__(self, event) -> None:
        await self.publish_execution_event(event.to_dict())

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


_publisher: Optional[RedisStreamPublisher] = None


def get_redis_stream_publisher(settings: Optional[EventsSettings] = None) -> RedisStreamPublisher:
    """Process-wide publisher, built from ``settings`` or the environment on first use."""
    global _publisher
    if _publisher is None:
        _publisher = RedisStreamPublisher.from_settings(settings or EventsSettings())
    return _publisher
