from __future__ import annotations

from pydantic import Field

from core.settings.base import CukeflowBaseSettings


class EventsSettings(CukeflowBaseSettings):
    """
    Live execution event stream settings.
    Loaded from .env file with exact variable name matching.
    """

    subscriber_queue_size: int = Field(100, alias="EVENTS_SUBSCRIBER_QUEUE_SIZE")
    sse_heartbeat_seconds: float = Field(15.0, alias="EVENTS_SSE_HEARTBEAT_SECONDS")

    # Optional mirror of every event into a Redis Stream
    redis_enabled: bool = Field(False, alias="EVENTS_REDIS_ENABLED")
    redis_url: str = Field("redis://localhost:6379/0", alias="EVENTS_REDIS_URL")
    redis_stream: str = Field("cukeflow:executions:stream", alias="EVENTS_REDIS_STREAM")
    redis_maxlen: int = Field(10000, alias="EVENTS_REDIS_MAXLEN")
