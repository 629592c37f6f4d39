"""Message bus infrastructure - Redis Streams integration."""
from .redis_stream_publisher import (
    RedisStreamPublisher,
    get_redis_stream_publisher,
)

__all__ = [
    "RedisStreamPublisher",
    "get_redis_stream_publisher",
]
