"""
Redis client singleton for pub/sub messaging.

Used to fan booking notifications out to real-time transports subscribed to
``branch-{id}`` and ``tenant-{id}`` channels.
"""

import json
import logging
from functools import lru_cache
from typing import Any

import redis.asyncio as redis
from redis import ConnectionError as RedisConnectionError

from shared.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_redis_client() -> "redis.Redis[str]":
    """
    Get cached Redis client instance.

    - Connection pooling (max 20 connections)
    - Automatic retry on timeout for transient failures
    - Health check pings every 30 seconds

    Note:
        Uses @lru_cache to ensure only one Redis connection pool is created.
    """
    settings = get_settings()

    try:
        client = redis.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,
            retry_on_timeout=True,
            health_check_interval=30,
        )

        logger.info(
            f"Redis client initialized: {settings.REDIS_URL} "
            f"(max_connections=20, retry_on_timeout=True, health_check_interval=30s)"
        )
        return client

    except RedisConnectionError as e:
        logger.error(f"Redis connection failed: {e}", exc_info=True)
        raise


async def publish_to_channel(channel: str, message: dict[str, Any]) -> None:
    """
    Publish a message to a Redis pub/sub channel.

    Args:
        channel: Channel name
        message: Message dict to publish (will be JSON-serialized)

    Raises:
        RedisConnectionError: If Redis is unreachable
    """
    client = get_redis_client()

    json_message = json.dumps(message)

    try:
        await client.publish(channel, json_message)
        logger.debug(f"Message published to channel '{channel}': {json_message[:100]}")

    except RedisConnectionError as e:
        logger.error(f"Redis connection error while publishing to '{channel}': {e}")
        raise
