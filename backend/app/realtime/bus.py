"""Cross-instance fan-out for live notifications over Redis pub/sub.

Each API instance only holds the SSE connections opened against it. When the
bus is enabled, pushes are published to ``sse-topic:<topic>`` and every
instance's consumer delivers them to its own local subscribers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

from app.core.config import settings
from app.services.redis_client import redis as _redis_client

logger = logging.getLogger(__name__)

TOPIC_PREFIX = "sse-topic:"


def bus_enabled() -> bool:
    return settings.SSE_BUS_ENABLED and hasattr(_redis_client, "publish")


async def publish_topic(topic: str, envelope: dict[str, Any]) -> None:
    """Publish an envelope to ``sse-topic:<topic>``.

    Safe to call even when the bus is disabled; becomes a no-op.
    """
    if not bus_enabled():
        return
    env = dict(envelope)
    env.setdefault("v", 1)
    env.setdefault("topic", topic)
    try:
        await _redis_client.publish(f"{TOPIC_PREFIX}{topic}", json.dumps(env, separators=(",", ":"), default=str))
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("SSE bus publish failed: %s", exc)


_consumer_started = False
_consumer_task: asyncio.Task | None = None


async def start_pattern_consumer(
    pattern: str,
    handler: Callable[[str, dict[str, Any]], Awaitable[None]],
) -> None:
    """Start a background task that PSUBSCRIBEs to a pattern and dispatches JSON payloads.

    Handler receives (topic_without_prefix, envelope_dict).
    """
    global _consumer_started, _consumer_task
    if not bus_enabled() or _consumer_started:
        return
    _consumer_started = True

    pubsub = _redis_client.pubsub()
    await pubsub.psubscribe(f"{TOPIC_PREFIX}{pattern}")

    async def _loop() -> None:
        try:
            async for msg in pubsub.listen():
                if not isinstance(msg, dict) or msg.get("type") != "pmessage":
                    continue
                topic = str(msg.get("channel")).replace(TOPIC_PREFIX, "", 1)
                try:
                    payload = json.loads(msg.get("data") or "{}")
                    await handler(topic, payload)
                except Exception as exc:  # pragma: no cover - keep the stream alive
                    logger.warning("SSE bus message on %s dropped: %s", topic, exc)
        finally:
            await pubsub.close()

    _consumer_task = asyncio.create_task(_loop())


__all__ = [
    "bus_enabled",
    "publish_topic",
    "start_pattern_consumer",
]
