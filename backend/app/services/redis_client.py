from typing import Any

from redis import asyncio as aioredis

from app.core.config import settings


class _AsyncNullRedis:
    """Stand-in used when no Redis URL is configured; has no pub/sub."""

    async def close(self) -> None:  # pragma: no cover - no-op
        return None


def _build_client() -> Any:
    url = (settings.REDIS_URL or "").strip()
    if not url or not url.lower().startswith(("redis://", "rediss://")):
        return _AsyncNullRedis()
    return aioredis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=2,
        health_check_interval=30,
        retry_on_timeout=True,
    )


redis = _build_client()

__all__ = ["redis"]
