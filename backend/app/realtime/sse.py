"""Live push of notifications to connected browsers over Server-Sent Events.

``LivePush`` is the capability the notification service depends on. The
service defaults to :class:`NullLivePush`; the API process wires in the shared
:data:`sse_broker` at composition time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Protocol, Set, Tuple

from .bus import bus_enabled, publish_topic, start_pattern_consumer

logger = logging.getLogger(__name__)


class LivePush(Protocol):
    def broadcast_to_user(self, user_id: int, account_type: str, payload: Dict[str, Any]) -> None:
        ...


class NullLivePush:
    """Live push for processes without any SSE connections (workers, scripts)."""

    def broadcast_to_user(self, user_id: int, account_type: str, payload: Dict[str, Any]) -> None:
        return None


# Events buffered per open stream before new ones are dropped
DEFAULT_QUEUE_SIZE = 100


@dataclass(eq=False)
class Subscriber:
    user_id: int
    account_type: str
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=DEFAULT_QUEUE_SIZE))

    def offer(self, event: Dict[str, Any]) -> None:
        """Queue an event on the stream's loop, dropping it if the client is not reading."""
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("SSE queue full for %s/%s; dropping event", self.account_type, self.user_id)


def notification_event(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": "notification",
        "notification": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class SSEBroker:
    """In-process registry of open SSE streams keyed by ``(user_id, account_type)``.

    ``broadcast_to_user`` may be called from worker threads (sync endpoints,
    the reminder loop); events are handed to each stream's loop with
    ``call_soon_threadsafe``.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: Dict[Tuple[int, str], Set[Subscriber]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Remember the server loop so threads can publish to the bus."""
        self._loop = loop

    def subscribe(self, user_id: int, account_type: str) -> Subscriber:
        sub = Subscriber(
            user_id=int(user_id),
            account_type=account_type,
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self.queue_size),
        )
        with self._lock:
            self._subscribers.setdefault((sub.user_id, account_type), set()).add(sub)
        logger.info("SSE connection opened for %s/%s", account_type, user_id)
        return sub

    def unsubscribe(self, sub: Subscriber) -> None:
        key = (sub.user_id, sub.account_type)
        with self._lock:
            subs = self._subscribers.get(key)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscribers[key]
        logger.info("SSE connection closed for %s/%s", sub.account_type, sub.user_id)

    def connection_count(self, user_id: int | None = None, account_type: str | None = None) -> int:
        with self._lock:
            if user_id is None:
                return sum(len(s) for s in self._subscribers.values())
            return len(self._subscribers.get((int(user_id), account_type or "user"), ()))

    def deliver_local(self, user_id: int, account_type: str, event: Dict[str, Any]) -> int:
        """Queue ``event`` on every local stream of the user; returns how many."""
        with self._lock:
            subs = list(self._subscribers.get((int(user_id), account_type), ()))
        delivered = 0
        for sub in subs:
            try:
                sub.loop.call_soon_threadsafe(sub.offer, event)
                delivered += 1
            except RuntimeError:
                # Loop already closed; the stream is gone
                self.unsubscribe(sub)
        return delivered

    def broadcast_to_user(self, user_id: int, account_type: str, payload: Dict[str, Any]) -> None:
        event = notification_event(payload)
        if bus_enabled() and self._loop is not None and not self._loop.is_closed():
            topic = f"user:{int(user_id)}:{account_type}"
            asyncio.run_coroutine_threadsafe(publish_topic(topic, {"event": event}), self._loop)
            return
        self.deliver_local(user_id, account_type, event)

    async def start_bus_consumer(self) -> None:
        async def _on_message(topic: str, envelope: Dict[str, Any]) -> None:
            _, user_id, account_type = topic.split(":", 2)
            self.deliver_local(int(user_id), account_type, envelope.get("event") or {})

        await start_pattern_consumer("user:*", _on_message)


sse_broker = SSEBroker()
