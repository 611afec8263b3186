"""In-process publish/subscribe hub for real-time hints.

Delivery is at-most-once: a subscriber whose queue is full or whose event
loop has gone away simply misses the message. Clients treat every event as a
hint to re-fetch, never as the source of truth.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger("vault.realtime")

ALL_TOPIC = "all"
_PENDING_KEY = "vault_pending_events"


def user_topic(user_id: int) -> str:
    return f"user:{int(user_id)}"


def masterpiece_topic(masterpiece_id: int) -> str:
    return f"masterpiece:{int(masterpiece_id)}"


@dataclass(eq=False)
class Subscription:
    topics: frozenset[str]
    loop: asyncio.AbstractEventLoop
    queue: asyncio.Queue = field(repr=False)


class EventHub:
    def __init__(self, max_queue: int = 100) -> None:
        self._max_queue = int(max_queue)
        self._lock = threading.Lock()
        self._subscriptions: set[Subscription] = set()

    def subscribe(self, topics: Iterable[str] | None = None) -> Subscription:
        """Register a subscriber on the running event loop."""

        wanted = frozenset(t.strip() for t in (topics or [ALL_TOPIC]) if t and t.strip())
        sub = Subscription(
            topics=wanted or frozenset({ALL_TOPIC}),
            loop=asyncio.get_running_loop(),
            queue=asyncio.Queue(maxsize=self._max_queue),
        )
        with self._lock:
            self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, event_type: str, payload: dict[str, Any], topics: Iterable[str] = ()) -> int:
        """Fan an event out to matching subscribers; returns how many were targeted.

        Safe to call from any thread.
        """

        message = {"type": event_type, **(payload or {})}
        targets = {ALL_TOPIC, *topics}
        with self._lock:
            matching = [s for s in self._subscriptions if s.topics & targets]

        delivered = 0
        for sub in matching:
            try:
                sub.loop.call_soon_threadsafe(_offer, sub.queue, message)
                delivered += 1
            except RuntimeError:
                # Loop already closed; the connection is gone.
                self.unsubscribe(sub)
        return delivered


def _offer(queue: asyncio.Queue, message: dict[str, Any]) -> None:
    try:
        queue.put_nowait(message)
    except asyncio.QueueFull:
        logger.info("realtime_message_dropped", extra={"type": message.get("type")})


hub = EventHub()


def queue_event(
    db: Session,
    event_type: str,
    payload: dict[str, Any],
    *,
    user_id: int | None = None,
    masterpiece_id: int | None = None,
) -> None:
    """Stage an event on the session; it is published only after commit."""

    topics: list[str] = []
    if user_id is not None:
        topics.append(user_topic(user_id))
    if masterpiece_id is not None:
        topics.append(masterpiece_topic(masterpiece_id))
    db.info.setdefault(_PENDING_KEY, []).append((event_type, dict(payload), tuple(topics)))


@event.listens_for(Session, "after_commit")
def _publish_pending_events(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    for event_type, payload, topics in pending or []:
        hub.publish(event_type, payload, topics)


@event.listens_for(Session, "after_rollback")
def _discard_pending_events(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
