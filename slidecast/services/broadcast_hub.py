"""Per-topic fan-out of outbound frames inside one process.

Handlers may be registered and invoked from any thread. Delivery is
best-effort: a failing handler is logged and skipped. Handlers must return
quickly; connections hand frames off to their own bounded queue instead of
writing to the socket inside the callback.

Running several processes requires a distributed pub/sub implementation of
``BroadcastHub``; nothing outside this module depends on the in-memory one.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

from slidecast.schemas.topics import OutboundFrame

_LOG = logging.getLogger("slidecast.broadcast")

FrameHandler = Callable[[OutboundFrame], None]


class Subscription:
    def __init__(self, hub: "InMemoryBroadcastHub", topic_id: str, handler: FrameHandler):
        self.topic_id = topic_id
        self._hub = hub
        self._handler = handler
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, frame: OutboundFrame) -> None:
        # Holding the lock during the call means cancel() cannot return while
        # a delivery to this handler is still in flight.
        with self._lock:
            if not self._active:
                return
            self._handler(frame)

    def cancel(self) -> bool:
        with self._lock:
            if not self._active:
                return False
            self._active = False
        self._hub._discard(self)
        return True

    __call__ = cancel


class BroadcastHub(Protocol):
    def subscribe(self, topic_id: str, handler: FrameHandler) -> Subscription:
        ...

    def broadcast(self, topic_id: str, frame: OutboundFrame) -> int:
        ...

    def subscriber_count(self, topic_id: str) -> int:
        ...


class InMemoryBroadcastHub:
    def __init__(self):
        self._channels: dict[str, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic_id: str, handler: FrameHandler) -> Subscription:
        subscription = Subscription(self, topic_id, handler)
        with self._lock:
            self._channels.setdefault(topic_id, []).append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        with self._lock:
            channel = self._channels.get(subscription.topic_id)
            if channel is None:
                return
            try:
                channel.remove(subscription)
            except ValueError:
                return
            if not channel:
                self._channels.pop(subscription.topic_id, None)

    def broadcast(self, topic_id: str, frame: OutboundFrame) -> int:
        with self._lock:
            targets = list(self._channels.get(topic_id) or [])
        delivered = 0
        for subscription in targets:
            try:
                subscription.deliver(frame)
            except Exception:
                _LOG.exception("broadcast handler failed topic_id=%s", topic_id)
                continue
            delivered += 1
        return delivered

    def subscriber_count(self, topic_id: str) -> int:
        with self._lock:
            return len(self._channels.get(topic_id) or [])

    def topic_count(self) -> int:
        with self._lock:
            return len(self._channels)


_cached_hub: BroadcastHub | None = None
_hub_lock = threading.Lock()


def get_broadcast_hub() -> BroadcastHub:
    global _cached_hub
    if _cached_hub is not None:
        return _cached_hub
    with _hub_lock:
        if _cached_hub is None:
            _cached_hub = InMemoryBroadcastHub()
        return _cached_hub


def reset_broadcast_hub_for_tests() -> None:
    global _cached_hub
    with _hub_lock:
        _cached_hub = None
