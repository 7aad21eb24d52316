"""Change notification bus: fan-out of table mutations to live subscribers.

Two backends share one contract:

- ``RedisChangeBus`` publishes to Redis pub/sub so every web worker's
  subscribers see every mutation.
- ``InMemoryChangeBus`` keeps bounded per-subscriber queues inside the
  process, for single-node deployments and the test suite.

Delivery is at-most-once and unordered across mutations. A subscription
collapses bursts: events that arrive within the coalescing window of the
first one are returned as a single event whose ``count`` is the burst size.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import Iterator

from django.conf import settings

from core.redis_client import get_redis_client
from .events import ChangeEvent

logger = logging.getLogger(__name__)


class SubscriptionClosed(Exception):
    """Raised when reading from a subscription that has been closed."""


class Subscription(ABC):
    """A long-lived, cancellable stream of change events for one table.

    Not restartable: once closed (or dropped), call ``subscribe`` again.
    Use as a context manager, or call :meth:`close`, so the channel is
    released even when the owning session dies abnormally.
    """

    poll_interval = 1.0

    def __init__(self, table: str, coalesce_seconds: float):
        self.table = table
        self.coalesce_seconds = coalesce_seconds
        self._closed = False

    @abstractmethod
    def _receive(self, timeout: float | None) -> ChangeEvent | None:
        """Return the next raw event, or None once ``timeout`` elapses."""

    @abstractmethod
    def _release(self) -> None:
        """Give the underlying channel back."""

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Wait up to ``timeout`` seconds for a burst of changes.

        Returns one event summarizing the burst, or None if nothing arrived.
        """
        if self._closed:
            raise SubscriptionClosed(self.table)

        first = self._receive(timeout)
        if first is None:
            return None

        count, last = first.count, first
        deadline = time.monotonic() + self.coalesce_seconds
        while not self._closed:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            nxt = self._receive(remaining)
            if nxt is None:
                break
            count += nxt.count
            last = nxt
        return ChangeEvent(table=self.table, operation=last.operation, count=count)

    def __iter__(self) -> Iterator[ChangeEvent]:
        while not self._closed:
            try:
                event = self.get(timeout=self.poll_interval)
            except SubscriptionClosed:
                return
            if event is not None:
                yield event

    def close(self) -> None:
        """Release the channel. Idempotent and never raises."""
        if self._closed:
            return
        self._closed = True
        try:
            self._release()
        except Exception:  # cleanup is best-effort
            logger.warning("Failed to release %s subscription", self.table, exc_info=True)
        else:
            logger.debug("Closed %s subscription", self.table)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeBus(ABC):
    """Publish change events and open subscriptions."""

    def __init__(self, coalesce_seconds: float | None = None):
        if coalesce_seconds is None:
            coalesce_seconds = settings.CHANGE_BUS_COALESCE_SECONDS
        self.coalesce_seconds = coalesce_seconds

    @abstractmethod
    def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to the current subscribers of ``event.table``."""

    @abstractmethod
    def subscribe(self, table: str) -> Subscription:
        """Open a new subscription to ``table``."""


class _QueueSubscription(Subscription):
    def __init__(self, bus: "InMemoryChangeBus", table: str, maxsize: int):
        super().__init__(table, bus.coalesce_seconds)
        self._bus = bus
        self.queue: queue.Queue[ChangeEvent] = queue.Queue(maxsize=maxsize)

    def _receive(self, timeout: float | None) -> ChangeEvent | None:
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def _release(self) -> None:
        self._bus._discard(self)


class InMemoryChangeBus(ChangeBus):
    """In-process bus; each subscriber owns a bounded queue.

    A subscriber that falls behind loses the overflow; since a single
    pending event already triggers a refresh, nothing is missed in effect.
    """

    def __init__(self, coalesce_seconds: float | None = None, maxsize: int = 100):
        super().__init__(coalesce_seconds)
        self.maxsize = maxsize
        self._lock = threading.Lock()
        self._subscriptions: dict[str, set[_QueueSubscription]] = {}

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = list(self._subscriptions.get(event.table, ()))
        for subscription in targets:
            try:
                subscription.queue.put_nowait(event)
            except queue.Full:
                logger.debug("Dropped %s event for a lagging subscriber", event.table)

    def subscribe(self, table: str) -> Subscription:
        subscription = _QueueSubscription(self, table, self.maxsize)
        with self._lock:
            self._subscriptions.setdefault(table, set()).add(subscription)
        return subscription

    def _discard(self, subscription: _QueueSubscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.table)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    del self._subscriptions[subscription.table]

    def subscription_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, ()))


class _PubSubSubscription(Subscription):
    def __init__(self, pubsub, table: str, coalesce_seconds: float):
        super().__init__(table, coalesce_seconds)
        self._pubsub = pubsub

    def _receive(self, timeout: float | None) -> ChangeEvent | None:
        # Subscribe acks and malformed payloads do not end the wait; only the deadline does.
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.0)
            message = self._pubsub.get_message(ignore_subscribe_messages=True, timeout=remaining)
            if message is None:
                if deadline is not None and time.monotonic() >= deadline:
                    return None
                continue
            if message.get("type") != "message":
                continue
            try:
                return ChangeEvent.from_message(json.loads(message["data"]))
            except (ValueError, KeyError, TypeError):
                logger.warning("Ignoring malformed change message on %s", self.table)

    def _release(self) -> None:
        try:
            self._pubsub.unsubscribe()
        finally:
            self._pubsub.close()


class RedisChangeBus(ChangeBus):
    """Redis pub/sub bus; one channel per table under ``channel_prefix``."""

    def __init__(self, client=None, channel_prefix: str | None = None, coalesce_seconds: float | None = None):
        super().__init__(coalesce_seconds)
        self._client = client
        self.channel_prefix = channel_prefix or settings.CHANGE_BUS_CHANNEL_PREFIX

    @property
    def client(self):
        if self._client is None:
            self._client = get_redis_client()
        return self._client

    def channel(self, table: str) -> str:
        return f"{self.channel_prefix}:{table}"

    def publish(self, event: ChangeEvent) -> None:
        self.client.publish(self.channel(event.table), json.dumps(event.as_message()))

    def subscribe(self, table: str) -> Subscription:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(self.channel(table))
        return _PubSubSubscription(pubsub, table, self.coalesce_seconds)


_buses: dict[str, ChangeBus] = {}
_buses_lock = threading.Lock()


def get_change_bus() -> ChangeBus:
    """Return the process-wide bus for the configured backend."""
    backend = settings.CHANGE_BUS_BACKEND
    with _buses_lock:
        bus = _buses.get(backend)
        if bus is None:
            if backend == "memory":
                bus = InMemoryChangeBus()
            elif backend == "redis":
                bus = RedisChangeBus()
            else:
                raise ValueError(f"Unknown CHANGE_BUS_BACKEND: {backend!r}")
            _buses[backend] = bus
    return bus


def reset_change_buses() -> None:
    """Forget cached buses (for testing)."""
    with _buses_lock:
        _buses.clear()


__all__ = [
    "ChangeBus",
    "InMemoryChangeBus",
    "RedisChangeBus",
    "Subscription",
    "SubscriptionClosed",
    "get_change_bus",
    "reset_change_buses",
]
