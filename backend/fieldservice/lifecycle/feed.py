"""In-process change feed for store mutations.

Stores publish a ``ChangeEvent`` after every committed write. Events are
invalidation signals only: they name the resource, the kind of change and the
ticket id, never the row contents. Subscribers receive events on the thread
that published them, so callbacks must hand off to their own loop.

The feed models a connection that can drop: while disconnected, published
events are discarded (at-most-once delivery). ``reconnect()`` delivers a
single ``RECONNECT`` event to every subscriber so they resynchronize with a
full reload.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

log = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'
DELETE = 'DELETE'
RECONNECT = 'RECONNECT'


@dataclass(frozen=True)
class ChangeEvent:
    resource: str
    kind: str
    ticket_id: Optional[str] = None
    # user ids allowed to see the change: creator, assignee, previous assignee
    audience: FrozenSet[str] = frozenset()


Callback = Callable[[ChangeEvent], None]
Predicate = Callable[[ChangeEvent], bool]


class Subscription:
    def __init__(self, feed: 'ChangeFeed', key: int, resource: str):
        self._feed = feed
        self._key = key
        self.resource = resource
        self.active = True

    def release(self):
        if self.active:
            self._feed._remove(self._key)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, tuple] = {}
        self._next_key = 0
        self.connected = True

    def subscribe(self, resource: str, callback: Callback, predicate: Optional[Predicate] = None) -> Subscription:
        with self._lock:
            self._next_key += 1
            key = self._next_key
            self._subscribers[key] = (resource, callback, predicate)
        return Subscription(self, key, resource)

    def _remove(self, key: int):
        with self._lock:
            self._subscribers.pop(key, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: ChangeEvent):
        if not self.connected:
            log.debug('change feed disconnected; dropping %s %s', event.kind, event.ticket_id)
            return
        for resource, callback, predicate in self._snapshot():
            if resource != event.resource:
                continue
            if predicate is not None and not predicate(event):
                continue
            self._deliver(callback, event)

    def disconnect(self):
        self.connected = False

    def reconnect(self):
        if self.connected:
            return
        self.connected = True
        for resource, callback, _ in self._snapshot():
            self._deliver(callback, ChangeEvent(resource=resource, kind=RECONNECT))

    def _snapshot(self):
        with self._lock:
            return list(self._subscribers.values())

    @staticmethod
    def _deliver(callback: Callback, event: ChangeEvent):
        try:
            callback(event)
        except Exception:
            # a broken subscriber must not fail the publisher's write
            log.exception('change feed subscriber failed for %s', event.kind)
