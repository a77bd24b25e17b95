"""Row change feed.

The store publishes one event per accepted mutation, carrying the row as it
looks after the mutation. Subscribers filter by table and a row predicate.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional, Protocol

logger = logging.getLogger(__name__)

UPSERT = "upsert"
DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    kind: str
    new: Optional[dict] = None
    old: Optional[dict] = None

    @property
    def row(self) -> dict:
        return self.new if self.new is not None else (self.old or {})


RowPredicate = Callable[[dict], bool]
ChangeHandler = Callable[[ChangeEvent], Any]


class ChangeFeed(Protocol):
    def subscribe(self, table: str, predicate: RowPredicate, on_change: ChangeHandler) -> Hashable:
        raise NotImplementedError

    def unsubscribe(self, handle: Hashable) -> None:
        raise NotImplementedError


@dataclass
class _Subscription:
    table: str
    predicate: RowPredicate
    on_change: ChangeHandler


class InProcessChangeFeed(ChangeFeed):
    """Change feed for stores living in the same process.

    Events are delivered synchronously on the publishing thread, in publish
    order. Sessions in other processes are not reached.
    """

    def __init__(self):
        self._subs: dict[int, _Subscription] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, table: str, predicate: RowPredicate, on_change: ChangeHandler) -> int:
        with self._lock:
            handle = next(self._ids)
            self._subs[handle] = _Subscription(table=table, predicate=predicate, on_change=on_change)
        logger.debug("Opened channel %s on %s", handle, table)
        return handle

    def unsubscribe(self, handle: Hashable) -> None:
        with self._lock:
            removed = self._subs.pop(handle, None)
        if removed is not None:
            logger.debug("Closed channel %s on %s", handle, removed.table)

    @property
    def channel_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [s for s in self._subs.values() if s.table == event.table]
        for sub in targets:
            try:
                if sub.predicate(event.row):
                    sub.on_change(event)
            except Exception:
                logger.exception("Change handler failed for %s event on %s", event.kind, event.table)
