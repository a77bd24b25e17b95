from __future__ import annotations

import threading
import time
from typing import Callable, Hashable, Iterator


class ExpiringSet:
    """Set whose members drop out a fixed time after they were (re)added.

    Expiry is evaluated lazily against the injected clock, so there are no
    timers to cancel: clearing the set is the whole teardown.
    """

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic):
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._deadlines: dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def add(self, item: Hashable) -> None:
        with self._lock:
            self._deadlines[item] = self._clock() + self._ttl

    def discard(self, item: Hashable) -> None:
        with self._lock:
            self._deadlines.pop(item, None)

    def clear(self) -> None:
        with self._lock:
            self._deadlines.clear()

    def _purge(self) -> None:
        now = self._clock()
        for item in [k for k, deadline in self._deadlines.items() if deadline <= now]:
            del self._deadlines[item]

    def __contains__(self, item: Hashable) -> bool:
        with self._lock:
            self._purge()
            return item in self._deadlines

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._deadlines)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.snapshot())

    def snapshot(self) -> frozenset:
        with self._lock:
            self._purge()
            return frozenset(self._deadlines)
