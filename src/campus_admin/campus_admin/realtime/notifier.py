from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Hashable, Optional

from ..attendance.model import AttendanceRecord
from .feed import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

ATTENDANCE_TABLE = "daily_attendance"

AttendanceCallback = Callable[[AttendanceRecord], None]


@dataclass
class _Channel:
    handle: Optional[Hashable] = None
    callbacks: dict[object, AttendanceCallback] = field(default_factory=dict)


class AttendanceNotifier:
    """Fan out attendance writes per date.

    The first subscriber for a date opens one feed channel; later subscribers
    for the same date share it. The channel is closed when its last callback
    unsubscribes.
    """

    def __init__(self, feed: ChangeFeed):
        self._feed = feed
        self._channels: dict[date, _Channel] = {}
        self._lock = threading.RLock()

    def subscribe(self, on: date, callback: AttendanceCallback) -> Callable[[], None]:
        token = object()
        with self._lock:
            channel = self._channels.get(on)
            if channel is None:
                channel = _Channel()
                self._channels[on] = channel
                day = on.isoformat()
                channel.handle = self._feed.subscribe(
                    ATTENDANCE_TABLE,
                    lambda row: str(row.get("date")) == day,
                    lambda event: self._dispatch(on, event),
                )
                logger.info("Opened attendance channel for %s", day)
            channel.callbacks[token] = callback

        def unsubscribe() -> None:
            self._remove(on, token)

        return unsubscribe

    def _remove(self, on: date, token: object) -> None:
        with self._lock:
            channel = self._channels.get(on)
            if channel is None or token not in channel.callbacks:
                return
            del channel.callbacks[token]
            if channel.callbacks:
                return
            del self._channels[on]
            handle = channel.handle
        self._feed.unsubscribe(handle)
        logger.info("Closed attendance channel for %s", on.isoformat())

    def _dispatch(self, on: date, event: ChangeEvent) -> None:
        if event.new is not None:
            record = AttendanceRecord.from_json(event.new, on=on)
        elif event.old is not None:
            # A deleted row is pushed as the empty version-0 record a reload would return.
            record = AttendanceRecord.empty(str(event.old["student_id"]), on)
        else:
            return
        with self._lock:
            channel = self._channels.get(on)
            callbacks = list(channel.callbacks.values()) if channel else []
        for cb in callbacks:
            try:
                cb(record)
            except Exception:
                logger.exception("Attendance subscriber failed for student %s on %s", record.student_id, on)

    def subscriber_count(self, on: date) -> int:
        with self._lock:
            channel = self._channels.get(on)
            return len(channel.callbacks) if channel else 0

    @property
    def open_dates(self) -> list[date]:
        with self._lock:
            return sorted(self._channels)

    def close(self) -> None:
        with self._lock:
            handles = [c.handle for c in self._channels.values()]
            self._channels.clear()
        for handle in handles:
            self._feed.unsubscribe(handle)
