from __future__ import annotations

import logging
import threading
import time
from datetime import date, datetime
from typing import Callable, Optional

from ..common.datetime_utils import now_utc
from ..common.expiring_set import ExpiringSet
from ..common.validators import require_hour
from ..core.constants import RECENT_UPDATE_SECONDS
from ..core.enums import AttendanceStatus, Role, SessionState
from ..core.exceptions import SaveInProgressError, ValidationError
from ..realtime.notifier import AttendanceNotifier
from .model import AttendanceRecord, HourEntry
from .rules import validate_batch
from .service import AttendanceService

logger = logging.getLogger(__name__)


class AttendanceSession:
    """One operator's working copy of a day's attendance.

    Local edits accumulate in a dirty set until ``save()``; pushes from other
    sessions are reconciled by version and never overwrite a student the
    operator is still editing.
    """

    def __init__(
        self,
        service: AttendanceService,
        notifier: Optional[AttendanceNotifier] = None,
        *,
        role: Role,
        clock: Callable[[], datetime] = now_utc,
        recent_window: float = RECENT_UPDATE_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._service = service
        self._notifier = notifier
        self._role = role
        self._clock = clock

        self._state = SessionState.IDLE
        self._date: Optional[date] = None
        self._records: dict[str, AttendanceRecord] = {}
        self._dirty: set[str] = set()
        self._edit_seq: dict[str, int] = {}
        self._edited_hours: dict[str, set[int]] = {}
        self._pending: dict[str, AttendanceRecord] = {}
        self._in_flight: frozenset = frozenset()
        self._held: dict[str, AttendanceRecord] = {}
        self._recent = ExpiringSet(recent_window, clock=monotonic)
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

        self._lock = threading.RLock()
        self._save_lock = threading.Lock()

    def __enter__(self) -> "AttendanceSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def role(self) -> Role:
        return self._role

    @property
    def date(self) -> Optional[date]:
        return self._date

    @property
    def records(self) -> list[AttendanceRecord]:
        with self._lock:
            return list(self._records.values())

    @property
    def dirty(self) -> frozenset:
        with self._lock:
            return frozenset(self._dirty)

    @property
    def recently_updated(self) -> frozenset:
        return self._recent.snapshot()

    def record_for(self, student_id: str) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._records.get(str(student_id))

    def load_date(self, on: date) -> list[AttendanceRecord]:
        if self._closed:
            raise ValidationError("Session is closed")
        if self._state == SessionState.SAVING:
            raise SaveInProgressError("Wait for the current save to finish before changing date")

        with self._lock:
            if on != self._date:
                self._subscribe(on)
            self._date = on
            self._dirty.clear()
            self._edit_seq.clear()
            self._edited_hours.clear()
            self._recent.clear()
        return self._reload()

    def _subscribe(self, on: date) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        if self._notifier:
            self._unsubscribe = self._notifier.subscribe(on, self.remote_update)

    def _reload(self) -> list[AttendanceRecord]:
        with self._lock:
            previous = self._state
            self._state = SessionState.LOADING
            self._pending.clear()
        try:
            fetched = self._service.fetch_for_date(self._date)
        except Exception:
            with self._lock:
                self._state = SessionState.READY if previous != SessionState.IDLE else SessionState.IDLE
            raise

        with self._lock:
            records: dict[str, AttendanceRecord] = {}
            for r in fetched:
                local = self._records.get(r.student_id)
                records[r.student_id] = local if (r.student_id in self._dirty and local) else r
            self._records = records
            self._state = SessionState.READY
            pending = list(self._pending.values())
            self._pending.clear()
        for r in pending:
            self.remote_update(r)
        return self.records

    def edit_hour(
        self,
        student_id: str,
        hour: int,
        status: AttendanceStatus | str,
        reason: Optional[str] = None,
    ) -> AttendanceRecord:
        hour = require_hour(hour)
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {status!r}")

        with self._lock:
            if self._state not in (SessionState.READY, SessionState.SAVING):
                raise ValidationError("Load a date before marking attendance")
            sid = str(student_id)
            record = self._records.get(sid)
            if record is None:
                raise ValidationError(f"Student {sid} is not on the attendance list for {self._date.isoformat()}")

            updated = record.with_entry(HourEntry.mark(hour, status, time=self._clock(), reason=reason))
            self._records[sid] = updated
            self._dirty.add(sid)
            self._edit_seq[sid] = self._edit_seq.get(sid, 0) + 1
            self._edited_hours.setdefault(sid, set()).add(hour)
            return updated

    def remote_update(self, record: AttendanceRecord) -> bool:
        """Apply a pushed record if it is newer. Returns True when it was newer.

        An empty version-0 push means the stored row was deleted by a reset.
        """
        with self._lock:
            if self._closed or record.date != self._date:
                return False
            sid = record.student_id
            if self._state == SessionState.LOADING:
                _hold(self._pending, record)
                return False
            if self._state == SessionState.SAVING and sid in self._in_flight:
                # Settled once the save returns; our own write echoes back here.
                _hold(self._held, record)
                return False

            local = self._records.get(sid)
            if _is_removal(record):
                return self._apply_removal(sid, local, record)
            if local is not None and record.version <= local.version:
                return False

            self._recent.add(sid)
            if sid in self._dirty:
                # Keep the operator's edit; save() merges against the newer row.
                logger.debug("Kept local edit for student %s over remote v%s", sid, record.version)
                return True
            self._records[sid] = record
            return True

    def _apply_removal(self, sid: str, local: Optional[AttendanceRecord], empty: AttendanceRecord) -> bool:
        if local is None or local.version == 0:
            return False
        self._recent.add(sid)
        if sid not in self._dirty:
            self._records[sid] = empty
            return True
        # Only the hours marked in this session survive a reset.
        edited = self._edited_hours.get(sid, set())
        rebased = empty
        for entry in local.hourly_status:
            if entry.hour in edited:
                rebased = rebased.with_entry(entry)
        self._records[sid] = rebased
        logger.debug("Rebased local edit for student %s onto a reset row", sid)
        return True

    def save(self) -> list[AttendanceRecord]:
        if not self._save_lock.acquire(blocking=False):
            raise SaveInProgressError("A save is already in progress")
        try:
            with self._lock:
                if self._state != SessionState.READY:
                    raise ValidationError("Load a date before saving attendance")
                if not self._dirty:
                    return []
                snapshot = {sid: self._edit_seq.get(sid, 0) for sid in self._dirty}
                candidates = [self._records[sid] for sid in self._records if sid in snapshot]
                self._in_flight = frozenset(snapshot)
                self._held.clear()
                self._state = SessionState.SAVING

            try:
                validate_batch(candidates)
                saved = self._service.save_records(candidates, current_role=self._role)
            except Exception:
                with self._lock:
                    self._state = SessionState.READY
                    held = self._take_held()
                logger.warning("Attendance save failed for %s; %d edit(s) kept", self._date, len(snapshot))
                for r in held:
                    self.remote_update(r)
                raise

            written = {r.student_id: r.version for r in saved}
            with self._lock:
                for sid, seq in snapshot.items():
                    if self._edit_seq.get(sid, 0) == seq:
                        self._dirty.discard(sid)
                        self._edit_seq.pop(sid, None)
                        self._edited_hours.pop(sid, None)
                held = self._take_held()
            self._reload()
            # The reload already reflects every held push; only other writers get flagged.
            for r in held:
                if r.version and written.get(r.student_id) != r.version:
                    self._recent.add(r.student_id)
            return saved
        finally:
            self._save_lock.release()

    def _take_held(self) -> list[AttendanceRecord]:
        held = list(self._held.values())
        self._held.clear()
        self._in_flight = frozenset()
        return held

    def reset_date(self) -> list[AttendanceRecord]:
        self._require_loaded()
        self._service.reset_date(self._date, current_role=self._role)
        return self._reload()

    def reset_hour(self, hour: int) -> list[AttendanceRecord]:
        self._require_loaded()
        self._service.reset_hour(self._date, hour, current_role=self._role)
        return self._reload()

    def _require_loaded(self) -> None:
        if self._closed or self._date is None:
            raise ValidationError("Load a date first")
        if self._state == SessionState.SAVING:
            raise SaveInProgressError("Wait for the current save to finish")

    def close(self) -> None:
        with self._lock:
            self._closed = True
            unsubscribe, self._unsubscribe = self._unsubscribe, None
            self._recent.clear()
            self._pending.clear()
            self._state = SessionState.IDLE
        if unsubscribe:
            unsubscribe()


def _is_removal(record: AttendanceRecord) -> bool:
    return record.version == 0 and not record.hourly_status


def _hold(buffer: dict[str, AttendanceRecord], record: AttendanceRecord) -> None:
    # Pushes arrive in commit order, so a removal supersedes anything held before it.
    held = buffer.get(record.student_id)
    if held is None or record.version > held.version or _is_removal(record):
        buffer[record.student_id] = record
