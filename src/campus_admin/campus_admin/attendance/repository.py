from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from .model import AttendanceRecord, SelectedSlots


class AttendanceRepository(Protocol):
    """Row store for daily attendance, keyed by (student_id, date)."""

    def fetch_for_date(self, on: date) -> Sequence[AttendanceRecord]:
        """Stored records only; students without a row are not synthesized here."""

        raise NotImplementedError

    def get_many(self, student_ids: Sequence[str], on: date) -> dict[str, AttendanceRecord]:
        raise NotImplementedError

    def upsert_batch(self, records: Sequence[AttendanceRecord]) -> Sequence[AttendanceRecord]:
        """Write all records in one transaction and return them as stored (with ids)."""

        raise NotImplementedError

    def delete_for_date(self, on: date) -> int:
        raise NotImplementedError

    def delete_hour_for_date(self, on: date, hour: int) -> int:
        """Strip ``hour`` from every record of the date; records left empty are deleted.

        Returns the number of records touched.
        """

        raise NotImplementedError

    def list_range(self, start: date, end: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError


class SelectedSlotsRepository(Protocol):
    def list_for_date(self, on: date) -> Sequence[SelectedSlots]:
        raise NotImplementedError

    def list_range(self, start: date, end: date) -> Sequence[SelectedSlots]:
        raise NotImplementedError

    def upsert_batch(self, slots: Sequence[SelectedSlots]) -> None:
        raise NotImplementedError
