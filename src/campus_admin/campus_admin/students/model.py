from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Student:
    """Student as seen by attendance and fees (the full profile is owned elsewhere)."""

    student_id: str
    name: str
    roll_no: str
    status: str = "active"
    course: Optional[str] = None
    batch: Optional[str] = None
