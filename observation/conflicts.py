"""Time-conflict checks for observers.

An observer cannot sit in two committees whose exams overlap on the same date,
whatever grade those exams belong to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from .calendar_index import CalendarIndex
from .models import Assignment, Committee


def is_overlapping(start1: int, end1: int, start2: int, end2: int) -> bool:
    return max(start1, start2) < min(end1, end2)


@dataclass(frozen=True)
class ConflictInfo:
    """Where the observer is already busy (for user-facing messages)."""

    session_id: str
    committee_id: str
    grade_label: str
    subject_name: str
    committee_name: str
    time_range: str

    def describe(self) -> str:
        return f"{self.grade_label} / {self.subject_name} in {self.committee_name} ({self.time_range})"


def check_conflict(
    observer_id: str,
    session_id: str,
    committee_id: str,
    assignments: Iterable[Assignment],
    index: CalendarIndex,
    committees: Optional[Mapping[str, Committee]] = None,
) -> Optional[ConflictInfo]:
    """Return the first assignment that would overlap with placing the observer here.

    The (session_id, committee_id) pair being evaluated is skipped, so an
    observer already sitting in the target committee never conflicts with
    itself. Sessions missing from the index are ignored.
    """

    target = index.get(session_id)
    if target is None or not observer_id:
        return None

    for a in assignments:
        if a.session_id == session_id and a.committee_id == committee_id:
            continue
        if not a.contains(observer_id):
            continue
        busy = index.get(a.session_id)
        if busy is None or busy.exam_date != target.exam_date:
            continue
        if not is_overlapping(target.start_minutes, target.end_minutes, busy.start_minutes, busy.end_minutes):
            continue

        comm = (committees or {}).get(a.committee_id)
        return ConflictInfo(
            session_id=a.session_id,
            committee_id=a.committee_id,
            grade_label=busy.grade_label,
            subject_name=busy.subject_name,
            committee_name=comm.name if comm else "another committee",
            time_range=busy.time_range,
        )
    return None
