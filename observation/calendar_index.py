"""Exam calendar index shared by every grade.

The index maps session id -> time window for one term across *all* grade
levels, because the observer pool is shared school-wide. It is a derived
cache: rebuild it whenever any grade's calendar changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import re

from .models import ExamSession, grade_label


_NON_TIME_RE = re.compile(r"[^0-9:]")


def parse_time_minutes(label: Optional[str]) -> int:
    """Convert a time label like "09:30" or "9:30 ص" to minutes since midnight.

    Anything that does not look like H:M gives 0 (midnight); it never raises.
    """

    if not label:
        return 0
    parts = _NON_TIME_RE.sub("", str(label)).split(":")
    if len(parts) < 2:
        return 0
    hours = int(parts[0]) if parts[0] else 0
    minutes = int(parts[1]) if parts[1] else 0
    return hours * 60 + minutes


@dataclass(frozen=True)
class SessionWindow:
    session_id: str
    exam_date: str
    weekday: str
    start_minutes: int
    end_minutes: int
    grade_level: str
    grade_label: str
    subject_name: str
    time_range: str


CalendarIndex = Dict[str, SessionWindow]


def session_window(session: ExamSession) -> SessionWindow:
    return SessionWindow(
        session_id=session.session_id,
        exam_date=session.exam_date,
        weekday=session.weekday,
        start_minutes=parse_time_minutes(session.time_from),
        end_minutes=parse_time_minutes(session.time_to),
        grade_level=session.grade_level,
        grade_label=grade_label(session.grade_level),
        subject_name=session.subject_name,
        time_range=f"{session.time_from} - {session.time_to}",
    )


def build_index(sessions: Iterable[ExamSession], *, term: Optional[str] = None) -> CalendarIndex:
    """Build the session-id -> window map, optionally restricted to one term."""

    return {
        s.session_id: session_window(s)
        for s in sessions
        if term is None or s.term == term
    }
