from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.calendar_index import build_index
from observation.conflicts import check_conflict, is_overlapping
from observation.models import Assignment, AssignmentSnapshot, Committee, ExamSession


SESSIONS = [
    ExamSession("S1", "p6", "term1", "Arabic", "2026-01-10", "Saturday", "09:00", "11:00"),
    ExamSession("S2", "m3", "term1", "English", "2026-01-10", "Saturday", "10:00", "12:00"),
    ExamSession("S3", "m3", "term1", "Math", "2026-01-11", "Sunday", "09:00", "11:00"),
    ExamSession("S4", "m3", "term1", "Science", "2026-01-10", "Saturday", "11:00", "12:00"),
]

COMMITTEES = {
    "C1": Committee("C1", "Committee 1", "p6"),
    "C2": Committee("C2", "Committee 2", "m3"),
}


def _snapshot() -> AssignmentSnapshot:
    a = Assignment("S1", "C1", "term1", observer_ids=("O", None))
    return AssignmentSnapshot(term="term1", assignments={a.key: a})


def test_is_overlapping_is_strict() -> None:
    assert is_overlapping(540, 660, 600, 720)
    assert not is_overlapping(540, 600, 600, 660)
    assert is_overlapping(540, 720, 600, 660)


def test_overlapping_session_of_another_grade_conflicts() -> None:
    index = build_index(SESSIONS, term="term1")

    info = check_conflict("O", "S2", "C2", _snapshot(), index, COMMITTEES)

    assert info is not None
    assert info.session_id == "S1"
    assert info.committee_name == "Committee 1"
    assert info.subject_name == "Arabic"
    assert info.time_range == "09:00 - 11:00"
    assert "Committee 1" in info.describe()


def test_other_day_and_back_to_back_sessions_do_not_conflict() -> None:
    index = build_index(SESSIONS, term="term1")
    snap = _snapshot()

    assert check_conflict("O", "S3", "C2", snap, index, COMMITTEES) is None
    assert check_conflict("O", "S4", "C2", snap, index, COMMITTEES) is None
    assert check_conflict("someone-else", "S2", "C2", snap, index, COMMITTEES) is None


def test_own_assignment_is_not_a_conflict() -> None:
    index = build_index(SESSIONS, term="term1")

    assert check_conflict("O", "S1", "C1", _snapshot(), index, COMMITTEES) is None


def test_reserve_seat_counts_as_busy() -> None:
    index = build_index(SESSIONS, term="term1")
    a = Assignment("S1", "C1", "term1", observer_ids=(None, None), reserve_observer_id="R")
    snap = AssignmentSnapshot(term="term1", assignments={a.key: a})

    info = check_conflict("R", "S2", "C2", snap, index)

    assert info is not None
    assert info.committee_name == "another committee"
