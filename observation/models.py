"""Data model for exam observation (invigilation) planning.

Observers, committees and exam sessions are owned by other screens (roster,
committee setup, exam calendar) and are read-only here. The engine only ever
produces `Assignment` / `AssignmentSnapshot` values.

Snapshots are immutable: every mutation builds a new snapshot from the old one
so the planner and conflict checker can be tested without any persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import json


# ----------------------------
# Constants
# ----------------------------


GRADE_LABELS: Dict[str, str] = {
    "p1": "Primary 1",
    "p2": "Primary 2",
    "p3": "Primary 3",
    "p4": "Primary 4",
    "p5": "Primary 5",
    "p6": "Primary 6",
    "m1": "Preparatory 1",
    "m2": "Preparatory 2",
    "m3": "Preparatory 3",
}

TERMS: Tuple[str, ...] = ("term1", "term2")
TERM_LABELS: Dict[str, str] = {"term1": "First term", "term2": "Second term"}

# Slot index used for the backup observer of an assignment.
RESERVE = "reserve"

SlotIndex = Union[int, str]


def grade_label(grade_level: str) -> str:
    return GRADE_LABELS.get(grade_level, str(grade_level))


# ----------------------------
# Rosters (read-only inputs)
# ----------------------------


@dataclass(frozen=True)
class Observer:
    observer_id: str
    name: str
    subject: str = ""
    # Conflict of interest: committees / whole grades this person must never supervise.
    excluded_committees: FrozenSet[str] = frozenset()
    excluded_grades: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Committee:
    committee_id: str
    name: str
    grade_level: str
    location: str = ""
    capacity: int = 0


@dataclass(frozen=True)
class ExamSession:
    """One subject's exam for one grade and term.

    Times are kept as the labels typed into the calendar screen ("09:00",
    "9:30 am", ...); `calendar_index` converts them to minutes.
    """

    session_id: str
    grade_level: str
    term: str
    subject_name: str
    exam_date: str
    weekday: str = ""
    time_from: str = ""
    time_to: str = ""
    duration: str = ""


@dataclass(frozen=True)
class ObserverConfig:
    """Process-wide distribution settings.

    `members_per_correction` is stored for the correction-committee screen and
    is not used by the observation engine.
    """

    observers_per_committee: int = 2
    members_per_correction: int = 3


# ----------------------------
# Assignments
# ----------------------------


@dataclass(frozen=True)
class SlotRef:
    """Address of one slot: a primary index (0-based) or `RESERVE`."""

    session_id: str
    committee_id: str
    index: SlotIndex

    @property
    def is_reserve(self) -> bool:
        return self.index == RESERVE

    @property
    def key(self) -> Tuple[str, str]:
        return (self.session_id, self.committee_id)

    def label(self) -> str:
        slot = "reserve" if self.is_reserve else f"observer {int(self.index) + 1}"
        return f"{self.session_id}/{self.committee_id}/{slot}"


@dataclass(frozen=True)
class Assignment:
    """Observers placed in one committee for one exam session."""

    session_id: str
    committee_id: str
    term: str
    observer_ids: Tuple[Optional[str], ...] = ()
    reserve_observer_id: Optional[str] = None

    @classmethod
    def empty(cls, session_id: str, committee_id: str, term: str, slots: int) -> "Assignment":
        return cls(
            session_id=session_id,
            committee_id=committee_id,
            term=term,
            observer_ids=tuple([None] * max(0, int(slots))),
        )

    @property
    def key(self) -> Tuple[str, str]:
        return (self.session_id, self.committee_id)

    def occupants(self) -> List[str]:
        """Non-empty observer ids across primary slots and reserve."""

        ids = [oid for oid in self.observer_ids if oid]
        if self.reserve_observer_id:
            ids.append(self.reserve_observer_id)
        return ids

    def contains(self, observer_id: str) -> bool:
        return bool(observer_id) and observer_id in self.occupants()

    def get(self, index: SlotIndex) -> Optional[str]:
        if index == RESERVE:
            return self.reserve_observer_id
        i = int(index)
        if 0 <= i < len(self.observer_ids):
            return self.observer_ids[i]
        return None

    def with_slot(self, index: SlotIndex, observer_id: Optional[str]) -> "Assignment":
        value = observer_id or None
        if index == RESERVE:
            return replace(self, reserve_observer_id=value)
        i = int(index)
        ids = list(self.observer_ids)
        if i >= len(ids):
            ids.extend([None] * (i + 1 - len(ids)))
        ids[i] = value
        return replace(self, observer_ids=tuple(ids))

    def without_observer(self, observer_id: str) -> "Assignment":
        ids = tuple(None if oid == observer_id else oid for oid in self.observer_ids)
        reserve = None if self.reserve_observer_id == observer_id else self.reserve_observer_id
        return replace(self, observer_ids=ids, reserve_observer_id=reserve)

    def resized(self, slots: int) -> "Assignment":
        """Pad with empty slots or drop surplus trailing slots."""

        n = max(0, int(slots))
        ids = list(self.observer_ids[:n])
        ids.extend([None] * (n - len(ids)))
        return replace(self, observer_ids=tuple(ids))


@dataclass(frozen=True)
class AssignmentSnapshot:
    """All assignments of one term, across every grade.

    assignments: mapping (session_id, committee_id) -> assignment
    """

    term: str
    assignments: Dict[Tuple[str, str], Assignment] = field(default_factory=dict)
    version: int = 0

    def __iter__(self) -> Iterator[Assignment]:
        return iter(self.assignments.values())

    def __len__(self) -> int:
        return len(self.assignments)

    def get(self, session_id: str, committee_id: str) -> Optional[Assignment]:
        return self.assignments.get((session_id, committee_id))

    def slot_value(self, ref: SlotRef) -> Optional[str]:
        a = self.assignments.get(ref.key)
        return a.get(ref.index) if a is not None else None

    def with_assignments(self, updated: Iterable[Assignment]) -> "AssignmentSnapshot":
        new_assign = dict(self.assignments)
        for a in updated:
            new_assign[a.key] = a
        return replace(self, assignments=new_assign, version=self.version + 1)

    def with_slots(self, values: Mapping[SlotRef, Optional[str]], *, slots: int) -> "AssignmentSnapshot":
        """Write several slots at once, creating missing assignments with `slots` primaries."""

        new_assign = dict(self.assignments)
        for ref, observer_id in values.items():
            a = new_assign.get(ref.key) or Assignment.empty(ref.session_id, ref.committee_id, self.term, slots)
            new_assign[ref.key] = a.with_slot(ref.index, observer_id)
        return replace(self, assignments=new_assign, version=self.version + 1)

    def without(self, keys: Iterable[Tuple[str, str]]) -> "AssignmentSnapshot":
        drop = set(keys)
        kept = {k: v for k, v in self.assignments.items() if k not in drop}
        return replace(self, assignments=kept, version=self.version + 1)


# -------------------------------------------------
# Problem bundle + loading / saving
# -------------------------------------------------


@dataclass(frozen=True)
class ObservationProblem:
    observers: Dict[str, Observer]
    committees: Dict[str, Committee]
    sessions: Dict[str, ExamSession]
    config: ObserverConfig = ObserverConfig()

    def sessions_for(self, grade_level: str, term: str) -> List[ExamSession]:
        return [s for s in self.sessions.values() if s.grade_level == grade_level and s.term == term]

    def committees_for(self, grade_level: str) -> List[Committee]:
        return [c for c in self.committees.values() if c.grade_level == grade_level]

    def grades(self) -> List[str]:
        present = {c.grade_level for c in self.committees.values()} | {s.grade_level for s in self.sessions.values()}
        ordered = [g for g in GRADE_LABELS if g in present]
        return ordered + sorted(present - set(ordered))


def observer_from_dict(raw: Mapping[str, Any]) -> Observer:
    return Observer(
        observer_id=str(raw["observer_id"]),
        name=str(raw.get("name") or raw["observer_id"]),
        subject=str(raw.get("subject") or ""),
        excluded_committees=frozenset(str(x) for x in raw.get("excluded_committees") or []),
        excluded_grades=frozenset(str(x) for x in raw.get("excluded_grades") or []),
    )


def committee_from_dict(raw: Mapping[str, Any]) -> Committee:
    return Committee(
        committee_id=str(raw["committee_id"]),
        name=str(raw.get("name") or raw["committee_id"]),
        grade_level=str(raw["grade_level"]),
        location=str(raw.get("location") or ""),
        capacity=int(raw.get("capacity") or 0),
    )


def session_from_dict(raw: Mapping[str, Any]) -> ExamSession:
    return ExamSession(
        session_id=str(raw["session_id"]),
        grade_level=str(raw["grade_level"]),
        term=str(raw.get("term") or "term1"),
        subject_name=str(raw.get("subject_name") or ""),
        exam_date=str(raw.get("exam_date") or ""),
        weekday=str(raw.get("weekday") or ""),
        time_from=str(raw.get("time_from") or ""),
        time_to=str(raw.get("time_to") or ""),
        duration=str(raw.get("duration") or ""),
    )


def assignment_to_dict(a: Assignment) -> Dict[str, Any]:
    return {
        "session_id": a.session_id,
        "committee_id": a.committee_id,
        "term": a.term,
        "observer_ids": [oid or "" for oid in a.observer_ids],
        "reserve_observer_id": a.reserve_observer_id or "",
    }


def assignment_from_dict(raw: Mapping[str, Any], *, term: str) -> Assignment:
    return Assignment(
        session_id=str(raw["session_id"]),
        committee_id=str(raw["committee_id"]),
        term=str(raw.get("term") or term),
        observer_ids=tuple((str(x) if x else None) for x in raw.get("observer_ids") or []),
        reserve_observer_id=(str(raw["reserve_observer_id"]) if raw.get("reserve_observer_id") else None),
    )


def snapshot_to_json(snapshot: AssignmentSnapshot) -> str:
    payload = {
        "term": snapshot.term,
        "version": snapshot.version,
        "assignments": [assignment_to_dict(a) for a in snapshot],
    }
    return json.dumps(payload, ensure_ascii=False)


def snapshot_from_json(text: Optional[str], *, term: str) -> AssignmentSnapshot:
    if not text:
        return AssignmentSnapshot(term=term)
    raw = json.loads(text)
    assignments: Dict[Tuple[str, str], Assignment] = {}
    for item in raw.get("assignments") or []:
        a = assignment_from_dict(item, term=term)
        assignments[a.key] = a
    return AssignmentSnapshot(term=term, assignments=assignments, version=int(raw.get("version") or 0))


def load_problem_from_json(path: str) -> ObservationProblem:
    """Load an `ObservationProblem` from a JSON file."""

    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    observers = {o.observer_id: o for o in (observer_from_dict(x) for x in raw.get("observers") or [])}
    committees = {c.committee_id: c for c in (committee_from_dict(x) for x in raw.get("committees") or [])}
    sessions = {s.session_id: s for s in (session_from_dict(x) for x in raw.get("sessions") or [])}

    cfg = raw.get("config") or {}
    config = ObserverConfig(
        observers_per_committee=int(cfg.get("observers_per_committee", 2)),
        members_per_correction=int(cfg.get("members_per_correction", 3)),
    )
    return ObservationProblem(observers=observers, committees=committees, sessions=sessions, config=config)
