from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.errors import (
    DuplicateObserverError,
    HardExclusionViolation,
    TimeConflictViolation,
    UnknownReferenceError,
)
from observation.models import (
    RESERVE,
    Assignment,
    AssignmentSnapshot,
    Committee,
    ExamSession,
    Observer,
    ObserverConfig,
    SlotRef,
)
from observation.store import AssignmentStore


def _store(assignments=(), *, on_commit=None) -> AssignmentStore:
    observers = {
        "O1": Observer("O1", "Ahmed", excluded_committees=frozenset({"C7"})),
        "O2": Observer("O2", "Mona", excluded_grades=frozenset({"m3"})),
        "O3": Observer("O3", "Karim"),
        "O4": Observer("O4", "Hoda"),
    }
    committees = {
        "C1": Committee("C1", "Committee 1", "p6"),
        "C7": Committee("C7", "Committee 7", "p6"),
        "C9": Committee("C9", "Committee 9", "m3"),
    }
    sessions = {
        "S1": ExamSession("S1", "p6", "term1", "Arabic", "2026-01-10", "Saturday", "09:00", "11:00"),
        "S2": ExamSession("S2", "m3", "term1", "English", "2026-01-10", "Saturday", "10:00", "12:00"),
        "S3": ExamSession("S3", "m3", "term1", "Math", "2026-01-11", "Sunday", "09:00", "11:00"),
    }
    snap = AssignmentSnapshot(term="term1", assignments={a.key: a for a in assignments})
    return AssignmentStore(
        snap,
        observers=observers,
        committees=committees,
        sessions=sessions,
        config=ObserverConfig(observers_per_committee=2),
        on_commit=on_commit,
    )


def test_set_slot_creates_assignment_and_persists() -> None:
    saved = []
    store = _store(on_commit=saved.append)

    snap = store.set_slot(SlotRef("S1", "C1", 0), "O3")

    a = snap.get("S1", "C1")
    assert a.observer_ids == ("O3", None)
    assert saved == [snap]
    assert store.snapshot is snap
    assert snap.version == 1


def test_excluded_committee_is_rejected_without_mutation() -> None:
    store = _store()
    before = store.snapshot

    with pytest.raises(HardExclusionViolation) as exc:
        store.set_slot(SlotRef("S1", "C7", 0), "O1")

    assert exc.value.kind == "committee"
    assert "Committee 7" in exc.value.reason
    assert store.snapshot is before
    assert store.get_slot(SlotRef("S1", "C7", 0)) is None


def test_excluded_grade_is_rejected() -> None:
    store = _store()

    with pytest.raises(HardExclusionViolation) as exc:
        store.set_slot(SlotRef("S3", "C9", RESERVE), "O2")

    assert exc.value.kind == "grade"


def test_set_slot_rejects_time_conflict_and_duplicates() -> None:
    busy = Assignment("S1", "C1", "term1", observer_ids=("O3", None))
    store = _store([busy])

    with pytest.raises(TimeConflictViolation) as exc:
        store.set_slot(SlotRef("S2", "C9", 0), "O3")
    assert "Committee 1" in exc.value.reason

    with pytest.raises(DuplicateObserverError):
        store.set_slot(SlotRef("S1", "C1", RESERVE), "O3")

    # Re-writing the same seat with the same person is fine.
    store.set_slot(SlotRef("S1", "C1", 0), "O3")
    store.set_slot(SlotRef("S3", "C9", 0), "O3")


def test_clear_slot_and_unknown_references() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", "O4"))])

    store.clear_slot(SlotRef("S1", "C1", 1))
    assert store.snapshot.get("S1", "C1").observer_ids == ("O3", None)

    with pytest.raises(UnknownReferenceError):
        store.set_slot(SlotRef("S1", "C1", 2), "O4")
    with pytest.raises(UnknownReferenceError):
        store.set_slot(SlotRef("S9", "C1", 0), "O4")
    with pytest.raises(UnknownReferenceError):
        store.set_slot(SlotRef("S1", "C404", 0), "O4")
    with pytest.raises(UnknownReferenceError):
        store.set_slot(SlotRef("S1", "C1", 1), "nobody")


def test_swap_exchanges_exactly_two_slots() -> None:
    a = Assignment("S1", "C1", "term1", observer_ids=("O3", "O2"), reserve_observer_id="O4")
    b = Assignment("S3", "C9", "term1", observer_ids=("O1", None))
    store = _store([a, b])

    assert store.swap_slots(SlotRef("S1", "C1", 0), SlotRef("S3", "C9", 0)) is True

    snap = store.snapshot
    assert snap.get("S1", "C1").observer_ids == ("O1", "O2")
    assert snap.get("S1", "C1").reserve_observer_id == "O4"
    assert snap.get("S3", "C9").observer_ids == ("O3", None)


def test_swap_into_empty_slot_moves_the_observer() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", None))])

    assert store.swap_slots(SlotRef("S1", "C1", 0), SlotRef("S1", "C7", RESERVE))

    assert store.snapshot.get("S1", "C1").observer_ids == (None, None)
    assert store.snapshot.get("S1", "C7").reserve_observer_id == "O3"


def test_swap_blocked_into_empty_slot_aborts() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O1", None))])
    before = store.snapshot

    with pytest.raises(HardExclusionViolation):
        store.swap_slots(SlotRef("S1", "C1", 0), SlotRef("S1", "C7", 0))

    assert store.snapshot is before
    assert store.get_slot(SlotRef("S1", "C1", 0)) == "O1"
    assert store.get_slot(SlotRef("S1", "C7", 0)) is None


def test_swap_rejects_time_conflict_for_source_occupant() -> None:
    # O4 moving to S2 would clash with their own S1 seat in committee C7.
    a = Assignment("S1", "C1", "term1", observer_ids=("O3", None))
    c7 = Assignment("S1", "C7", "term1", observer_ids=("O4", None))
    s3 = Assignment("S3", "C9", "term1", observer_ids=("O4", None))
    store = _store([a, c7, s3])
    before = store.snapshot

    with pytest.raises(TimeConflictViolation):
        store.swap_slots(SlotRef("S3", "C9", 0), SlotRef("S2", "C9", 0))

    assert store.snapshot is before


def test_swap_rejects_target_occupant_excluded_from_source_committee() -> None:
    # O3 may sit in C1, but O1 is excluded from C7.
    c7 = Assignment("S1", "C7", "term1", observer_ids=("O3", None))
    c1 = Assignment("S1", "C1", "term1", observer_ids=("O1", None))
    store = _store([c7, c1])
    before = store.snapshot

    with pytest.raises(HardExclusionViolation) as exc:
        store.swap_slots(SlotRef("S1", "C7", 0), SlotRef("S1", "C1", 0))

    assert exc.value.observer_id == "O1"
    assert exc.value.committee_id == "C7"
    assert store.snapshot is before
    assert store.get_slot(SlotRef("S1", "C7", 0)) == "O3"
    assert store.get_slot(SlotRef("S1", "C1", 0)) == "O1"


def test_swap_rejects_time_conflict_for_target_occupant() -> None:
    # The source seat is empty; O4 moving into S2 would clash with their S1 seat.
    c7 = Assignment("S1", "C7", "term1", observer_ids=("O4", None))
    s3 = Assignment("S3", "C9", "term1", observer_ids=("O4", None))
    store = _store([c7, s3])
    before = store.snapshot

    with pytest.raises(TimeConflictViolation) as exc:
        store.swap_slots(SlotRef("S2", "C9", 0), SlotRef("S3", "C9", 0))

    assert exc.value.observer_id == "O4"
    assert store.snapshot is before
    assert store.snapshot.get("S2", "C9") is None
    assert store.get_slot(SlotRef("S3", "C9", 0)) == "O4"


def test_swap_within_one_committee_is_not_a_duplicate() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", "O4"))])

    assert store.swap_slots(SlotRef("S1", "C1", 0), SlotRef("S1", "C1", 1))
    assert store.snapshot.get("S1", "C1").observer_ids == ("O4", "O3")


def test_swap_noops() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", None))])
    before = store.snapshot

    assert store.swap_slots(SlotRef("S1", "C1", 0), SlotRef("S1", "C1", 0)) is False
    assert store.swap_slots(SlotRef("S1", "C1", 1), SlotRef("S1", "C7", 0)) is False
    assert store.snapshot is before


def test_auto_distribute_commits_one_snapshot() -> None:
    saved = []
    store = _store(on_commit=saved.append)

    result = store.auto_distribute("p6", rng=random.Random(2))

    assert len(saved) == 1
    assert store.snapshot is result.snapshot
    assert "O1" not in store.snapshot.get("S1", "C7").occupants()


def test_replace_rejects_other_term() -> None:
    store = _store()

    with pytest.raises(UnknownReferenceError):
        store.replace(AssignmentSnapshot(term="term2"))


def test_replace_commits_one_version_past_current() -> None:
    saved = []
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", None))], on_commit=saved.append)

    committed = store.replace(AssignmentSnapshot(term="term1", version=42))

    assert committed.version == 1
    assert saved == [committed]
    assert store.snapshot is committed
    assert len(committed) == 0


def test_read_side_returns_copies() -> None:
    store = _store()

    store.observers.pop("O1")
    store.committees.clear()
    store.sessions.pop("S1")
    store.index.pop("S1")

    assert "O1" in store.observers
    assert set(store.committees) == {"C1", "C7", "C9"}
    assert "S1" in store.sessions
    assert "S1" in store.index
    store.set_slot(SlotRef("S1", "C1", 0), "O1")


def test_cascades_remove_observer_committee_and_session() -> None:
    store = _store(
        [
            Assignment("S1", "C1", "term1", observer_ids=("O3", "O4"), reserve_observer_id="O2"),
            Assignment("S1", "C7", "term1", observer_ids=("O2", None)),
            Assignment("S3", "C9", "term1", observer_ids=("O4", None)),
        ]
    )

    store.remove_observer("O2")
    assert store.snapshot.get("S1", "C1").reserve_observer_id is None
    assert store.snapshot.get("S1", "C7").observer_ids == (None, None)
    assert "O2" not in store.observers

    store.remove_committee("C7")
    assert store.snapshot.get("S1", "C7") is None

    store.remove_session("S3")
    assert store.snapshot.get("S3", "C9") is None
    assert "S3" not in store.index
    assert len(store.snapshot) == 1


def test_resize_pads_and_truncates() -> None:
    store = _store([Assignment("S1", "C1", "term1", observer_ids=("O3", "O4"), reserve_observer_id="O2")])

    store.resize(3)
    assert store.snapshot.get("S1", "C1").observer_ids == ("O3", "O4", None)
    store.set_slot(SlotRef("S3", "C9", 2), "O1")
    assert store.snapshot.get("S3", "C9").observer_ids == (None, None, "O1")

    store.resize(1)
    a = store.snapshot.get("S1", "C1")
    assert a.observer_ids == ("O3",)
    assert a.reserve_observer_id == "O2"
    assert store.config.observers_per_committee == 1

    with pytest.raises(ValueError):
        store.resize(0)
