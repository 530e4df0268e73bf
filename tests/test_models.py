import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH when tests are run via `pytest`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.models import (
    RESERVE,
    Assignment,
    AssignmentSnapshot,
    SlotRef,
    snapshot_from_json,
    snapshot_to_json,
)


def test_assignment_slot_helpers():
    a = Assignment.empty("S1", "C1", "term1", 2)
    assert a.observer_ids == (None, None)

    a = a.with_slot(1, "O2").with_slot(RESERVE, "O3")
    assert a.occupants() == ["O2", "O3"]
    assert a.contains("O3") and not a.contains("")
    assert a.get(5) is None

    assert a.without_observer("O3").reserve_observer_id is None
    assert a.resized(3).observer_ids == (None, "O2", None)
    assert a.resized(1).observer_ids == (None,)


def test_snapshot_updates_are_new_values():
    base = AssignmentSnapshot(term="term1")
    ref = SlotRef("S1", "C1", 0)

    updated = base.with_slots({ref: "O1"}, slots=2)

    assert len(base) == 0
    assert updated.slot_value(ref) == "O1"
    assert updated.get("S1", "C1").observer_ids == ("O1", None)
    assert updated.version == 1
    assert len(updated.without([ref.key])) == 0
    assert ref.label() == "S1/C1/observer 1"


def test_snapshot_json_keeps_empty_seats():
    a = Assignment("S1", "C1", "term1", observer_ids=("O1", None), reserve_observer_id=None)
    snap = AssignmentSnapshot(term="term1", assignments={a.key: a}, version=7)

    loaded = snapshot_from_json(snapshot_to_json(snap), term="term1")

    assert loaded == snap
    assert snapshot_from_json(None, term="term2") == AssignmentSnapshot(term="term2")
