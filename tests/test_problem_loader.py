from __future__ import annotations

import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from observation.errors import StaleSnapshotError
from observation.models import SlotRef, load_problem_from_json
from ui.database.db import db_session
from ui.database import crud
from ui.utils.problem_loader import build_problem_from_db, open_store


def _seed_db() -> None:
    with db_session() as conn:
        crud.upsert_observer(conn, observer_id="O1", name="Ahmed", excluded_grades=["m3"])
        crud.upsert_observer(conn, observer_id="O2", name="Mona")
        crud.upsert_observer(conn, observer_id="O3", name="Karim")
        crud.upsert_committee(conn, committee_id="C1", name="Committee 1", grade_level="p6")
        crud.upsert_exam_session(
            conn, session_id="S1", grade_level="p6", term="term1", subject_name="Arabic",
            exam_date="2026-01-10", time_from="09:00", time_to="11:00",
        )
        crud.upsert_exam_session(
            conn, session_id="S2", grade_level="p6", term="term2", subject_name="Arabic",
            exam_date="2026-05-16", time_from="09:00", time_to="11:00",
        )


def test_build_problem_from_db_smoke(tmp_path, monkeypatch):
    monkeypatch.setenv("EXAM_OBSERVERS_DB", str(tmp_path / "observers.db"))

    # Should not crash, even if empty.
    empty = build_problem_from_db(term="term1")
    assert empty.observers == {}
    assert empty.config.observers_per_committee == 2

    _seed_db()
    problem = build_problem_from_db(term="term1")
    assert set(problem.sessions) == {"S1"}
    assert problem.observers["O1"].excluded_grades == frozenset({"m3"})
    assert problem.grades() == ["p6"]


def test_open_store_persists_every_commit(tmp_path, monkeypatch):
    monkeypatch.setenv("EXAM_OBSERVERS_DB", str(tmp_path / "observers.db"))
    _seed_db()

    store = open_store("term1")
    store.auto_distribute("p6", rng=random.Random(5))
    store.clear_slot(SlotRef("S1", "C1", "reserve"))

    reopened = open_store("term1")
    a = reopened.snapshot.get("S1", "C1")
    assert len(a.observer_ids) == 2
    assert None not in a.observer_ids
    assert a.reserve_observer_id is None
    assert reopened.snapshot.version == store.snapshot.version
    assert len(open_store("term2").snapshot) == 0


def test_second_store_cannot_overwrite_newer_commit(tmp_path, monkeypatch):
    monkeypatch.setenv("EXAM_OBSERVERS_DB", str(tmp_path / "observers.db"))
    _seed_db()
    ref = SlotRef("S1", "C1", 0)

    first = open_store("term1")
    second = open_store("term1")
    first.set_slot(ref, "O2")

    before = second.snapshot
    with pytest.raises(StaleSnapshotError):
        second.set_slot(ref, "O3")

    assert second.snapshot is before
    with db_session() as conn:
        saved = crud.load_snapshot(conn, "term1")
    assert saved.slot_value(ref) == "O2"
    assert saved.version == first.snapshot.version == 1

    # A reloaded store picks up from the saved version.
    fresh = open_store("term1")
    fresh.set_slot(ref, "O3")
    assert open_store("term1").snapshot.slot_value(ref) == "O3"


def test_sample_problem_loads() -> None:
    problem = load_problem_from_json(str(ROOT / "data" / "sample_observation_problem.json"))

    assert len(problem.observers) == 10
    assert problem.grades() == ["p6", "m3"]
    assert [s.session_id for s in problem.sessions_for("p6", "term1")] == ["S001", "S002"]
    assert problem.observers["O004"].excluded_committees == frozenset({"C002"})
