"""Bridge between the SQLite rows and the observation engine types."""

from __future__ import annotations

from typing import Optional

from observation.models import (
    AssignmentSnapshot,
    ObservationProblem,
    committee_from_dict,
    observer_from_dict,
    session_from_dict,
)
from observation.store import AssignmentStore
from ui.database import crud
from ui.database.db import DBConfig, db_session


def build_problem_from_db(*, term: Optional[str] = None, config: Optional[DBConfig] = None) -> ObservationProblem:
    """Load rosters, calendar (all grades) and config into an `ObservationProblem`."""

    with db_session(config) as conn:
        observers_raw = crud.list_observers(conn)
        committees_raw = crud.list_committees(conn)
        sessions_raw = crud.list_exam_sessions(conn, term=term)
        obs_config = crud.get_observer_config(conn)

    observers = {o.observer_id: o for o in (observer_from_dict(r) for r in observers_raw)}
    committees = {c.committee_id: c for c in (committee_from_dict(r) for r in committees_raw)}
    sessions = {s.session_id: s for s in (session_from_dict(r) for r in sessions_raw)}
    return ObservationProblem(observers=observers, committees=committees, sessions=sessions, config=obs_config)


def persist_snapshot(
    snapshot: AssignmentSnapshot,
    *,
    config: Optional[DBConfig] = None,
    expected_version: Optional[int] = None,
) -> None:
    with db_session(config) as conn:
        crud.save_snapshot(conn, snapshot, expected_version=expected_version)


def open_store(term: str, *, config: Optional[DBConfig] = None) -> AssignmentStore:
    """Build an `AssignmentStore` for `term` that writes every commit back to SQLite.

    Each write only lands on top of the version this store last saw, so a
    second store opened on the same term gets `StaleSnapshotError` instead of
    overwriting newer work.
    """

    problem = build_problem_from_db(term=term, config=config)
    with db_session(config) as conn:
        snapshot = crud.load_snapshot(conn, term)

    return AssignmentStore.from_problem(
        problem,
        snapshot,
        on_commit=lambda snap: persist_snapshot(snap, config=config, expected_version=snap.version - 1),
    )
