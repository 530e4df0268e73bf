"""CRUD operations for the Streamlit UI.

All DB access is centralized here so pages remain clean.

We use simple `sqlite3` + parameterized queries. Rosters come back as plain
dicts (like every other table); assignment snapshots come back as
`observation.models.AssignmentSnapshot` values.

"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional, Sequence

from observation.errors import StaleSnapshotError
from observation.models import TERMS, AssignmentSnapshot, ObserverConfig, snapshot_from_json, snapshot_to_json


logger = logging.getLogger(__name__)


# -----------------
# Helper utilities
# -----------------


def _rows(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    cur = conn.execute(query, params)
    return [dict(r) for r in cur.fetchall()]


def _row(conn: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    cur = conn.execute(query, params)
    r = cur.fetchone()
    return dict(r) if r is not None else None


def _json_list(value: Optional[str]) -> List[str]:
    return [str(x) for x in json.loads(value or "[]")]


# ---------------
# Observer config
# ---------------


def get_observer_config(conn: sqlite3.Connection) -> ObserverConfig:
    s = _row(conn, "SELECT * FROM observer_config WHERE id=1")
    assert s is not None
    return ObserverConfig(
        observers_per_committee=int(s["observers_per_committee"]),
        members_per_correction=int(s["members_per_correction"]),
    )


def update_observer_config(conn: sqlite3.Connection, *, observers_per_committee: int, members_per_correction: int) -> None:
    conn.execute(
        """
        UPDATE observer_config
        SET observers_per_committee=?,
            members_per_correction=?,
            updated_at=datetime('now')
        WHERE id=1
        """,
        (int(observers_per_committee), int(members_per_correction)),
    )


# ---------
# Observers
# ---------


def _observer_row(r: Dict[str, Any]) -> Dict[str, Any]:
    r["excluded_committees"] = _json_list(r.get("excluded_committees_json"))
    r["excluded_grades"] = _json_list(r.get("excluded_grades_json"))
    return r


def list_observers(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    return [_observer_row(r) for r in _rows(conn, "SELECT * FROM observers ORDER BY observer_id")]


def get_observer(conn: sqlite3.Connection, observer_id: str) -> Optional[Dict[str, Any]]:
    r = _row(conn, "SELECT * FROM observers WHERE observer_id=?", (observer_id,))
    return _observer_row(r) if r is not None else None


def upsert_observer(
    conn: sqlite3.Connection,
    *,
    observer_id: str,
    name: str,
    subject: str = "",
    excluded_committees: Iterable[str] = (),
    excluded_grades: Iterable[str] = (),
) -> None:
    excluded_committees = set(excluded_committees)
    excluded_grades = set(excluded_grades)
    conn.execute(
        """
        INSERT INTO observers (observer_id, name, subject, excluded_committees_json, excluded_grades_json)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(observer_id) DO UPDATE SET
            name=excluded.name,
            subject=excluded.subject,
            excluded_committees_json=excluded.excluded_committees_json,
            excluded_grades_json=excluded.excluded_grades_json
        """,
        (
            observer_id,
            name,
            subject,
            json.dumps(sorted(excluded_committees)),
            json.dumps(sorted(excluded_grades)),
        ),
    )
    _release_excluded_seats(conn, observer_id, excluded_committees, excluded_grades)


def _release_excluded_seats(
    conn: sqlite3.Connection,
    observer_id: str,
    excluded_committees: set,
    excluded_grades: set,
) -> None:
    """Blank the observer's seats in committees they are now excluded from."""

    if not excluded_committees and not excluded_grades:
        return
    grade_of = {r["committee_id"]: r["grade_level"] for r in _rows(conn, "SELECT committee_id, grade_level FROM committees")}
    for term in TERMS:
        snap = load_snapshot(conn, term)
        touched = [
            a.without_observer(observer_id)
            for a in snap
            if a.contains(observer_id)
            and (a.committee_id in excluded_committees or grade_of.get(a.committee_id) in excluded_grades)
        ]
        if touched:
            save_snapshot(conn, snap.with_assignments(touched))
            logger.info("Released %d %s seats of observer %s after exclusion change", len(touched), term, observer_id)


def delete_observer(conn: sqlite3.Connection, observer_id: str) -> None:
    """Delete an observer and remove them from every assignment slot of every term."""

    conn.execute("DELETE FROM observers WHERE observer_id=?", (observer_id,))
    for term in TERMS:
        snap = load_snapshot(conn, term)
        touched = [a.without_observer(observer_id) for a in snap if a.contains(observer_id)]
        if touched:
            save_snapshot(conn, snap.with_assignments(touched))
            logger.info("Removed deleted observer %s from %d %s assignments", observer_id, len(touched), term)


# ----------
# Committees
# ----------


def list_committees(conn: sqlite3.Connection, grade_level: Optional[str] = None) -> List[Dict[str, Any]]:
    if grade_level:
        return _rows(conn, "SELECT * FROM committees WHERE grade_level=? ORDER BY committee_id", (grade_level,))
    return _rows(conn, "SELECT * FROM committees ORDER BY grade_level, committee_id")


def upsert_committee(
    conn: sqlite3.Connection,
    *,
    committee_id: str,
    name: str,
    grade_level: str,
    location: str = "",
    capacity: int = 0,
) -> None:
    conn.execute(
        """
        INSERT INTO committees (committee_id, name, grade_level, location, capacity)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(committee_id) DO UPDATE SET
            name=excluded.name,
            grade_level=excluded.grade_level,
            location=excluded.location,
            capacity=excluded.capacity
        """,
        (committee_id, name, grade_level, location, int(capacity)),
    )


def delete_committee(conn: sqlite3.Connection, committee_id: str) -> None:
    """Delete a committee, drop its assignments and forget it in observer exclusions."""

    conn.execute("DELETE FROM committees WHERE committee_id=?", (committee_id,))
    for term in TERMS:
        snap = load_snapshot(conn, term)
        keys = [a.key for a in snap if a.committee_id == committee_id]
        if keys:
            save_snapshot(conn, snap.without(keys))
            logger.info("Dropped %d %s assignments of deleted committee %s", len(keys), term, committee_id)

    for o in list_observers(conn):
        if committee_id in o["excluded_committees"]:
            upsert_observer(
                conn,
                observer_id=o["observer_id"],
                name=o["name"],
                subject=o.get("subject") or "",
                excluded_committees=[c for c in o["excluded_committees"] if c != committee_id],
                excluded_grades=o["excluded_grades"],
            )


# -------------
# Exam calendar
# -------------


def list_exam_sessions(
    conn: sqlite3.Connection,
    *,
    grade_level: Optional[str] = None,
    term: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = "SELECT * FROM exam_sessions"
    clauses: List[str] = []
    params: List[Any] = []
    if grade_level:
        clauses.append("grade_level=?")
        params.append(grade_level)
    if term:
        clauses.append("term=?")
        params.append(term)
    if clauses:
        query += " WHERE " + " AND ".join(clauses)
    query += " ORDER BY exam_date, time_from, session_id"
    return _rows(conn, query, params)


def upsert_exam_session(
    conn: sqlite3.Connection,
    *,
    session_id: str,
    grade_level: str,
    term: str,
    subject_name: str,
    exam_date: str,
    weekday: str = "",
    time_from: str = "",
    time_to: str = "",
    duration: str = "",
) -> None:
    conn.execute(
        """
        INSERT INTO exam_sessions (
            session_id, grade_level, term, subject_name, exam_date, weekday, time_from, time_to, duration
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(session_id) DO UPDATE SET
            grade_level=excluded.grade_level,
            term=excluded.term,
            subject_name=excluded.subject_name,
            exam_date=excluded.exam_date,
            weekday=excluded.weekday,
            time_from=excluded.time_from,
            time_to=excluded.time_to,
            duration=excluded.duration
        """,
        (session_id, grade_level, term, subject_name, exam_date, weekday, time_from, time_to, duration),
    )


def delete_exam_session(conn: sqlite3.Connection, session_id: str) -> None:
    conn.execute("DELETE FROM exam_sessions WHERE session_id=?", (session_id,))
    for term in TERMS:
        snap = load_snapshot(conn, term)
        keys = [a.key for a in snap if a.session_id == session_id]
        if keys:
            save_snapshot(conn, snap.without(keys))


# --------------------
# Assignment snapshots
# --------------------


def load_snapshot(conn: sqlite3.Connection, term: str) -> AssignmentSnapshot:
    r = _row(conn, "SELECT version, snapshot_json FROM assignment_snapshots WHERE term=?", (term,))
    if r is None:
        return AssignmentSnapshot(term=term)
    snap = snapshot_from_json(r.get("snapshot_json"), term=term)
    if snap.version != int(r["version"]):
        snap = AssignmentSnapshot(term=term, assignments=snap.assignments, version=int(r["version"]))
    return snap


def save_snapshot(
    conn: sqlite3.Connection,
    snapshot: AssignmentSnapshot,
    *,
    expected_version: Optional[int] = None,
) -> None:
    """Write a term's snapshot.

    With `expected_version` the write only lands if the stored version still
    matches (a missing row counts as version 0); otherwise
    `StaleSnapshotError` is raised and nothing is written.
    """

    payload = snapshot_to_json(snapshot)
    if expected_version is not None:
        cur = conn.execute(
            """
            UPDATE assignment_snapshots
            SET version=?, snapshot_json=?, updated_at=datetime('now')
            WHERE term=? AND version=?
            """,
            (int(snapshot.version), payload, snapshot.term, int(expected_version)),
        )
        if cur.rowcount == 0 and int(expected_version) == 0:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO assignment_snapshots (term, version, snapshot_json, updated_at)
                VALUES (?, ?, ?, datetime('now'))
                """,
                (snapshot.term, int(snapshot.version), payload),
            )
        if cur.rowcount == 0:
            logger.warning("Stale %s snapshot write (expected version %d)", snapshot.term, expected_version)
            raise StaleSnapshotError(term=snapshot.term, expected_version=int(expected_version))
        return

    conn.execute(
        """
        INSERT INTO assignment_snapshots (term, version, snapshot_json, updated_at)
        VALUES (?, ?, ?, datetime('now'))
        ON CONFLICT(term) DO UPDATE SET
            version=excluded.version,
            snapshot_json=excluded.snapshot_json,
            updated_at=excluded.updated_at
        """,
        (snapshot.term, int(snapshot.version), payload),
    )


def reset_snapshot(conn: sqlite3.Connection, term: str) -> None:
    conn.execute("DELETE FROM assignment_snapshots WHERE term=?", (term,))
