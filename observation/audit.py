"""Snapshot audit + workload metrics.

Re-checks the assignment rules over a whole snapshot. The store already
enforces them on every mutation; the audit catches data that was edited
outside the engine (roster changes, imported snapshots, old databases).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .calendar_index import CalendarIndex
from .conflicts import is_overlapping
from .eligibility import hard_block_reason
from .models import AssignmentSnapshot, Committee, Observer


@dataclass(frozen=True)
class Violation:
    kind: str  # double_booking | hard_exclusion | duplicate
    observer_id: str
    session_id: str
    committee_id: str
    detail: str = ""


def workload_counts(snapshot: AssignmentSnapshot, observer_ids: Optional[Iterable[str]] = None) -> Dict[str, int]:
    """Appearances (primary or reserve) per observer."""

    counts: Dict[str, int] = {oid: 0 for oid in (observer_ids or [])}
    for a in snapshot:
        for oid in a.occupants():
            counts[oid] = counts.get(oid, 0) + 1
    return counts


def observer_windows(
    snapshot: AssignmentSnapshot,
    index: CalendarIndex,
) -> Dict[str, List[Tuple[str, int, int, str, str]]]:
    """observer_id -> [(date, start, end, session_id, committee_id), ...]"""

    out: Dict[str, List[Tuple[str, int, int, str, str]]] = {}
    for a in snapshot:
        w = index.get(a.session_id)
        if w is None:
            continue
        for oid in set(a.occupants()):
            out.setdefault(oid, []).append((w.exam_date, w.start_minutes, w.end_minutes, a.session_id, a.committee_id))
    return out


def audit_snapshot(
    snapshot: AssignmentSnapshot,
    index: CalendarIndex,
    observers: Mapping[str, Observer],
    committees: Mapping[str, Committee],
) -> List[Violation]:
    violations: List[Violation] = []

    for a in snapshot:
        occupants = a.occupants()
        seen = set()
        for oid in occupants:
            if oid in seen:
                violations.append(Violation("duplicate", oid, a.session_id, a.committee_id, "placed twice in one committee"))
            seen.add(oid)

        comm = committees.get(a.committee_id)
        if comm is None:
            continue
        for oid in seen:
            o = observers.get(oid)
            kind = hard_block_reason(o, comm) if o is not None else None
            if kind is not None:
                violations.append(Violation("hard_exclusion", oid, a.session_id, a.committee_id, f"excluded by {kind}"))

    for oid, windows in observer_windows(snapshot, index).items():
        windows = sorted(windows)
        for i in range(len(windows)):
            d1, s1, e1, sess1, comm1 = windows[i]
            for j in range(i + 1, len(windows)):
                d2, s2, e2, sess2, comm2 = windows[j]
                if d2 != d1:
                    break
                if is_overlapping(s1, e1, s2, e2):
                    violations.append(
                        Violation("double_booking", oid, sess2, comm2, f"overlaps {sess1} in {comm1}")
                    )

    return violations
