"""Hard exclusions (committee or whole-grade bans) and slot candidate preview."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional

from .calendar_index import CalendarIndex
from .conflicts import check_conflict
from .models import AssignmentSnapshot, Committee, Observer, SlotIndex


def hard_block_reason(observer: Observer, committee: Committee) -> Optional[str]:
    """Return "committee" / "grade" when the observer may never sit in this committee."""

    if committee.committee_id in observer.excluded_committees:
        return "committee"
    if committee.grade_level in observer.excluded_grades:
        return "grade"
    return None


def is_hard_blocked(observer: Observer, committee: Committee) -> bool:
    return hard_block_reason(observer, committee) is not None


@dataclass(frozen=True)
class CandidateStatus:
    observer_id: str
    name: str
    available: bool
    reason: str = ""


def slot_candidates(
    observers: Iterable[Observer],
    *,
    session_id: str,
    committee: Committee,
    index: SlotIndex,
    snapshot: AssignmentSnapshot,
    calendar: CalendarIndex,
    committees: Optional[Mapping[str, Committee]] = None,
) -> List[CandidateStatus]:
    """Classify every observer for one slot, used to build manual-edit choices.

    The observer currently holding the slot stays available so that the
    current value can be shown as selected.
    """

    current = snapshot.get(session_id, committee.committee_id)
    out: List[CandidateStatus] = []
    for o in observers:
        reason = ""
        block = hard_block_reason(o, committee)
        if block == "committee":
            reason = "excluded from this committee"
        elif block == "grade":
            reason = "excluded from this grade"
        elif current is not None and current.contains(o.observer_id) and current.get(index) != o.observer_id:
            reason = "already in this committee"
        else:
            conflict = check_conflict(o.observer_id, session_id, committee.committee_id, snapshot, calendar, committees)
            if conflict is not None:
                reason = f"busy: {conflict.describe()}"
        out.append(CandidateStatus(observer_id=o.observer_id, name=o.name, available=not reason, reason=reason))
    return out
