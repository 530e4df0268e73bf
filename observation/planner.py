"""Automatic observer distribution for one grade and term.

A greedy, single pass over the grade's exams in chronological order:

- assignments of every *other* grade are kept verbatim and seed the workload
  counters
- for each exam, each committee, each primary slot and then the reserve, the
  least-loaded observer that is not hard-blocked, not already in that
  committee and not busy elsewhere at that time is chosen
- ties on workload are broken with the injected RNG
- a slot with no eligible candidate is left empty; the run continues

Partial results are written to the working set immediately, which is what
lets the conflict checker see earlier picks of the same run. This is not a
backtracking solver: tight rosters can leave slots unfilled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import logging
import random

from .calendar_index import CalendarIndex, build_index, parse_time_minutes
from .conflicts import check_conflict
from .eligibility import is_hard_blocked
from .errors import PreconditionMissing
from .models import (
    RESERVE,
    Assignment,
    AssignmentSnapshot,
    Committee,
    ExamSession,
    Observer,
    ObserverConfig,
    SlotIndex,
    SlotRef,
    grade_label,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
    snapshot: AssignmentSnapshot
    grade_level: str
    term: str
    filled_slots: int
    unfilled: Tuple[SlotRef, ...]
    workload: Dict[str, int]

    @property
    def total_slots(self) -> int:
        return self.filled_slots + len(self.unfilled)


def _assignment_grade(
    a: Assignment,
    index: CalendarIndex,
    committees: Dict[str, Committee],
) -> Optional[str]:
    window = index.get(a.session_id)
    if window is not None:
        return window.grade_level
    comm = committees.get(a.committee_id)
    return comm.grade_level if comm is not None else None


def _pick_least_loaded(
    candidates: Sequence[Observer],
    workload: Dict[str, int],
    rng: random.Random,
) -> Optional[Observer]:
    if not candidates:
        return None
    lowest = min(workload.get(o.observer_id, 0) for o in candidates)
    pool = [o for o in candidates if workload.get(o.observer_id, 0) == lowest]
    return pool[0] if len(pool) == 1 else rng.choice(pool)


def plan_grade(
    grade_level: str,
    term: str,
    sessions: Iterable[ExamSession],
    committees: Iterable[Committee],
    observers: Iterable[Observer],
    config: ObserverConfig,
    current: AssignmentSnapshot,
    *,
    index: Optional[CalendarIndex] = None,
    rng: Optional[random.Random] = None,
) -> PlanResult:
    """Rebuild every assignment of `grade_level` in `term`.

    Args:
        sessions: The exam calendar. May contain every grade; only the target
            grade's sessions are planned, the rest feed the calendar index.
        committees: All committees (other grades are used for names only).
        index: Prebuilt calendar index for `term`; built from `sessions` if omitted.
        rng: Tie-break source. Pass a seeded `random.Random` for repeatable runs.

    Raises:
        PreconditionMissing: no observers, or no sessions / committees for the grade.
    """

    rng = rng or random.Random()
    all_sessions = list(sessions)
    all_committees = {c.committee_id: c for c in committees}
    roster = list(observers)

    if index is None:
        index = build_index(all_sessions, term=term)

    grade_sessions = [s for s in all_sessions if s.grade_level == grade_level and s.term == term]
    grade_committees = [c for c in all_committees.values() if c.grade_level == grade_level]

    if not roster:
        logger.warning("Auto-distribution aborted for %s/%s: no observers", grade_level, term)
        raise PreconditionMissing("No observers registered. Add observers first.")
    if not grade_sessions:
        logger.warning("Auto-distribution aborted for %s/%s: no exam sessions", grade_level, term)
        raise PreconditionMissing(f"No exam sessions for {grade_label(grade_level)} in {term}.")
    if not grade_committees:
        logger.warning("Auto-distribution aborted for %s/%s: no committees", grade_level, term)
        raise PreconditionMissing(f"No committees for {grade_label(grade_level)}.")

    # Keep other grades verbatim; this grade is rebuilt from scratch.
    working: Dict[Tuple[str, str], Assignment] = {
        key: a
        for key, a in current.assignments.items()
        if _assignment_grade(a, index, all_committees) != grade_level
    }

    workload: Dict[str, int] = {o.observer_id: 0 for o in roster}
    for a in working.values():
        for oid in a.occupants():
            if oid in workload:
                workload[oid] += 1

    ordered = sorted(grade_sessions, key=lambda s: (s.exam_date, parse_time_minutes(s.time_from)))
    slots = max(0, int(config.observers_per_committee))

    filled = 0
    unfilled: List[SlotRef] = []

    for session in ordered:
        for comm in grade_committees:
            key = (session.session_id, comm.committee_id)
            assignment = Assignment.empty(session.session_id, comm.committee_id, term, slots)
            working[key] = assignment

            slot_order: List[SlotIndex] = list(range(slots)) + [RESERVE]
            for slot in slot_order:
                candidates = [
                    o
                    for o in roster
                    if not assignment.contains(o.observer_id)
                    and not is_hard_blocked(o, comm)
                    and check_conflict(
                        o.observer_id,
                        session.session_id,
                        comm.committee_id,
                        working.values(),
                        index,
                        all_committees,
                    )
                    is None
                ]
                chosen = _pick_least_loaded(candidates, workload, rng)
                ref = SlotRef(session.session_id, comm.committee_id, slot)
                if chosen is None:
                    unfilled.append(ref)
                    logger.debug("No eligible observer for %s", ref.label())
                    continue

                workload[chosen.observer_id] += 1
                assignment = assignment.with_slot(slot, chosen.observer_id)
                working[key] = assignment
                filled += 1
                logger.debug("Placed %s in %s", chosen.observer_id, ref.label())

    snapshot = AssignmentSnapshot(term=term, assignments=working, version=current.version + 1)
    logger.info(
        "Auto-distribution for %s/%s: %d slots filled, %d left empty",
        grade_level,
        term,
        filled,
        len(unfilled),
    )
    return PlanResult(
        snapshot=snapshot,
        grade_level=grade_level,
        term=term,
        filled_slots=filled,
        unfilled=tuple(unfilled),
        workload=workload,
    )
