"""Assignment store: the single writer for one term's snapshot.

Every mutation validates against the full snapshot, builds a new snapshot and
swaps it in under one lock. Persisting is delegated to `on_commit`, which runs
before the in-memory swap so a failed save leaves the store unchanged.
"""

from __future__ import annotations

from dataclasses import replace as _replace
from typing import Callable, Dict, Mapping, Optional

import logging
import random
import threading

from .calendar_index import CalendarIndex, build_index
from .conflicts import check_conflict
from .eligibility import hard_block_reason
from .errors import (
    DuplicateObserverError,
    HardExclusionViolation,
    TimeConflictViolation,
    UnknownReferenceError,
)
from .models import (
    RESERVE,
    AssignmentSnapshot,
    Committee,
    ExamSession,
    ObservationProblem,
    Observer,
    ObserverConfig,
    SlotRef,
)
from .planner import PlanResult, plan_grade


logger = logging.getLogger(__name__)

CommitFn = Callable[[AssignmentSnapshot], None]


class AssignmentStore:
    def __init__(
        self,
        snapshot: AssignmentSnapshot,
        *,
        observers: Mapping[str, Observer],
        committees: Mapping[str, Committee],
        sessions: Mapping[str, ExamSession],
        config: ObserverConfig = ObserverConfig(),
        on_commit: Optional[CommitFn] = None,
    ):
        self._snapshot = snapshot
        self._observers: Dict[str, Observer] = dict(observers)
        self._committees: Dict[str, Committee] = dict(committees)
        self._sessions: Dict[str, ExamSession] = dict(sessions)
        self._index: CalendarIndex = build_index(self._sessions.values(), term=snapshot.term)
        self._config = config
        self._on_commit = on_commit
        self._lock = threading.RLock()

    @classmethod
    def from_problem(
        cls,
        problem: ObservationProblem,
        snapshot: AssignmentSnapshot,
        *,
        on_commit: Optional[CommitFn] = None,
    ) -> "AssignmentStore":
        return cls(
            snapshot,
            observers=problem.observers,
            committees=problem.committees,
            sessions=problem.sessions,
            config=problem.config,
            on_commit=on_commit,
        )

    # -----------------
    # Read side
    # -----------------

    @property
    def snapshot(self) -> AssignmentSnapshot:
        with self._lock:
            return self._snapshot

    @property
    def term(self) -> str:
        return self._snapshot.term

    @property
    def index(self) -> CalendarIndex:
        with self._lock:
            return dict(self._index)

    @property
    def config(self) -> ObserverConfig:
        return self._config

    @property
    def observers(self) -> Dict[str, Observer]:
        with self._lock:
            return dict(self._observers)

    @property
    def committees(self) -> Dict[str, Committee]:
        with self._lock:
            return dict(self._committees)

    @property
    def sessions(self) -> Dict[str, ExamSession]:
        with self._lock:
            return dict(self._sessions)

    def get_slot(self, ref: SlotRef) -> Optional[str]:
        return self.snapshot.slot_value(ref)

    def observer_name(self, observer_id: Optional[str]) -> str:
        o = self._observers.get(observer_id or "")
        return o.name if o else str(observer_id or "")

    # -----------------
    # Validation helpers
    # -----------------

    def _slot_count(self, ref: SlotRef, snapshot: AssignmentSnapshot) -> int:
        a = snapshot.get(ref.session_id, ref.committee_id)
        existing = len(a.observer_ids) if a is not None else 0
        return max(existing, int(self._config.observers_per_committee))

    def _check_ref(self, ref: SlotRef, snapshot: AssignmentSnapshot) -> Committee:
        if ref.session_id not in self._index:
            raise UnknownReferenceError(f"Unknown exam session {ref.session_id} for {snapshot.term}.")
        comm = self._committees.get(ref.committee_id)
        if comm is None:
            raise UnknownReferenceError(f"Unknown committee {ref.committee_id}.")
        if ref.index != RESERVE:
            if not isinstance(ref.index, int) or not 0 <= ref.index < self._slot_count(ref, snapshot):
                raise UnknownReferenceError(f"Observer slot {ref.index!r} is out of range.")
        return comm

    def _check_hard_block(self, observer_id: Optional[str], comm: Committee) -> None:
        o = self._observers.get(observer_id or "")
        if o is None:
            return
        kind = hard_block_reason(o, comm)
        if kind is not None:
            raise HardExclusionViolation(
                observer_id=o.observer_id,
                observer_name=o.name,
                committee_id=comm.committee_id,
                committee_name=comm.name,
                kind=kind,
            )

    def _check_placement(self, observer_id: Optional[str], ref: SlotRef, comm: Committee, snapshot: AssignmentSnapshot) -> None:
        """Duplicate + time checks for one observer landing in `ref` (slot already cleared in snapshot)."""

        if not observer_id:
            return
        a = snapshot.get(ref.session_id, ref.committee_id)
        if a is not None and a.contains(observer_id):
            raise DuplicateObserverError(
                observer_id=observer_id,
                observer_name=self.observer_name(observer_id),
                committee_name=comm.name,
            )
        conflict = check_conflict(observer_id, ref.session_id, ref.committee_id, snapshot, self._index, self._committees)
        if conflict is not None:
            raise TimeConflictViolation(
                observer_id=observer_id,
                observer_name=self.observer_name(observer_id),
                conflict=conflict,
            )

    def _commit(self, new_snapshot: AssignmentSnapshot) -> AssignmentSnapshot:
        # Each commit is exactly one version past the snapshot it replaces.
        version = self._snapshot.version + 1
        if new_snapshot.version != version:
            new_snapshot = _replace(new_snapshot, version=version)
        if self._on_commit is not None:
            self._on_commit(new_snapshot)
        self._snapshot = new_snapshot
        return new_snapshot

    # -----------------
    # Mutations
    # -----------------

    def set_slot(self, ref: SlotRef, observer_id: Optional[str]) -> AssignmentSnapshot:
        """Place `observer_id` in one slot (None clears it).

        Rejects hard exclusions, a second seat in the same committee and time
        conflicts; the snapshot is untouched on rejection.
        """

        with self._lock:
            snap = self._snapshot
            comm = self._check_ref(ref, snap)
            if observer_id:
                if observer_id not in self._observers:
                    raise UnknownReferenceError(f"Unknown observer {observer_id}.")
                try:
                    self._check_hard_block(observer_id, comm)
                    cleared = snap.with_slots({ref: None}, slots=self._config.observers_per_committee)
                    self._check_placement(observer_id, ref, comm, cleared)
                except (HardExclusionViolation, DuplicateObserverError, TimeConflictViolation) as exc:
                    logger.warning("Rejected %s -> %s: %s", observer_id, ref.label(), exc.reason)
                    raise

            new_snap = snap.with_slots({ref: observer_id}, slots=self._config.observers_per_committee)
            return self._commit(new_snap)

    def clear_slot(self, ref: SlotRef) -> AssignmentSnapshot:
        return self.set_slot(ref, None)

    def swap_slots(self, a: SlotRef, b: SlotRef) -> bool:
        """Exchange the occupants of two slots atomically.

        Returns False for the no-op cases (same slot twice, both slots
        empty). Both directions
        are validated against the snapshot with both slots emptied; nothing is
        written unless both pass.
        """

        with self._lock:
            if a == b:
                return False

            snap = self._snapshot
            comm_a = self._check_ref(a, snap)
            comm_b = self._check_ref(b, snap)
            at_a = snap.slot_value(a)
            at_b = snap.slot_value(b)
            if not at_a and not at_b:
                return False

            try:
                self._check_hard_block(at_a, comm_b)
                self._check_hard_block(at_b, comm_a)

                cleared = snap.with_slots({a: None, b: None}, slots=self._config.observers_per_committee)
                self._check_placement(at_a, b, comm_b, cleared)
                self._check_placement(at_b, a, comm_a, cleared)
            except (HardExclusionViolation, DuplicateObserverError, TimeConflictViolation) as exc:
                logger.warning("Rejected swap %s <-> %s: %s", a.label(), b.label(), exc.reason)
                raise

            new_snap = snap.with_slots({a: at_b, b: at_a}, slots=self._config.observers_per_committee)

            self._commit(new_snap)
            logger.info("Swapped %s <-> %s", a.label(), b.label())
            return True

    def replace(self, snapshot: AssignmentSnapshot) -> AssignmentSnapshot:
        """Atomically install a snapshot computed elsewhere (e.g. by the planner)."""

        with self._lock:
            if snapshot.term != self._snapshot.term:
                raise UnknownReferenceError(
                    f"Snapshot for {snapshot.term} cannot replace {self._snapshot.term}."
                )
            committed = self._commit(snapshot)
            logger.info("Replaced %s snapshot (version %d)", committed.term, committed.version)
            return committed

    def auto_distribute(self, grade_level: str, *, rng: Optional[random.Random] = None) -> PlanResult:
        """Plan one grade from scratch and commit it as a single transaction."""

        with self._lock:
            result = plan_grade(
                grade_level,
                self._snapshot.term,
                self._sessions.values(),
                self._committees.values(),
                self._observers.values(),
                self._config,
                self._snapshot,
                index=self._index,
                rng=rng,
            )
            committed = self.replace(result.snapshot)
            if committed is not result.snapshot:
                result = _replace(result, snapshot=committed)
            return result

    # -----------------
    # Cascades from roster / calendar changes
    # -----------------

    def remove_observer(self, observer_id: str) -> AssignmentSnapshot:
        with self._lock:
            snap = self._snapshot
            touched = [a.without_observer(observer_id) for a in snap if a.contains(observer_id)]
            self._observers.pop(observer_id, None)
            if not touched:
                return snap
            logger.info("Removed observer %s from %d assignments", observer_id, len(touched))
            return self._commit(snap.with_assignments(touched))

    def remove_committee(self, committee_id: str) -> AssignmentSnapshot:
        with self._lock:
            snap = self._snapshot
            keys = [a.key for a in snap if a.committee_id == committee_id]
            self._committees.pop(committee_id, None)
            if not keys:
                return snap
            logger.info("Dropped %d assignments of committee %s", len(keys), committee_id)
            return self._commit(snap.without(keys))

    def remove_session(self, session_id: str) -> AssignmentSnapshot:
        with self._lock:
            snap = self._snapshot
            keys = [a.key for a in snap if a.session_id == session_id]
            self._sessions.pop(session_id, None)
            self._index.pop(session_id, None)
            if not keys:
                return snap
            logger.info("Dropped %d assignments of exam session %s", len(keys), session_id)
            return self._commit(snap.without(keys))

    def resize(self, observers_per_committee: int) -> AssignmentSnapshot:
        """Pad / truncate every assignment's primary slots to the new count."""

        with self._lock:
            n = int(observers_per_committee)
            if n < 1:
                raise ValueError("observers_per_committee must be >= 1")
            self._config = ObserverConfig(
                observers_per_committee=n,
                members_per_correction=self._config.members_per_correction,
            )
            snap = self._snapshot
            changed = [a.resized(n) for a in snap if len(a.observer_ids) != n]
            if not changed:
                return snap
            logger.info("Resized %d assignments of %s to %d slots", len(changed), snap.term, n)
            return self._commit(snap.with_assignments(changed))

