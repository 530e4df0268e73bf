"""Exam observer distribution engine (calendar index, conflicts, planner, store, swaps)."""

from .audit import Violation, audit_snapshot, workload_counts
from .calendar_index import CalendarIndex, SessionWindow, build_index, parse_time_minutes
from .conflicts import ConflictInfo, check_conflict, is_overlapping
from .eligibility import CandidateStatus, hard_block_reason, is_hard_blocked, slot_candidates
from .errors import (
    DuplicateObserverError,
    HardExclusionViolation,
    ObservationError,
    PreconditionMissing,
    StaleSnapshotError,
    TimeConflictViolation,
    UnknownReferenceError,
)
from .models import (
    GRADE_LABELS,
    RESERVE,
    TERMS,
    Assignment,
    AssignmentSnapshot,
    Committee,
    ExamSession,
    ObservationProblem,
    Observer,
    ObserverConfig,
    SlotRef,
    load_problem_from_json,
)
from .planner import PlanResult, plan_grade
from .store import AssignmentStore
from .swap_session import SwapOutcome, SwapSession, SwapState

__all__ = [
    "GRADE_LABELS",
    "RESERVE",
    "TERMS",
    "Assignment",
    "AssignmentSnapshot",
    "AssignmentStore",
    "CalendarIndex",
    "CandidateStatus",
    "Committee",
    "ConflictInfo",
    "DuplicateObserverError",
    "ExamSession",
    "HardExclusionViolation",
    "ObservationError",
    "ObservationProblem",
    "Observer",
    "ObserverConfig",
    "PlanResult",
    "PreconditionMissing",
    "SessionWindow",
    "SlotRef",
    "StaleSnapshotError",
    "SwapOutcome",
    "SwapSession",
    "SwapState",
    "TimeConflictViolation",
    "UnknownReferenceError",
    "Violation",
    "audit_snapshot",
    "build_index",
    "check_conflict",
    "hard_block_reason",
    "is_hard_blocked",
    "is_overlapping",
    "load_problem_from_json",
    "parse_time_minutes",
    "plan_grade",
    "slot_candidates",
    "workload_counts",
]
