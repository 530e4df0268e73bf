"""Errors raised when a mutation would break an assignment rule.

Every error carries a user-facing `reason`; pages show it as-is. None of these
are retried: the user has to pick another observer or leave the slot empty.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .conflicts import ConflictInfo


class ObservationError(Exception):
    """Base class for rejected observation operations."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class PreconditionMissing(ObservationError):
    """No observers / sessions / committees to work with."""


class UnknownReferenceError(ObservationError):
    """Slot, session, committee or observer id that does not exist."""


class StaleSnapshotError(ObservationError):
    """The stored snapshot moved on since this copy was loaded."""

    def __init__(self, *, term: str, expected_version: int):
        super().__init__(
            f"The {term} assignments were changed elsewhere (expected version {expected_version}). "
            "Reload and try again."
        )
        self.term = term
        self.expected_version = expected_version


class HardExclusionViolation(ObservationError):
    def __init__(self, *, observer_id: str, observer_name: str, committee_id: str, committee_name: str, kind: str):
        if kind == "grade":
            reason = f"{observer_name} is excluded from the whole grade of committee {committee_name}."
        else:
            reason = f"{observer_name} is excluded from committee {committee_name}."
        super().__init__(reason)
        self.observer_id = observer_id
        self.committee_id = committee_id
        self.kind = kind


class TimeConflictViolation(ObservationError):
    def __init__(self, *, observer_id: str, observer_name: str, conflict: "ConflictInfo"):
        super().__init__(f"{observer_name} is already busy: {conflict.describe()}.")
        self.observer_id = observer_id
        self.conflict = conflict


class DuplicateObserverError(ObservationError):
    """Same person placed twice in one committee for one session."""

    def __init__(self, *, observer_id: str, observer_name: str, committee_name: Optional[str] = None):
        where = f"committee {committee_name}" if committee_name else "this committee"
        super().__init__(f"{observer_name} is already placed in {where} for this exam.")
        self.observer_id = observer_id
