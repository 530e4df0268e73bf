"""Validation helpers for Streamlit forms."""

from __future__ import annotations

import re
from typing import Iterable, Tuple


_ID_RE = re.compile(r"^[A-Za-z0-9_-]{2,32}$")
_TIME_RE = re.compile(r"^\s*\d{1,2}:\d{2}")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def require_non_empty(value: str, field: str) -> Tuple[bool, str]:
    if not value or not value.strip():
        return False, f"{field} cannot be empty"
    return True, ""


def validate_id(value: str, field: str) -> Tuple[bool, str]:
    ok, msg = require_non_empty(value, field)
    if not ok:
        return ok, msg
    if not _ID_RE.match(value.strip()):
        return False, f"{field} must be 2-32 chars (letters/numbers/_/-)"
    return True, ""


def validate_positive_int(value: int, field: str, min_value: int = 1, max_value: int | None = None) -> Tuple[bool, str]:
    if value is None:
        return False, f"{field} is required"
    if value < min_value:
        return False, f"{field} must be >= {min_value}"
    if max_value is not None and value > max_value:
        return False, f"{field} must be <= {max_value}"
    return True, ""


def validate_choice(value: str, field: str, allowed: Iterable[str]) -> Tuple[bool, str]:
    ok, msg = require_non_empty(value, field)
    if not ok:
        return ok, msg
    allowed_set = {str(x) for x in allowed}
    if str(value) not in allowed_set:
        return False, f"{field} must be one of: {', '.join(sorted(allowed_set))}"
    return True, ""


def validate_iso_date(value: str, field: str) -> Tuple[bool, str]:
    ok, msg = require_non_empty(value, field)
    if not ok:
        return ok, msg
    if not _DATE_RE.match(value.strip()):
        return False, f"{field} must look like YYYY-MM-DD"
    return True, ""


def validate_time_range(time_from: str, time_to: str) -> Tuple[bool, str]:
    """Exam times must start with H:MM and end after they start.

    The engine itself is lenient (unparseable labels count as midnight), so
    the form is the place to catch typos.
    """

    from observation.calendar_index import parse_time_minutes

    for label, value in (("Start time", time_from), ("End time", time_to)):
        if not value or not _TIME_RE.match(value):
            return False, f"{label} must look like HH:MM"
    if parse_time_minutes(time_to) <= parse_time_minutes(time_from):
        return False, "End time must be after start time"
    return True, ""
