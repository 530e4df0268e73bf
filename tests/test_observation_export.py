from __future__ import annotations

import io
import sys
import zipfile
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pandas as pd

from observation.calendar_index import build_index
from observation.models import Assignment, AssignmentSnapshot, Committee, ExamSession, Observer
from utils.observation_export import (
    _safe_sheet_name,
    df_to_markdown,
    distribution_sheet_df,
    distribution_workbook_bytes,
    distribution_zip_bytes,
    observer_workload_df,
)


SESSIONS = [
    ExamSession("S2", "p6", "term1", "Math", "2026-01-11", "Sunday", "09:00", "10:30"),
    ExamSession("S1", "p6", "term1", "Arabic", "2026-01-10", "Saturday", "09:00", "11:00"),
]
COMMITTEES = [Committee("C1", "Committee 1", "p6", location="Room 101"), Committee("C2", "Committee 2", "p6")]
OBSERVERS = {"O1": Observer("O1", "Ahmed"), "O2": Observer("O2", "Mona"), "O3": Observer("O3", "Karim")}


def _snapshot() -> AssignmentSnapshot:
    a = Assignment("S1", "C1", "term1", observer_ids=("O1", "O2"), reserve_observer_id="O3")
    b = Assignment("S2", "C1", "term1", observer_ids=("O3", None))
    return AssignmentSnapshot(term="term1", assignments={a.key: a, b.key: b})


def test_distribution_sheet_rows_in_calendar_order() -> None:
    df = distribution_sheet_df(snapshot=_snapshot(), sessions=SESSIONS, committees=COMMITTEES, observers=OBSERVERS, slots=2)

    assert list(df.columns) == [
        "Subject", "Date", "Day", "Time", "Committee", "Location", "Observer 1", "Observer 2", "Reserve",
    ]
    assert len(df) == 4
    first = df.iloc[0]
    assert (first["Subject"], first["Observer 1"], first["Observer 2"], first["Reserve"]) == ("Arabic", "Ahmed", "Mona", "Karim")
    # Committee without an assignment and empty seats render as "-".
    assert df.iloc[1]["Location"] == "-"
    assert df.iloc[1]["Observer 1"] == "-"
    assert df.iloc[2]["Observer 2"] == "-"


def test_observer_workload_counts_primary_reserve_and_days() -> None:
    df = observer_workload_df(snapshot=_snapshot(), observers=OBSERVERS, index=build_index(SESSIONS))

    by_id = df.set_index("observer_id")
    assert by_id.loc["O3", "Primary"] == 1
    assert by_id.loc["O3", "Reserve"] == 1
    assert by_id.loc["O3", "Total"] == 2
    assert by_id.loc["O3", "Exam days"] == 2
    assert by_id.loc["O2", "Total"] == 1
    assert df.iloc[0]["observer_id"] == "O3"


def test_workbook_has_overview_session_and_workload_sheets() -> None:
    data = distribution_workbook_bytes(
        snapshot=_snapshot(),
        grade_level="p6",
        sessions=SESSIONS,
        committees=COMMITTEES,
        observers=OBSERVERS,
        index=build_index(SESSIONS),
        slots=2,
    )

    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, engine="openpyxl")
    assert list(sheets) == ["Primary 6 overview", "2026-01-10 Arabic", "2026-01-11 Math", "Observer workload"]


def test_zip_bundle_contains_one_csv_per_session() -> None:
    data = distribution_zip_bytes(
        snapshot=_snapshot(),
        sessions=SESSIONS,
        committees=COMMITTEES,
        observers=OBSERVERS,
        index=build_index(SESSIONS),
        slots=2,
    )

    names = zipfile.ZipFile(io.BytesIO(data)).namelist()
    assert "observer_workload.csv" in names
    assert "sessions/2026-01-10_S1.csv" in names
    assert len(names) == 3


def test_safe_sheet_name_and_markdown() -> None:
    assert _safe_sheet_name("Math: part [1/2]") == "Math- part -1-2-"
    assert len(_safe_sheet_name("x" * 40)) == 31

    md = df_to_markdown(pd.DataFrame([["A", "B|C"]], columns=["Col1", "Col2"]))
    assert "| Col1 | Col2 |" in md
    assert "| A | B\\|C |" in md
