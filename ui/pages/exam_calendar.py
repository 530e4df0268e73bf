"""Committees + exam calendar page (CRUD).

Committees are the exam rooms of a grade; the calendar lists each subject's
exam per grade and term. Both feed the Distribution page.
"""

from __future__ import annotations

import datetime as dt
import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.models import GRADE_LABELS, TERM_LABELS, TERMS, grade_label
from ui.database.db import db_session
from ui.database import crud
from ui.utils.id_generator import generate_committee_id, generate_session_id
from ui.utils.validators import require_non_empty, validate_id, validate_iso_date, validate_time_range


def _committees_tab(committees: list[dict]) -> None:
    st.subheader("Add / update committee")
    options = ["(New committee)"] + [c["committee_id"] for c in committees]
    edit_id = st.selectbox("Select Committee ID", options=options)
    initial = next((c for c in committees if c["committee_id"] == edit_id), None)

    if "committee_id" not in st.session_state:
        with db_session() as conn:
            st.session_state["committee_id"] = generate_committee_id(conn)

    grades = list(GRADE_LABELS.keys())
    with st.form("committee_form"):
        c1, c2, c3 = st.columns([1, 2, 1])
        committee_id = c1.text_input(
            "Committee ID",
            value=(initial["committee_id"] if initial else st.session_state.get("committee_id", "")),
            disabled=bool(initial),
        )
        name = c2.text_input("Name", value=str(initial["name"] if initial else ""), placeholder="e.g., Committee 7")
        grade = c3.selectbox(
            "Grade",
            options=grades,
            index=grades.index(initial["grade_level"]) if initial and initial["grade_level"] in grades else 0,
            format_func=grade_label,
        )
        c4, c5 = st.columns([2, 1])
        location = c4.text_input("Location", value=str((initial.get("location") or "") if initial else ""))
        capacity = c5.number_input(
            "Capacity (students)",
            min_value=0,
            max_value=500,
            value=int(initial.get("capacity") or 0) if initial else 0,
        )
        submitted = st.form_submit_button("Save Committee")

    if submitted:
        ok, msg = validate_id(committee_id, "Committee ID")
        if not ok:
            st.error(msg)
            st.stop()
        ok, msg = require_non_empty(name, "Name")
        if not ok:
            st.error(msg)
            st.stop()
        with db_session() as conn:
            crud.upsert_committee(
                conn,
                committee_id=committee_id.strip(),
                name=name.strip(),
                grade_level=grade,
                location=location.strip(),
                capacity=int(capacity),
            )
            st.session_state["committee_id"] = generate_committee_id(conn)
        st.success("Committee saved.")
        st.rerun()

    if not committees:
        st.info("No committees yet.")
        return

    st.divider()
    df = pd.DataFrame(committees)
    df["grade_level"] = df["grade_level"].apply(grade_label)
    st.dataframe(df, use_container_width=True)

    st.subheader("Delete committee")
    st.caption("Its assignments are dropped and it is removed from observer exclusions.")
    cid = st.selectbox("Select Committee ID", options=[c["committee_id"] for c in committees], key="delete_committee_id")
    if st.button("Delete committee", type="primary"):
        with db_session() as conn:
            crud.delete_committee(conn, cid)
        st.success(f"Deleted {cid}")
        st.rerun()


def _sessions_tab(grade: str, term: str) -> None:
    with db_session() as conn:
        sessions = crud.list_exam_sessions(conn, grade_level=grade, term=term)

    st.subheader(f"{grade_label(grade)} · {TERM_LABELS[term]}")
    options = ["(New exam)"] + [s["session_id"] for s in sessions]
    edit_id = st.selectbox("Select Exam", options=options)
    initial = next((s for s in sessions if s["session_id"] == edit_id), None)

    if "session_id" not in st.session_state:
        with db_session() as conn:
            st.session_state["session_id"] = generate_session_id(conn)

    with st.form("exam_session_form"):
        c1, c2, c3 = st.columns([1, 2, 1])
        session_id = c1.text_input(
            "Exam ID",
            value=(initial["session_id"] if initial else st.session_state.get("session_id", "")),
            disabled=bool(initial),
        )
        subject = c2.text_input("Subject", value=str(initial["subject_name"] if initial else ""))
        default_date = dt.date.today()
        if initial:
            try:
                default_date = dt.date.fromisoformat(initial["exam_date"])
            except ValueError:
                pass
        exam_date = c3.date_input("Date", value=default_date)

        c4, c5, c6 = st.columns(3)
        time_from = c4.text_input("From", value=str(initial["time_from"] if initial else "09:00"))
        time_to = c5.text_input("To", value=str(initial["time_to"] if initial else "11:00"))
        duration = c6.text_input("Duration", value=str(initial["duration"] if initial else ""), placeholder="e.g., 2 hours")
        submitted = st.form_submit_button("Save Exam")

    if submitted:
        iso = exam_date.isoformat()
        for ok, msg in (
            validate_id(session_id, "Exam ID"),
            require_non_empty(subject, "Subject"),
            validate_iso_date(iso, "Date"),
            validate_time_range(time_from, time_to),
        ):
            if not ok:
                st.error(msg)
                st.stop()
        with db_session() as conn:
            crud.upsert_exam_session(
                conn,
                session_id=session_id.strip(),
                grade_level=grade,
                term=term,
                subject_name=subject.strip(),
                exam_date=iso,
                weekday=exam_date.strftime("%A"),
                time_from=time_from.strip(),
                time_to=time_to.strip(),
                duration=duration.strip(),
            )
            st.session_state["session_id"] = generate_session_id(conn)
        st.success("Exam saved.")
        st.rerun()

    if not sessions:
        st.info("No exams for this grade and term yet.")
        return

    st.divider()
    st.dataframe(pd.DataFrame(sessions), use_container_width=True)

    st.subheader("Delete exam")
    sid = st.selectbox("Select Exam ID", options=[s["session_id"] for s in sessions], key="delete_session_id")
    if st.button("Delete exam", type="primary"):
        with db_session() as conn:
            crud.delete_exam_session(conn, sid)
        st.success(f"Deleted {sid}")
        st.rerun()


def main() -> None:
    st.title("Committees & Exam Calendar")

    with db_session() as conn:
        committees = crud.list_committees(conn)

    tab_comm, tab_cal = st.tabs(["Committees", "Exam calendar"])

    with tab_comm:
        _committees_tab(committees)

    with tab_cal:
        c1, c2 = st.columns(2)
        grade = c1.selectbox("Grade", options=list(GRADE_LABELS.keys()), format_func=grade_label, key="calendar_grade")
        term = c2.selectbox("Term", options=list(TERMS), format_func=lambda t: TERM_LABELS[t], key="calendar_term")
        _sessions_tab(grade, term)


if __name__ == "__main__":
    main()
