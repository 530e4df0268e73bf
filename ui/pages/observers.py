"""Observer roster page.

Observers are the teachers who supervise exam committees. Each can be
excluded from specific committees or whole grades (conflict of interest).
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.models import GRADE_LABELS, grade_label
from ui.database.db import db_session
from ui.database import crud
from ui.utils.id_generator import generate_observer_id
from ui.utils.validators import require_non_empty, validate_id


def _import_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows from an uploaded sheet: `name` column required, `subject` optional."""

    cols = {str(c).strip().lower(): c for c in df.columns}
    if "name" not in cols:
        raise ValueError("The sheet needs a 'name' column.")
    out = []
    for _, r in df.iterrows():
        name = str(r[cols["name"]]).strip() if pd.notna(r[cols["name"]]) else ""
        if not name:
            continue
        subject = ""
        if "subject" in cols and pd.notna(r[cols["subject"]]):
            subject = str(r[cols["subject"]]).strip()
        out.append({"name": name, "subject": subject})
    return out


def main() -> None:
    st.title("Observers")

    with db_session() as conn:
        observers = crud.list_observers(conn)
        committees = crud.list_committees(conn)

    committee_labels = {c["committee_id"]: f"{c['name']} ({grade_label(c['grade_level'])})" for c in committees}

    tab_add, tab_import, tab_view = st.tabs(["Add / Update", "Import from Excel", "View / Delete"])

    with tab_add:
        st.subheader("Edit existing")
        options = ["(New observer)"] + [o["observer_id"] for o in observers]
        edit_id = st.selectbox(
            "Select Observer ID",
            options=options,
            format_func=lambda x: x if x == "(New observer)" else f"{x} - {next(o['name'] for o in observers if o['observer_id'] == x)}",
        )

        initial = None
        if edit_id != "(New observer)":
            initial = next((o for o in observers if o.get("observer_id") == edit_id), None)

        st.divider()
        if "observer_id" not in st.session_state:
            with db_session() as conn:
                st.session_state["observer_id"] = generate_observer_id(conn)

        with st.form("observer_form"):
            c1, c2, c3 = st.columns([1, 2, 1])
            observer_id = c1.text_input(
                "Observer ID",
                value=(initial.get("observer_id") if initial else st.session_state.get("observer_id", "")),
                disabled=bool(initial),
                help="Observer ID can’t be changed for an existing record (delete + re-add if needed).",
            )
            name = c2.text_input("Name", value=str(initial.get("name") if initial else ""))
            subject = c3.text_input("Subject", value=str(initial.get("subject") if initial else ""))

            st.markdown("### Exclusions")
            excluded_committees = st.multiselect(
                "Never assign to these committees",
                options=list(committee_labels.keys()),
                default=[c for c in (initial.get("excluded_committees") if initial else []) if c in committee_labels],
                format_func=lambda x: committee_labels.get(x, x),
            )
            excluded_grades = st.multiselect(
                "Never assign to these grades",
                options=list(GRADE_LABELS.keys()),
                default=[g for g in (initial.get("excluded_grades") if initial else []) if g in GRADE_LABELS],
                format_func=grade_label,
            )

            submitted = st.form_submit_button("Save Observer")

        if submitted:
            ok, msg = validate_id(observer_id, "Observer ID")
            if not ok:
                st.error(msg)
                st.stop()
            ok, msg = require_non_empty(name, "Name")
            if not ok:
                st.error(msg)
                st.stop()

            with db_session() as conn:
                crud.upsert_observer(
                    conn,
                    observer_id=observer_id.strip(),
                    name=name.strip(),
                    subject=subject.strip(),
                    excluded_committees=excluded_committees,
                    excluded_grades=excluded_grades,
                )
                st.session_state["observer_id"] = generate_observer_id(conn)
            st.success("Observer saved.")

    with tab_import:
        st.caption("Upload an .xlsx sheet with a 'name' column and an optional 'subject' column.")
        upload = st.file_uploader("Observer sheet", type=["xlsx"])
        if upload is not None:
            try:
                rows = _import_rows(pd.read_excel(upload, engine="openpyxl"))
            except ValueError as exc:
                st.error(str(exc))
                rows = []

            if rows:
                st.dataframe(pd.DataFrame(rows), use_container_width=True)
                if st.button(f"Import {len(rows)} observers", type="primary"):
                    with db_session() as conn:
                        for r in rows:
                            crud.upsert_observer(
                                conn,
                                observer_id=generate_observer_id(conn),
                                name=r["name"],
                                subject=r["subject"],
                            )
                        st.session_state["observer_id"] = generate_observer_id(conn)
                    st.success(f"Imported {len(rows)} observers.")
                    st.rerun()

    with tab_view:
        if not observers:
            st.info("No observers yet.")
            return

        df = pd.DataFrame(observers).drop(columns=["excluded_committees_json", "excluded_grades_json"], errors="ignore")
        df["excluded_committees"] = df["excluded_committees"].apply(lambda xs: ", ".join(committee_labels.get(x, x) for x in xs))
        df["excluded_grades"] = df["excluded_grades"].apply(lambda xs: ", ".join(grade_label(x) for x in xs))
        st.dataframe(df, use_container_width=True)

        st.divider()
        st.subheader("Delete observer")
        st.caption("The observer is also removed from every assignment slot in both terms.")
        oid = st.selectbox("Select Observer ID", options=[o["observer_id"] for o in observers], key="delete_observer_id")
        if st.button("Delete", type="primary"):
            with db_session() as conn:
                crud.delete_observer(conn, oid)
            st.success(f"Deleted {oid}")
            st.rerun()


if __name__ == "__main__":
    main()
