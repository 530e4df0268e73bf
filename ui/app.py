"""Main Streamlit app entrypoint.

Run:
    streamlit run ui/app.py

"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs this file
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.models import TERM_LABELS, TERMS
from ui.database.db import db_session


st.set_page_config(
    page_title="Exam Observers",
    page_icon="📝",
    layout="wide",
)


def _inject_css() -> None:
    st.markdown(
        """
        <style>
        .block-container { padding-top: 1.2rem; }
        div[data-testid="stMetric"] { background: #0b1220; border: 1px solid rgba(255,255,255,0.08); padding: 12px; border-radius: 12px; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    _inject_css()

    st.sidebar.title("Exam Observers")
    st.sidebar.caption("Observer & committee distribution")

    st.title("Dashboard")
    st.write(
        "Use the sidebar pages to manage observers, committees and the exam calendar. "
        "The Distribution page distributes observers over committees for each grade and term."
    )

    with db_session() as conn:
        from ui.database import crud

        observers = crud.list_observers(conn)
        committees = crud.list_committees(conn)
        sessions = crud.list_exam_sessions(conn)
        snapshots = {term: crud.load_snapshot(conn, term) for term in TERMS}
        cfg = crud.get_observer_config(conn)

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Observers", len(observers))
    c2.metric("Committees", len(committees))
    c3.metric("Exam sessions", len(sessions))
    c4.metric("Observers per committee", int(cfg.observers_per_committee))

    cols = st.columns(len(TERMS))
    for col, term in zip(cols, TERMS):
        snap = snapshots[term]
        filled = sum(len(a.occupants()) for a in snap)
        col.metric(f"{TERM_LABELS[term]} assignments", len(snap), help=f"{filled} observer seats filled")

    st.divider()
    st.subheader("What’s next")
    st.info(
        "Check Settings first (observers per committee), then add Observers, Committees and the Exam Calendar, "
        "then run the distribution on the Distribution page."
    )


if __name__ == "__main__":
    main()
