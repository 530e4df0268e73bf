"""Settings page (observers per committee, correction committee size)."""

from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.models import TERMS
from ui.database.db import db_session
from ui.database import crud
from ui.utils.problem_loader import open_store
from ui.utils.validators import validate_positive_int


MAX_PER_COMMITTEE = 10


def main() -> None:
    st.title("Settings")

    with db_session() as conn:
        cfg = crud.get_observer_config(conn)

    with st.form("observer_settings_form"):
        c1, c2 = st.columns(2)
        per_committee = c1.number_input(
            "Observers per committee",
            min_value=1,
            max_value=MAX_PER_COMMITTEE,
            value=int(cfg.observers_per_committee),
            help="Primary observer seats per committee and exam (a reserve seat is always added).",
        )
        per_correction = c2.number_input(
            "Members per correction committee",
            min_value=1,
            max_value=MAX_PER_COMMITTEE,
            value=int(cfg.members_per_correction),
        )
        st.caption("Changing the observer count pads or trims the seats of existing assignments in both terms.")
        submitted = st.form_submit_button("Save Settings")

    if not submitted:
        return

    for value, label in ((per_committee, "Observers per committee"), (per_correction, "Members per correction committee")):
        ok, msg = validate_positive_int(int(value), label, 1, MAX_PER_COMMITTEE)
        if not ok:
            st.error(msg)
            return

    with db_session() as conn:
        crud.update_observer_config(
            conn,
            observers_per_committee=int(per_committee),
            members_per_correction=int(per_correction),
        )

    if int(per_committee) != int(cfg.observers_per_committee):
        for term in TERMS:
            open_store(term).resize(int(per_committee))

    st.success("Settings saved.")


if __name__ == "__main__":
    main()
