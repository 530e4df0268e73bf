"""Distribution page: distribute observers over a grade's committees.

Auto-distribution rebuilds one grade for one term; manual edits and swaps go
through the assignment store, which rejects hard exclusions and time
conflicts. Every accepted change is written straight back to SQLite.
"""

from __future__ import annotations

import random
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs pages
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from observation.audit import audit_snapshot
from observation.eligibility import slot_candidates
from observation.errors import ObservationError
from observation.models import GRADE_LABELS, RESERVE, TERM_LABELS, TERMS, Committee, ExamSession, SlotRef, grade_label
from observation.calendar_index import parse_time_minutes
from observation.store import AssignmentStore
from observation.swap_session import SwapSession
from ui.utils.problem_loader import open_store
from utils.observation_export import (
    ImageExportOptions,
    df_to_markdown,
    df_to_png_bytes,
    distribution_sheet_df,
    distribution_workbook_bytes,
    distribution_zip_bytes,
    observer_workload_df,
)


def _flash(kind: str, message: str) -> None:
    st.session_state["observation_flash"] = (kind, message)


def _show_flash() -> None:
    flash = st.session_state.pop("observation_flash", None)
    if not flash:
        return
    kind, message = flash
    {"success": st.success, "error": st.error, "info": st.info}.get(kind, st.info)(message)


def _swap_session() -> SwapSession:
    if "observation_swap" not in st.session_state:
        st.session_state["observation_swap"] = SwapSession()
    return st.session_state["observation_swap"]


def _on_slot_change(store: AssignmentStore, ref: SlotRef, key: str) -> None:
    value = st.session_state.get(key) or None
    try:
        store.set_slot(ref, value)
    except ObservationError as exc:
        _flash("error", exc.reason)
        # Fresh widget keys so the rejected choice is not shown as selected.
        st.session_state["observation_nonce"] = int(st.session_state.get("observation_nonce", 0)) + 1


def _on_swap_click(store: AssignmentStore, ref: SlotRef) -> None:
    outcome = _swap_session().select(ref, store)
    if outcome.message:
        _flash("error" if not outcome.ok else ("success" if outcome.status == "swapped" else "info"), outcome.message)


def _slot_editor(store: AssignmentStore, session: ExamSession, comm: Committee, index, col) -> None:
    ref = SlotRef(session.session_id, comm.committee_id, index)
    current = store.get_slot(ref) or ""
    label = "Reserve" if index == RESERVE else f"Observer {int(index) + 1}"

    swap = _swap_session()
    if swap.enabled:
        picked = swap.source == ref
        text = store.observer_name(current) if current else "(empty)"
        col.button(
            f"{'▶ ' if picked else ''}{text}",
            key=f"swap_{store.term}_{ref.label()}",
            help=label,
            type="primary" if picked else "secondary",
            on_click=_on_swap_click,
            args=(store, ref),
            use_container_width=True,
        )
        return

    candidates = slot_candidates(
        store.observers.values(),
        session_id=session.session_id,
        committee=comm,
        index=index,
        snapshot=store.snapshot,
        calendar=store.index,
        committees=store.committees,
    )
    options: List[str] = [""] + [c.observer_id for c in candidates if c.available]
    if current and current not in options:
        options.append(current)
    blocked = [f"{c.name}: {c.reason}" for c in candidates if not c.available and c.observer_id != current]

    key = f"slot_{store.term}_{ref.label()}_{store.snapshot.version}_{st.session_state.get('observation_nonce', 0)}"
    col.selectbox(
        label,
        options=options,
        index=options.index(current),
        format_func=lambda oid: store.observer_name(oid) if oid else "-",
        key=key,
        help=("Unavailable: " + "; ".join(blocked[:8])) if blocked else None,
        on_change=_on_slot_change,
        args=(store, ref, key),
    )


def _grade_board(store: AssignmentStore, sessions: List[ExamSession], committees: List[Committee]) -> None:
    slots = int(store.config.observers_per_committee)
    for session in sessions:
        title = f"{session.subject_name} · {session.weekday} {session.exam_date} · {session.time_from} - {session.time_to}"
        with st.expander(title, expanded=False):
            for comm in committees:
                cols = st.columns([2] + [2] * slots + [2])
                cols[0].markdown(f"**{comm.name}**  \n{comm.location or ''}")
                for i in range(slots):
                    _slot_editor(store, session, comm, i, cols[i + 1])
                _slot_editor(store, session, comm, RESERVE, cols[-1])


def main() -> None:
    st.title("Observer Distribution")
    st.caption("Assign observers to committees for each exam, without double-booking anyone across grades.")

    c1, c2 = st.columns(2)
    grade = c1.selectbox("Grade", options=list(GRADE_LABELS.keys()), format_func=grade_label, key="observation_grade")
    term = c2.selectbox("Term", options=list(TERMS), format_func=lambda t: TERM_LABELS[t], key="observation_term")

    store = open_store(term)
    sessions = sorted(
        [s for s in store.sessions.values() if s.grade_level == grade and s.term == term],
        key=lambda s: (s.exam_date, parse_time_minutes(s.time_from), s.session_id),
    )
    committees = [c for c in store.committees.values() if c.grade_level == grade]

    if not store.observers:
        st.warning("Add at least one observer first (Observers page).")
        return
    if not committees:
        st.warning(f"Add committees for {grade_label(grade)} first (Committees & Exam Calendar page).")
        return
    if not sessions:
        st.warning(f"Add exams for {grade_label(grade)} in {TERM_LABELS[term]} first (Committees & Exam Calendar page).")
        return

    _show_flash()

    st.subheader("Auto-distribution")
    ca, cb, cc = st.columns([1, 1, 2])
    seed = ca.number_input("Seed (0 = random)", min_value=0, max_value=1_000_000, value=0, step=1)
    cc.caption("Rebuilds every assignment of this grade and term. Other grades are kept and counted as workload.")
    if cb.button("Distribute observers", type="primary"):
        rng = random.Random(int(seed)) if int(seed) else None
        try:
            result = store.auto_distribute(grade, rng=rng)
        except ObservationError as exc:
            st.error(exc.reason)
        else:
            _swap_session().toggle(False)
            if result.unfilled:
                _flash(
                    "info",
                    f"Filled {result.filled_slots} of {result.total_slots} seats; "
                    f"{len(result.unfilled)} left empty (no eligible observer).",
                )
            else:
                _flash("success", f"All {result.filled_slots} seats filled.")
            st.rerun()

    st.subheader("Committees")
    swap = _swap_session()
    cs1, cs2 = st.columns([1, 3])
    enabled = cs1.toggle("Swap mode", value=swap.enabled, key=f"swap_toggle_{swap.enabled}")
    if enabled != swap.enabled:
        swap.toggle(enabled)
        st.rerun()
    if swap.enabled:
        cs2.info(
            "Click an observer, then the seat to swap with."
            if swap.source is None
            else f"Selected {store.observer_name(store.get_slot(swap.source))}. Click the target seat (or the same seat to cancel)."
        )

    _grade_board(store, sessions, committees)

    st.subheader("Checks")
    violations = audit_snapshot(store.snapshot, store.index, store.observers, store.committees)
    if violations:
        st.error(f"{len(violations)} rule violations found (usually from roster changes after distribution).")
        st.dataframe(pd.DataFrame([asdict(v) for v in violations]), use_container_width=True)
    else:
        st.success("No double-bookings, exclusions or duplicates in this term.")

    st.subheader("Workload")
    workload = observer_workload_df(snapshot=store.snapshot, observers=store.observers, index=store.index)
    st.dataframe(workload, use_container_width=True)

    st.subheader("Download")
    slots = int(store.config.observers_per_committee)
    sheet = distribution_sheet_df(
        snapshot=store.snapshot, sessions=sessions, committees=committees, observers=store.observers, slots=slots
    )
    st.dataframe(sheet, use_container_width=True)

    base_name = f"observers_{grade}_{term}"
    d1, d2, d3, d4 = st.columns(4)
    d1.download_button(
        "Workbook (.xlsx)",
        data=distribution_workbook_bytes(
            snapshot=store.snapshot,
            grade_level=grade,
            sessions=sessions,
            committees=committees,
            observers=store.observers,
            index=store.index,
            slots=slots,
        ),
        file_name=f"{base_name}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    d2.download_button(
        "CSV bundle (.zip)",
        data=distribution_zip_bytes(
            snapshot=store.snapshot,
            sessions=sessions,
            committees=committees,
            observers=store.observers,
            index=store.index,
            slots=slots,
        ),
        file_name=f"{base_name}.zip",
        mime="application/zip",
    )
    d3.download_button(
        "Markdown table",
        data=df_to_markdown(sheet).encode("utf-8"),
        file_name=f"{base_name}.md",
        mime="text/markdown",
    )
    if not sheet.empty:
        d4.download_button(
            "Image (PNG)",
            data=df_to_png_bytes(sheet, options=ImageExportOptions(title=f"{grade_label(grade)} · {TERM_LABELS[term]}")),
            file_name=f"{base_name}.png",
            mime="image/png",
        )


if __name__ == "__main__":
    main()
