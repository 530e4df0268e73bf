from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

import pandas as pd

from observation.calendar_index import CalendarIndex, parse_time_minutes
from observation.models import AssignmentSnapshot, Committee, ExamSession, Observer, grade_label


EMPTY_CELL = "-"


def _name(observers: Mapping[str, Observer], observer_id: Optional[str]) -> str:
    if not observer_id:
        return EMPTY_CELL
    o = observers.get(observer_id)
    return o.name if o else str(observer_id)


def _ordered_sessions(sessions: Iterable[ExamSession]) -> list[ExamSession]:
    return sorted(sessions, key=lambda s: (s.exam_date, parse_time_minutes(s.time_from), s.session_id))


def session_sheet_df(
    *,
    snapshot: AssignmentSnapshot,
    session: ExamSession,
    committees: Sequence[Committee],
    observers: Mapping[str, Observer],
    slots: int,
) -> pd.DataFrame:
    """One exam's sheet: committee -> observers -> reserve."""

    columns = ["Committee", "Location"] + [f"Observer {i + 1}" for i in range(int(slots))] + ["Reserve"]
    rows = []
    for comm in committees:
        a = snapshot.get(session.session_id, comm.committee_id)
        row = [comm.name, comm.location or EMPTY_CELL]
        for i in range(int(slots)):
            row.append(_name(observers, a.get(i) if a is not None else None))
        row.append(_name(observers, a.reserve_observer_id if a is not None else None))
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def distribution_sheet_df(
    *,
    snapshot: AssignmentSnapshot,
    sessions: Iterable[ExamSession],
    committees: Sequence[Committee],
    observers: Mapping[str, Observer],
    slots: int,
) -> pd.DataFrame:
    """Flat distribution table: one row per (exam, committee), exams in calendar order."""

    frames = []
    for s in _ordered_sessions(sessions):
        df = session_sheet_df(snapshot=snapshot, session=s, committees=committees, observers=observers, slots=slots)
        if df.empty:
            continue
        df.insert(0, "Time", f"{s.time_from} - {s.time_to}")
        df.insert(0, "Day", s.weekday)
        df.insert(0, "Date", s.exam_date)
        df.insert(0, "Subject", s.subject_name)
        frames.append(df)

    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def observer_workload_df(
    *,
    snapshot: AssignmentSnapshot,
    observers: Mapping[str, Observer],
    index: CalendarIndex,
) -> pd.DataFrame:
    """Per-observer duty counts for the term (all grades)."""

    rows = {
        oid: {"observer_id": oid, "name": o.name, "subject": o.subject, "Primary": 0, "Reserve": 0, "_days": set()}
        for oid, o in observers.items()
    }
    for a in snapshot:
        w = index.get(a.session_id)
        for oid in a.observer_ids:
            if oid and oid in rows:
                rows[oid]["Primary"] += 1
                if w is not None:
                    rows[oid]["_days"].add(w.exam_date)
        rid = a.reserve_observer_id
        if rid and rid in rows:
            rows[rid]["Reserve"] += 1
            if w is not None:
                rows[rid]["_days"].add(w.exam_date)

    out = pd.DataFrame(list(rows.values()))
    if out.empty:
        return out

    out["Exam days"] = out["_days"].apply(len)
    out = out.drop(columns=["_days"])
    out["Total"] = out["Primary"] + out["Reserve"]
    return out.sort_values(["Total", "name"], ascending=[False, True]).reset_index(drop=True)


def _safe_sheet_name(name: str) -> str:
    """Excel sheet names: max 31 chars, cannot contain: `: \\ / ? * [ ]`."""

    bad = [":", "\\", "/", "?", "*", "[", "]"]
    out = str(name or "Sheet")
    for b in bad:
        out = out.replace(b, "-")
    out = out.strip() or "Sheet"
    return out[:31]


def distribution_workbook_bytes(
    *,
    snapshot: AssignmentSnapshot,
    grade_level: str,
    sessions: Iterable[ExamSession],
    committees: Sequence[Committee],
    observers: Mapping[str, Observer],
    index: CalendarIndex,
    slots: int,
) -> bytes:
    """Build a workbook with one sheet per exam plus the term workload sheet."""

    # Pandas uses openpyxl to write .xlsx by default.
    out = io.BytesIO()
    used: set[str] = set()

    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        overview = distribution_sheet_df(
            snapshot=snapshot, sessions=sessions, committees=committees, observers=observers, slots=slots
        )
        overview.to_excel(writer, sheet_name=_safe_sheet_name(f"{grade_label(grade_level)} overview"), index=False)

        for s in _ordered_sessions(sessions):
            sheet = _safe_sheet_name(f"{s.exam_date} {s.subject_name}")
            base, n = sheet, 2
            while sheet in used:
                sheet = _safe_sheet_name(f"{base[:27]} ({n})")
                n += 1
            used.add(sheet)

            header = pd.DataFrame(
                [
                    ["SUBJECT", s.subject_name],
                    ["DATE", f"{s.weekday} {s.exam_date}".strip()],
                    ["TIME", f"{s.time_from} - {s.time_to}"],
                ]
            )
            header.to_excel(writer, sheet_name=sheet, index=False, header=False)
            session_sheet_df(
                snapshot=snapshot, session=s, committees=committees, observers=observers, slots=slots
            ).to_excel(writer, sheet_name=sheet, index=False, startrow=len(header) + 1)

        observer_workload_df(snapshot=snapshot, observers=observers, index=index).to_excel(
            writer, sheet_name=_safe_sheet_name("Observer workload"), index=False
        )

    return out.getvalue()


def distribution_zip_bytes(
    *,
    snapshot: AssignmentSnapshot,
    sessions: Iterable[ExamSession],
    committees: Sequence[Committee],
    observers: Mapping[str, Observer],
    index: CalendarIndex,
    slots: int,
) -> bytes:
    """CSV bundle: one file per exam + workload."""

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for s in _ordered_sessions(sessions):
            df = session_sheet_df(snapshot=snapshot, session=s, committees=committees, observers=observers, slots=slots)
            z.writestr(f"sessions/{s.exam_date}_{s.session_id}.csv", df.to_csv(index=False).encode("utf-8"))
        wl = observer_workload_df(snapshot=snapshot, observers=observers, index=index)
        z.writestr("observer_workload.csv", wl.to_csv(index=False).encode("utf-8"))
    return buf.getvalue()


@dataclass(frozen=True)
class ImageExportOptions:
    title: Optional[str] = None
    font_size: int = 10
    cell_height: float = 0.35
    cell_width: float = 1.2


def df_to_markdown(df: pd.DataFrame) -> str:
    """Convert DataFrame to a GitHub-flavored Markdown table."""

    # pandas to_markdown needs tabulate; a small renderer is enough here.
    cols = list(df.columns)
    rows = df.astype(str).values.tolist()

    def esc(s: str) -> str:
        return str(s).replace("\n", " ").replace("|", "\\|")

    header = "| " + " | ".join(esc(c) for c in cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    body = ["| " + " | ".join(esc(v) for v in r) + " |" for r in rows]
    return "\n".join([header, sep] + body) + "\n"


def df_to_png_bytes(df: pd.DataFrame, *, options: ImageExportOptions = ImageExportOptions()) -> bytes:
    """Render a DataFrame as a PNG image (bytes) using matplotlib's table artist."""

    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    nrows, ncols = df.shape

    fig_w = max(6.0, float(options.cell_width) * (ncols + 1))
    fig_h = max(2.0, float(options.cell_height) * (nrows + 2))

    fig, ax = plt.subplots(figsize=(fig_w, fig_h))
    ax.axis("off")

    if options.title:
        ax.set_title(options.title, fontsize=options.font_size + 2, pad=12)

    tbl = ax.table(
        cellText=df.values,
        colLabels=list(df.columns),
        cellLoc="center",
        loc="center",
    )

    tbl.auto_set_font_size(False)
    tbl.set_fontsize(options.font_size)
    tbl.scale(1.0, 1.4)

    for (r, _c), cell in tbl.get_celld().items():
        cell.set_linewidth(0.6)
        if r == 0:
            cell.set_facecolor("#f0f2f6")
            cell.set_text_props(weight="bold")

    buf = io.BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=200, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()
