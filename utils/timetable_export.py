from __future__ import annotations

import io
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

import pandas as pd


logger = logging.getLogger(__name__)


SCHEDULE_COLUMNS = ["group_id", "timeslot_id", "day", "period", "subject_id", "teacher_id", "room_id"]

DEFAULT_OUTPUT_FILE = "output.csv"


def default_output_path() -> Path:
    """Resolve the schedule CSV path from `TIMETABLE_OUTPUT`, else `./output.csv`."""

    return Path(os.getenv("TIMETABLE_OUTPUT") or DEFAULT_OUTPUT_FILE).expanduser().resolve()


def _timeslot_sort_key(timeslot_id: str) -> tuple:
    # Numeric ids first in numeric order; anything else after, lexicographically.
    try:
        return (0, int(timeslot_id), "")
    except (TypeError, ValueError):
        return (1, 0, str(timeslot_id))


def expand_assignment_rows(assignments: Iterable, index, *, separator: str = "+") -> list[dict]:
    """One row per individual group per assignment, sorted by group then timeslot.

    `assignments` are `Assignment` records whose group may be composite ("A+B");
    `index` is the `TimeslotIndex` used for the run (gives day and period).
    """

    rows: list[dict] = []
    for a in assignments:
        ts = index.slots[a.timeslot_id]
        for g in a.group_id.split(separator):
            rows.append(
                {
                    "group_id": g,
                    "timeslot_id": a.timeslot_id,
                    "day": ts.day,
                    "period": int(ts.period),
                    "subject_id": a.subject_id,
                    "teacher_id": a.teacher_id,
                    "room_id": a.room_id,
                }
            )
    rows.sort(key=lambda r: (r["group_id"], _timeslot_sort_key(r["timeslot_id"])))
    return rows


def schedule_df(assignments: Iterable, index, *, separator: str = "+") -> pd.DataFrame:
    rows = expand_assignment_rows(assignments, index, separator=separator)
    return pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)


def write_schedule_csv(path: Path | str, assignments: Iterable, index, *, separator: str = "+") -> int:
    """Write the schedule CSV atomically and return the number of rows.

    The file is written to a temporary sibling first and then moved into
    place, so readers never see a half-written schedule.
    """

    out = Path(path)
    df = schedule_df(assignments, index, separator=separator)
    out.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp = tempfile.mkstemp(prefix=f".{out.name}.", dir=str(out.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            df.to_csv(f, index=False, lineterminator="\n")
        os.replace(tmp, out)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise

    logger.info("Schedule exported to %s (%d rows)", out, len(df))
    return len(df)


def read_schedule_csv(path: Path | str) -> Optional[pd.DataFrame]:
    """Read a schedule written by `write_schedule_csv`.

    Returns None when the file does not exist and an empty DataFrame (with
    the schedule columns) when it has no rows.
    """

    p = Path(path)
    if not p.exists():
        return None
    try:
        df = pd.read_csv(p, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS)
    df.columns = [str(c).strip() for c in df.columns]
    if df.empty:
        return pd.DataFrame(columns=SCHEDULE_COLUMNS)
    df["period"] = pd.to_numeric(df["period"], errors="coerce").fillna(0).astype(int)
    return df


def timetable_grid_df(
    schedule: pd.DataFrame,
    *,
    column: str,
    value: str,
    days: Sequence[str] = ("Mon", "Tue", "Wed", "Thu", "Fri"),
    periods: Optional[Sequence[int]] = None,
    lunch_period: Optional[int] = 5,
    lunch_label: str = "LUNCH",
) -> pd.DataFrame:
    """Build a (days x periods) table for one group, teacher or room.

    Cells read "subject / teacher / group / room" without the filtered column;
    several rows in one slot (a merged section) are stacked on separate lines.
    """

    if periods is None:
        found = sorted({int(p) for p in schedule["period"]}) if not schedule.empty else []
        top = max(found + [lunch_period or 0, 1])
        periods = list(range(1, top + 1))

    sel = schedule[schedule[column] == value] if not schedule.empty else schedule
    detail = [c for c in ("subject_id", "teacher_id", "group_id", "room_id") if c != column]

    table = {d: {p: "" for p in periods} for d in days}
    for _, r in sel.iterrows():
        d, p = str(r["day"]), int(r["period"])
        if d not in table or p not in table[d]:
            continue
        label = " / ".join(str(r[c]) for c in detail if str(r[c]))
        table[d][p] = f"{table[d][p]}\n{label}" if table[d][p] else label

    rows = []
    for d in days:
        row = [d]
        for p in periods:
            row.append(lunch_label if (lunch_period is not None and p == lunch_period) else table[d][p])
        rows.append(row)
    return pd.DataFrame(rows, columns=["DAY"] + [str(p) for p in periods])


def _safe_sheet_name(name: str) -> str:
    """Excel sheet names: max 31 chars, cannot contain: `: \\ / ? * [ ]`."""

    bad = [":", "\\", "/", "?", "*", "[", "]"]
    out = str(name or "Sheet")
    for b in bad:
        out = out.replace(b, "-")
    out = out.strip() or "Sheet"
    return out[:31]


def schedule_workbook_bytes(schedule: pd.DataFrame, *, days: Sequence[str] = ("Mon", "Tue", "Wed", "Thu", "Fri")) -> bytes:
    """Build an .xlsx workbook: the flat schedule plus one timetable sheet per group."""

    out = io.BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        schedule.to_excel(writer, sheet_name="Schedule", index=False)
        groups = sorted(set(schedule["group_id"])) if not schedule.empty else []
        for gid in groups:
            grid = timetable_grid_df(schedule, column="group_id", value=gid, days=days)
            grid.to_excel(writer, sheet_name=_safe_sheet_name(gid), index=False)
    return out.getvalue()


@dataclass(frozen=True)
class ImageExportOptions:
    title: Optional[str] = None
    font_size: int = 9
    cell_height: float = 0.45
    cell_width: float = 1.3


def df_to_markdown(df: pd.DataFrame) -> str:
    """Convert DataFrame to a GitHub-flavored Markdown table."""

    cols = list(df.columns)
    rows = df.astype(str).values.tolist()

    def esc(s: str) -> str:
        return str(s).replace("\n", "<br>").replace("|", "\\|")

    header = "| " + " | ".join(esc(c) for c in cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    body = ["| " + " | ".join(esc(v) for v in r) + " |" for r in rows]
    return "\n".join([header, sep] + body) + "\n"


def df_to_png_bytes(df: pd.DataFrame, *, options: ImageExportOptions = ImageExportOptions()) -> bytes:
    """Render a timetable DataFrame as a PNG image (bytes) with matplotlib."""

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

    tbl = ax.table(cellText=df.values, colLabels=list(df.columns), cellLoc="center", loc="center")
    tbl.auto_set_font_size(False)
    tbl.set_fontsize(options.font_size)
    tbl.scale(1.0, 1.6)

    for (r, _c), cell in tbl.get_celld().items():
        cell.set_linewidth(0.6)
        if r == 0:
            cell.set_facecolor("#f0f2f6")
            cell.set_text_props(weight="bold")

    buf = io.BytesIO()
    fig.tight_layout()
    fig.savefig(buf, format="png", dpi=150, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()
