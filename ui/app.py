"""Login-gated Streamlit viewer for the generated weekly schedule.

Run:
    streamlit run ui/app.py

The scheduler (`scripts/run_scheduler.py`) must have written the schedule
CSV first; the viewer only reads it.

"""

from __future__ import annotations

import sys
from pathlib import Path

import pandas as pd
import streamlit as st

# Ensure project root is on PYTHONPATH when Streamlit runs this file
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.csv_loader import default_data_dir, read_table
from ui.database import crud
from ui.database.db import db_session
from utils.timetable_export import (
    ImageExportOptions,
    default_output_path,
    df_to_markdown,
    df_to_png_bytes,
    read_schedule_csv,
    schedule_workbook_bytes,
    timetable_grid_df,
)


VIEW_MODES = {
    "Student group": ("group_id", "student_group"),
    "Teacher": ("teacher_id", "teacher"),
    "Room": ("room_id", "room"),
}


def _options(schedule: pd.DataFrame, column: str, master: pd.DataFrame) -> list[str]:
    """Master-data ids first (keeps the input order), then any extra ids seen in the schedule."""

    out: list[str] = []
    if column in master.columns:
        out.extend(v for v in master[column].tolist() if v)
    if column in schedule.columns:
        out.extend(sorted(v for v in set(schedule[column]) if v and v not in out))
    return list(dict.fromkeys(out))


def _login_form() -> None:
    st.title("Sign in")
    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Login")

    if submitted:
        with db_session() as conn:
            user = crud.verify_user(conn, username=username, password=password)
        if user is None:
            st.error("Invalid Credentials")
        else:
            st.session_state["user"] = user
            st.rerun()


def _timetable_page() -> None:
    user = st.session_state["user"]

    st.sidebar.title("Timetable")
    st.sidebar.caption(f"Signed in as {user['username']}")
    if st.sidebar.button("Logout"):
        st.session_state.pop("user", None)
        st.rerun()

    st.title("Weekly Timetable")

    schedule = read_schedule_csv(default_output_path())
    if schedule is None:
        st.warning("Please run the scheduler (scripts/run_scheduler.py) first.")
        return
    if schedule.empty:
        st.info("The schedule file exists but contains no classes.")
        return

    c1, c2, c3 = st.columns(3)
    c1.metric("Classes", len(schedule))
    c2.metric("Student Groups", schedule["group_id"].nunique())
    c3.metric("Teachers", schedule["teacher_id"].nunique())

    mode = st.radio("View by", options=list(VIEW_MODES.keys()), horizontal=True)
    column, table = VIEW_MODES[mode]
    master = read_table(default_data_dir(), table, required=False)
    options = _options(schedule, column, master)
    if not options:
        st.info("Nothing to show for this view.")
        return
    value = st.selectbox(mode, options=options)

    grid = timetable_grid_df(schedule, column=column, value=value)
    st.dataframe(grid, use_container_width=True, hide_index=True)

    d1, d2, d3 = st.columns(3)
    d1.download_button(
        "Download PNG",
        data=df_to_png_bytes(grid, options=ImageExportOptions(title=f"{mode}: {value}")),
        file_name=f"timetable_{value}.png",
        mime="image/png",
    )
    d2.download_button(
        "Download Markdown",
        data=df_to_markdown(grid).encode("utf-8"),
        file_name=f"timetable_{value}.md",
        mime="text/markdown",
    )
    d3.download_button(
        "Download Excel (all groups)",
        data=schedule_workbook_bytes(schedule),
        file_name="timetable.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def main() -> None:
    st.set_page_config(page_title="Weekly Timetable", page_icon="🗓️", layout="wide")

    if "user" not in st.session_state:
        _login_form()
    else:
        _timetable_page()


if __name__ == "__main__":
    main()
