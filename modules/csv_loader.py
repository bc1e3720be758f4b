"""Load a weekly scheduling problem from a directory of CSV tables.

Expected files (one header row each):

    teacher.csv        teacher_id
    room.csv           room_id
    student_group.csv  group_id,size
    subject.csv        subject_id,subject_name,theory,practice
    teach.csv          teacher_id,subject_id
    timeslot.csv       timeslot_id,day,period
    register.csv       group_id,subject_id

All cells are read as text and whitespace-trimmed. Numeric columns may be
blank or malformed; they are defaulted instead of rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Tuple

import logging
import os
import re

import pandas as pd

from modules.class_scheduler import (
    ClassProblem,
    ProblemDataError,
    Registration,
    StudentGroup,
    Subject,
    Teach,
    Timeslot,
)


logger = logging.getLogger(__name__)


TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "teacher": ("teacher_id",),
    "room": ("room_id",),
    "student_group": ("group_id", "size"),
    "subject": ("subject_id", "subject_name", "theory", "practice"),
    "teach": ("teacher_id", "subject_id"),
    "timeslot": ("timeslot_id", "day", "period"),
    "register": ("group_id", "subject_id"),
}

# Columns that may be missing entirely; blank values are filled in.
OPTIONAL_COLUMNS = {"size", "subject_name", "theory", "practice"}

DEFAULT_DATA_DIR = "data"

_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


def default_data_dir() -> Path:
    """Resolve the input directory from `TIMETABLE_DATA_DIR`, else `./data`."""

    return Path(os.getenv("TIMETABLE_DATA_DIR") or DEFAULT_DATA_DIR).expanduser().resolve()


def parse_int(value: object) -> Optional[int]:
    """Parse the leading integer of a cell ("12", "12 periods" -> 12), else None."""

    if value is None:
        return None
    m = _INT_PREFIX.match(str(value))
    return int(m.group(1)) if m else None


def read_table(data_dir: Path | str, name: str, *, required: bool = True) -> pd.DataFrame:
    """Read `<data_dir>/<name>.csv` as a trimmed, all-text DataFrame.

    Missing files raise FileNotFoundError when `required`, else give an empty frame.
    """

    path = Path(data_dir) / f"{name}.csv"
    if not path.exists():
        if required:
            raise FileNotFoundError(f"File not found: {path}")
        return pd.DataFrame(columns=list(TABLE_COLUMNS.get(name, ())))

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=list(TABLE_COLUMNS.get(name, ())))
    df.columns = [str(c).strip().lstrip("\ufeff") for c in df.columns]
    for c in df.columns:
        df[c] = df[c].astype(str).str.strip()
    return df


def _checked(df: pd.DataFrame, name: str) -> pd.DataFrame:
    missing = [c for c in TABLE_COLUMNS[name] if c not in df.columns and c not in OPTIONAL_COLUMNS]
    if missing:
        raise ProblemDataError(f"{name}.csv is missing column(s): {', '.join(missing)}")
    for c in TABLE_COLUMNS[name]:
        if c not in df.columns:
            df[c] = ""
    return df


def _records(data_dir: Path | str, name: str) -> list[dict]:
    df = _checked(read_table(data_dir, name), name)
    return df.to_dict(orient="records")


def load_class_problem(data_dir: Path | str) -> ClassProblem:
    """Build a ClassProblem from the CSV tables in `data_dir`.

    Raises:
        FileNotFoundError: a table is missing.
        ProblemDataError: a table lacks a required column.
    """

    teachers = tuple(r["teacher_id"] for r in _records(data_dir, "teacher") if r["teacher_id"])
    rooms = tuple(r["room_id"] for r in _records(data_dir, "room") if r["room_id"])

    groups: Dict[str, StudentGroup] = {}
    for r in _records(data_dir, "student_group"):
        if not r["group_id"]:
            continue
        size = parse_int(r["size"])
        groups[r["group_id"]] = StudentGroup(group_id=r["group_id"], size=size if size and size > 0 else None)

    subjects: Dict[str, Subject] = {}
    for r in _records(data_dir, "subject"):
        if not r["subject_id"]:
            continue
        subjects[r["subject_id"]] = Subject(
            subject_id=r["subject_id"],
            subject_name=r["subject_name"],
            theory=parse_int(r["theory"]) or 0,
            practice=parse_int(r["practice"]) or 0,
        )

    teaches = tuple(
        Teach(teacher_id=r["teacher_id"], subject_id=r["subject_id"])
        for r in _records(data_dir, "teach")
        if r["teacher_id"] and r["subject_id"]
    )

    timeslots = []
    for r in _records(data_dir, "timeslot"):
        period = parse_int(r["period"])
        if not r["timeslot_id"] or period is None:
            logger.warning("Skipping timeslot row with bad id/period: %r", r)
            continue
        timeslots.append(Timeslot(timeslot_id=r["timeslot_id"], day=r["day"], period=period))

    registrations = tuple(
        Registration(group_id=r["group_id"], subject_id=r["subject_id"])
        for r in _records(data_dir, "register")
        if r["group_id"] and r["subject_id"]
    )

    logger.info(
        "Data loaded: %d teachers, %d rooms, %d groups, %d subjects, %d timeslots, %d registrations",
        len(teachers),
        len(rooms),
        len(groups),
        len(subjects),
        len(timeslots),
        len(registrations),
    )

    return ClassProblem(
        subjects=subjects,
        groups=groups,
        teachers=teachers,
        rooms=rooms,
        teaches=teaches,
        timeslots=tuple(timeslots),
        registrations=registrations,
    )
