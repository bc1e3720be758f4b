from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.class_scheduler import ProblemDataError
from modules.csv_loader import load_class_problem, parse_int, read_table


TABLES = {
    "teacher": "teacher_id\nT1\n T2 \n",
    "room": "room_id\nR1\n\n",
    "student_group": "group_id,size\nG1,25\nG2,abc\nG3,\n",
    "subject": "subject_id,subject_name,theory,practice\n30000-1101, Thai ,2,\nS2,Lab,x,3\n",
    "teach": "teacher_id,subject_id\nT2,S2\nT1,S2\n",
    "timeslot": "timeslot_id,day,period\n1,Mon,1\n2,Mon,lunch\n3,Mon,5\n",
    "register": "group_id,subject_id\nG1,30000-1101\nG2,S2\n",
}


def write_tables(path: Path, tables=TABLES, bom: bool = False) -> Path:
    for name, text in tables.items():
        (path / f"{name}.csv").write_text(("\ufeff" if bom else "") + text, encoding="utf-8")
    return path


def test_parse_int_follows_leading_integer():
    assert parse_int("12") == 12
    assert parse_int(" 7 periods") == 7
    assert parse_int("abc") is None
    assert parse_int("") is None
    assert parse_int(None) is None


def test_load_trims_defaults_and_keeps_order(tmp_path):
    problem = load_class_problem(write_tables(tmp_path, bom=True))

    assert problem.teachers == ("T1", "T2")
    assert problem.rooms == ("R1",)
    assert problem.groups["G1"].size == 25
    assert problem.groups["G2"].size is None
    assert problem.groups["G3"].size is None
    assert problem.subjects["30000-1101"].subject_name == "Thai"
    assert problem.subjects["30000-1101"].periods == 2
    assert problem.subjects["S2"].theory == 0 and problem.subjects["S2"].practice == 3
    assert [t.teacher_id for t in problem.teaches] == ["T2", "T1"]
    assert [(t.timeslot_id, t.period) for t in problem.timeslots] == [("1", 1), ("3", 5)]
    assert [(r.group_id, r.subject_id) for r in problem.registrations] == [("G1", "30000-1101"), ("G2", "S2")]


def test_missing_table_is_fatal(tmp_path):
    tables = dict(TABLES)
    del tables["register"]
    write_tables(tmp_path, tables)
    with pytest.raises(FileNotFoundError):
        load_class_problem(tmp_path)


def test_missing_required_column_is_fatal(tmp_path):
    tables = dict(TABLES)
    tables["timeslot"] = "timeslot_id,day\n1,Mon\n"
    write_tables(tmp_path, tables)
    with pytest.raises(ProblemDataError):
        load_class_problem(tmp_path)


def test_optional_table_read_gives_empty_frame(tmp_path):
    df = read_table(tmp_path, "teacher", required=False)
    assert df.empty
    assert list(df.columns) == ["teacher_id"]
