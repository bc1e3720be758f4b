from __future__ import annotations

import sys
from collections import Counter
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scripts.run_scheduler import main
from utils.timetable_export import read_schedule_csv


def _write_data(path: Path, *, register: str) -> Path:
    slots = ["timeslot_id,day,period"]
    tid = 1
    for d in ("Mon", "Tue", "Wed", "Thu", "Fri"):
        for p in range(1, 11):
            slots.append(f"{tid},{d},{p}")
            tid += 1
    tables = {
        "teacher": "teacher_id\nT1\nT2\nT3\n",
        "room": "room_id\nR1\nR2\n",
        "student_group": "group_id,size\nG1,15\nG2,18\nG3,30\n",
        "subject": (
            "subject_id,subject_name,theory,practice\n"
            "30000-1101,Thai,2,0\n"
            "20000-2001,กิจกรรมองค์การวิชาชีพ,0,2\n"
            "31901-2001,Networks,1,2\n"
        ),
        "teach": "teacher_id,subject_id\nT1,30000-1101\nT2,20000-2001\nT3,31901-2001\n",
        "timeslot": "\n".join(slots) + "\n",
        "register": register,
    }
    for name, text in tables.items():
        (path / f"{name}.csv").write_text(text, encoding="utf-8")
    return path


REGISTER = (
    "group_id,subject_id\n"
    "G1,30000-1101\nG2,30000-1101\nG3,30000-1101\n"
    "G1,20000-2001\nG3,20000-2001\n"
    "G1,31901-2001\nG3,31901-2001\n"
)


def test_cli_writes_full_schedule(tmp_path):
    data = _write_data(tmp_path, register=REGISTER)
    out = tmp_path / "out" / "output.csv"

    assert main(["--data-dir", str(data), "--output", str(out), "--seed", "3"]) == 0

    df = read_schedule_csv(out)
    assert df is not None
    counts = Counter(zip(df["group_id"], df["subject_id"]))
    # G1 and G2 share the merged Thai section; G3 takes it alone.
    assert counts[("G1", "30000-1101")] == 2
    assert counts[("G2", "30000-1101")] == 2
    assert counts[("G3", "30000-1101")] == 2
    assert counts[("G1", "20000-2001")] == 2
    assert counts[("G3", "31901-2001")] == 3
    assert len(df) == 2 * 3 + 2 * 2 + 3 * 2

    g1 = df[df["group_id"] == "G1"]["timeslot_id"].astype(int).tolist()
    assert g1 == sorted(g1)

    merged = df[df["subject_id"] == "30000-1101"]
    g1_slots = set(merged[merged["group_id"] == "G1"]["timeslot_id"])
    g2_slots = set(merged[merged["group_id"] == "G2"]["timeslot_id"])
    assert g1_slots == g2_slots


def test_cli_writes_nothing_on_unknown_subject(tmp_path):
    data = _write_data(tmp_path, register=REGISTER + "G2,99999-0000\n")
    out = tmp_path / "output.csv"

    assert main(["--data-dir", str(data), "--output", str(out)]) == 1
    assert not out.exists()


def test_cli_writes_nothing_when_no_attempt_runs(tmp_path):
    data = _write_data(tmp_path, register=REGISTER)
    out = tmp_path / "output.csv"

    assert main(["--data-dir", str(data), "--output", str(out), "--attempts", "0"]) == 1
    assert not out.exists()


def test_cli_missing_data_dir(tmp_path):
    out = tmp_path / "output.csv"
    assert main(["--data-dir", str(tmp_path / "missing"), "--output", str(out)]) == 1
    assert not out.exists()
