"""Weekly class timetable generation module.

This module assigns recurring teaching sessions to a fixed weekly grid of
timeslots while allocating a qualified teacher and a room to each placement.

Data model
----------
We schedule "sessions". A session is one teaching period of a subject for a
group. Example: if group G01 registers for subject 30000-1101 with theory=2
and practice=1, we create 3 sessions for that group+subject.

General-education subjects taken by several groups are merged pairwise
(smallest groups first) into a composite group such as "G01+G02". Composite
groups are scheduled as one unit but occupy every member group.

Hard constraints (never violated by a committed placement)
----------------------------------------------------------
- A group is used at most once per timeslot
- A teacher or room is used at most once per timeslot by normal sessions
  (activity periods are joint: one teacher and room serve several groups)
- A group never has more than `daily_max_periods` periods on one day
- Special activity subjects only use the two fixed Wednesday slots
- Normal sessions never use those two slots

Search
------
Each attempt is a greedy construction from empty state:
1) special sessions go into the fixed Wednesday slots
2) normal sessions are placed bundle by bundle as contiguous blocks,
   least-loaded day first

Attempts are repeated by `optimizer.run_restarts`, keeping the attempt with
the fewest unplaced sessions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import logging
import random

from optimizer import RestartConfig, SchedulingError, run_restarts


logger = logging.getLogger(__name__)


DEFAULT_SPECIAL_KEYWORDS: Tuple[str, ...] = (
    "ส่งเสริม",  # promotion / extracurricular
    "คุณธรรม",  # morality
    "องค์การวิชาชีพ",  # professional association
    "จริยธรรม",  # ethics
)


class ProblemDataError(ValueError):
    """Input records are inconsistent; the run must abort before scheduling."""


# ----------------------------
# Data models
# ----------------------------


@dataclass(frozen=True)
class Subject:
    subject_id: str
    subject_name: str
    theory: int = 0
    practice: int = 0

    @property
    def periods(self) -> int:
        return int(self.theory) + int(self.practice)


@dataclass(frozen=True)
class StudentGroup:
    group_id: str
    # None when the input size was missing or not a positive integer.
    size: Optional[int] = None


@dataclass(frozen=True)
class Teach:
    teacher_id: str
    subject_id: str


@dataclass(frozen=True)
class Registration:
    group_id: str
    subject_id: str


@dataclass(frozen=True)
class Timeslot:
    timeslot_id: str
    day: str
    period: int


@dataclass(frozen=True)
class ClassProblem:
    subjects: Dict[str, Subject]
    groups: Dict[str, StudentGroup]
    teachers: Tuple[str, ...]
    rooms: Tuple[str, ...]
    teaches: Tuple[Teach, ...]
    timeslots: Tuple[Timeslot, ...]
    registrations: Tuple[Registration, ...]


@dataclass(frozen=True)
class ClassSchedulingSettings:
    days: Tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri")
    lunch_period: int = 5

    # Fixed slots for special activity subjects
    activity_day: str = "Wed"
    activity_periods: Tuple[int, int] = (8, 9)

    daily_max_periods: int = 10

    # Subject classification
    special_keywords: Tuple[str, ...] = DEFAULT_SPECIAL_KEYWORDS
    general_prefixes: Tuple[str, ...] = ("20000", "30000")

    merge_separator: str = "+"
    unknown_teacher_id: str = "T_UNKNOWN"

    # Synthetic group size [lo, hi) used for merge ordering when size is unknown
    synthetic_size_range: Tuple[int, int] = (20, 40)
    size_seed: Optional[int] = None


# ----------------------------
# Derived / state representation
# ----------------------------


@dataclass(frozen=True)
class ClassSession:
    session_id: str
    group_id: str  # plain or composite ("A+B")
    subject_id: str
    seq_index: int
    is_special: bool = False


@dataclass(frozen=True)
class Assignment:
    group_id: str
    timeslot_id: str
    subject_id: str
    teacher_id: str
    room_id: str


@dataclass(frozen=True)
class TimeslotIndex:
    slots: Dict[str, Timeslot]  # valid (non-lunch) slots only
    slots_by_day: Dict[str, Tuple[Timeslot, ...]]
    fixed_activity_slots: Tuple[str, ...]  # () or (period-8 id, period-9 id)
    activity_day: str = "Wed"
    activity_periods: Tuple[int, ...] = (8, 9)

    def is_reserved(self, slot: Timeslot) -> bool:
        return slot.day == self.activity_day and slot.period in self.activity_periods


@dataclass
class SlotOccupancy:
    groups: set[str] = field(default_factory=set)
    teachers: set[str] = field(default_factory=set)
    rooms: set[str] = field(default_factory=set)


@dataclass
class AttemptContext:
    """Mutable state of one attempt. Never shared between attempts."""

    rng: random.Random
    occupancy: Dict[str, SlotOccupancy]
    daily_load: Dict[Tuple[str, str], int] = field(default_factory=dict)
    activity_room: Dict[str, str] = field(default_factory=dict)  # teacher -> pinned room
    assignments: List[Assignment] = field(default_factory=list)
    unassigned: List[ClassSession] = field(default_factory=list)

    @classmethod
    def fresh(cls, index: TimeslotIndex, rng: random.Random) -> "AttemptContext":
        return cls(rng=rng, occupancy={tid: SlotOccupancy() for tid in index.slots})

    def load(self, group_id: str, day: str) -> int:
        return self.daily_load.get((group_id, day), 0)

    def add_load(self, group_id: str, day: str, n: int) -> None:
        self.daily_load[(group_id, day)] = self.load(group_id, day) + n


@dataclass(frozen=True)
class AttemptResult:
    attempt: int
    assignments: Tuple[Assignment, ...]
    unassigned: Tuple[ClassSession, ...]


# ----------------------------
# Helpers
# ----------------------------


def member_groups(group_id: str, separator: str = "+") -> List[str]:
    """Split a (possibly composite) group id into individual group ids."""

    return group_id.split(separator)


def classify_subjects(
    subjects: Dict[str, Subject],
    settings: ClassSchedulingSettings,
) -> Tuple[set[str], set[str]]:
    """Return (special subject ids, general subject ids).

    A subject whose name carries an activity keyword is special even when its
    id also has a general prefix.
    """

    special: set[str] = set()
    general: set[str] = set()
    for sid, subj in subjects.items():
        name = subj.subject_name or ""
        if any(k in name for k in settings.special_keywords):
            special.add(sid)
        elif any(sid.startswith(p) for p in settings.general_prefixes):
            general.add(sid)
    return special, general


def expertise_map(teaches: Sequence[Teach]) -> Dict[str, List[str]]:
    """subject_id -> teacher ids, in input order."""

    out: Dict[str, List[str]] = {}
    for t in teaches:
        out.setdefault(t.subject_id, []).append(t.teacher_id)
    return out


def _group_sizes(problem: ClassProblem, settings: ClassSchedulingSettings) -> Dict[str, int]:
    rng = random.Random(settings.size_seed)
    lo, hi = settings.synthetic_size_range
    sizes: Dict[str, int] = {}
    for gid, g in problem.groups.items():
        sizes[gid] = g.size if g.size else rng.randrange(lo, hi)
    return sizes


# ----------------------------
# Build sessions
# ----------------------------


def merge_groups(group_ids: Sequence[str], sizes: Dict[str, int], separator: str = "+") -> List[str]:
    """Pair groups smallest-first into composite ids; an odd one out stays plain."""

    ordered = sorted(group_ids, key=lambda g: sizes[g])
    out: List[str] = []
    for i in range(0, len(ordered) - 1, 2):
        out.append(f"{ordered[i]}{separator}{ordered[i + 1]}")
    if len(ordered) % 2 == 1:
        out.append(ordered[-1])
    return out


def build_sessions(
    problem: ClassProblem,
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
) -> List[ClassSession]:
    registry: Dict[str, List[str]] = {}
    for reg in problem.registrations:
        registry.setdefault(reg.subject_id, []).append(reg.group_id)

    unknown = [sid for sid in registry if sid not in problem.subjects]
    if unknown:
        raise ProblemDataError(f"Registrations reference unknown subject ids: {', '.join(sorted(unknown))}")

    special_ids, general_ids = classify_subjects(problem.subjects, settings)
    sizes = _group_sizes(problem, settings)

    sessions: List[ClassSession] = []
    for subject_id, groups_taking in registry.items():
        subj = problem.subjects[subject_id]

        if subject_id in general_ids and len(groups_taking) >= 2:
            lo, hi = settings.synthetic_size_range
            for gid in groups_taking:
                if gid not in sizes:
                    logger.warning("Group %s is registered but not defined; using a synthetic size", gid)
                    sizes[gid] = random.Random(f"{settings.size_seed}:{gid}").randrange(lo, hi)
            final_groups = merge_groups(groups_taking, sizes, settings.merge_separator)
        else:
            final_groups = list(groups_taking)

        for composite in final_groups:
            for i in range(subj.periods):
                sessions.append(
                    ClassSession(
                        session_id=f"{composite}-{subject_id}-{i}",
                        group_id=composite,
                        subject_id=subject_id,
                        seq_index=i,
                        is_special=subject_id in special_ids,
                    )
                )
    return sessions


def build_bundles(sessions: Sequence[ClassSession]) -> List[Tuple[ClassSession, ...]]:
    """Group normal sessions by (group, subject), keeping generation order."""

    bundles: Dict[Tuple[str, str], List[ClassSession]] = {}
    for s in sessions:
        if s.is_special:
            continue
        bundles.setdefault((s.group_id, s.subject_id), []).append(s)
    return [tuple(b) for b in bundles.values()]


# ----------------------------
# Timeslot index
# ----------------------------


def build_timeslot_index(
    timeslots: Sequence[Timeslot],
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
) -> TimeslotIndex:
    slots: Dict[str, Timeslot] = {}
    by_day: Dict[str, List[Timeslot]] = {}
    for t in timeslots:
        if t.period == settings.lunch_period:
            continue
        slots[t.timeslot_id] = t
        by_day.setdefault(t.day, []).append(t)

    fixed: List[str] = []
    for p in settings.activity_periods:
        match = next((t for t in timeslots if t.day == settings.activity_day and t.period == p), None)
        if match is None:
            fixed = []
            break
        fixed.append(match.timeslot_id)

    return TimeslotIndex(
        slots=slots,
        slots_by_day={d: tuple(sorted(ts, key=lambda t: t.period)) for d, ts in by_day.items()},
        fixed_activity_slots=tuple(fixed),
        activity_day=settings.activity_day,
        activity_periods=tuple(settings.activity_periods),
    )


# ----------------------------
# Phase 1: special sessions
# ----------------------------


def place_special_sessions(
    ctx: AttemptContext,
    sessions: Sequence[ClassSession],
    index: TimeslotIndex,
    expertise: Dict[str, List[str]],
    rooms: Sequence[str],
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
) -> None:
    """Place special sessions into the fixed activity slots.

    Activity periods are joint sessions: one teacher may supervise several
    groups in its pinned room at once, so only group clashes and the daily cap
    reject a placement.
    """

    fixed = index.fixed_activity_slots
    day = settings.activity_day
    cap = settings.daily_max_periods

    for sess in sessions:
        if not fixed:
            ctx.unassigned.append(sess)
            continue

        groups = member_groups(sess.group_id, settings.merge_separator)
        teachers = expertise.get(sess.subject_id) or []
        teacher = teachers[0] if teachers else settings.unknown_teacher_id
        target = fixed[sess.seq_index % len(fixed)]

        room = ctx.activity_room.get(teacher)
        if room is None:
            pinned = set(ctx.activity_room.values())
            free = [r for r in rooms if r not in pinned]
            if not free:
                logger.debug("No room left to pin for activity teacher %s", teacher)
                ctx.unassigned.append(sess)
                continue
            room = ctx.rng.choice(free)
            ctx.activity_room[teacher] = room

        occ = ctx.occupancy[target]
        if any(g in occ.groups or ctx.load(g, day) >= cap for g in groups):
            ctx.unassigned.append(sess)
            continue

        ctx.assignments.append(
            Assignment(group_id=sess.group_id, timeslot_id=target, subject_id=sess.subject_id, teacher_id=teacher, room_id=room)
        )
        for g in groups:
            occ.groups.add(g)
            ctx.add_load(g, day, 1)
        occ.teachers.add(teacher)
        occ.rooms.add(room)


# ----------------------------
# Phase 2: normal bundles
# ----------------------------


def _rank_days(ctx: AttemptContext, groups: Sequence[str], days: Sequence[str]) -> List[str]:
    # sorted() is stable: equal loads keep Mon..Fri order
    return sorted(days, key=lambda d: sum(ctx.load(g, d) for g in groups))


def _windows(day_slots: Sequence[Timeslot], size: int):
    """Yield left-to-right windows of `size` numerically consecutive periods."""

    for i in range(len(day_slots) - size + 1):
        window = day_slots[i : i + size]
        if all(window[k + 1].period == window[k].period + 1 for k in range(size - 1)):
            yield window


def _find_block(
    ctx: AttemptContext,
    groups: Sequence[str],
    teachers: Sequence[str],
    size: int,
    index: TimeslotIndex,
    rooms: Sequence[str],
    settings: ClassSchedulingSettings,
) -> Optional[Tuple[str, Tuple[Timeslot, ...], str, str]]:
    cap = settings.daily_max_periods
    for day in _rank_days(ctx, groups, settings.days):
        usable = [s for s in index.slots_by_day.get(day, ()) if not index.is_reserved(s)]
        for window in _windows(usable, size):
            if any(ctx.load(g, day) + size > cap for g in groups):
                continue
            occs = [ctx.occupancy[s.timeslot_id] for s in window]
            if any(g in o.groups for o in occs for g in groups):
                continue

            teacher = next((t for t in teachers if all(t not in o.teachers for o in occs)), None)
            if teacher is None:
                continue

            shuffled = list(rooms)
            ctx.rng.shuffle(shuffled)
            room = next((r for r in shuffled if all(r not in o.rooms for o in occs)), None)
            if room is None:
                continue

            return day, tuple(window), teacher, room
    return None


def place_bundle(
    ctx: AttemptContext,
    bundle: Sequence[ClassSession],
    index: TimeslotIndex,
    expertise: Dict[str, List[str]],
    rooms: Sequence[str],
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
) -> None:
    """Place one bundle as contiguous blocks, largest block first.

    Committed blocks are never undone; if no block of any size fits, the
    remaining sessions of the bundle are unassigned.
    """

    if not bundle:
        return
    groups = member_groups(bundle[0].group_id, settings.merge_separator)
    teachers = expertise.get(bundle[0].subject_id) or []
    if not teachers:
        ctx.unassigned.extend(bundle)
        return

    pending = list(bundle)
    while pending:
        found = None
        for size in range(len(pending), 0, -1):
            found = _find_block(ctx, groups, teachers, size, index, rooms, settings)
            if found is not None:
                break

        if found is None:
            ctx.unassigned.extend(pending)
            return

        day, window, teacher, room = found
        for sess, slot in zip(pending, window):
            ctx.assignments.append(
                Assignment(
                    group_id=sess.group_id,
                    timeslot_id=slot.timeslot_id,
                    subject_id=sess.subject_id,
                    teacher_id=teacher,
                    room_id=room,
                )
            )
            occ = ctx.occupancy[slot.timeslot_id]
            occ.groups.update(groups)
            occ.teachers.add(teacher)
            occ.rooms.add(room)
        for g in groups:
            ctx.add_load(g, day, len(window))
        pending = pending[len(window) :]


# ----------------------------
# Attempt / solve
# ----------------------------


def run_schedule_attempt(
    special_sessions: Sequence[ClassSession],
    bundles: Sequence[Tuple[ClassSession, ...]],
    index: TimeslotIndex,
    expertise: Dict[str, List[str]],
    rooms: Sequence[str],
    rng: random.Random,
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
    attempt: int = 1,
) -> AttemptResult:
    ctx = AttemptContext.fresh(index, rng)

    place_special_sessions(ctx, special_sessions, index, expertise, rooms, settings)

    order = list(bundles)
    rng.shuffle(order)
    for bundle in order:
        place_bundle(ctx, bundle, index, expertise, rooms, settings)

    return AttemptResult(attempt=attempt, assignments=tuple(ctx.assignments), unassigned=tuple(ctx.unassigned))


def solve_weekly_timetable(
    problem: ClassProblem,
    settings: ClassSchedulingSettings = ClassSchedulingSettings(),
    restart_config: RestartConfig = RestartConfig(),
) -> Tuple[AttemptResult, Dict[str, float]]:
    """Run the bounded restart search and return the best attempt + metrics.

    Raises:
        ProblemDataError: registrations reference unknown subjects.
        SchedulingError: no attempt was ever recorded.
    """

    sessions = build_sessions(problem, settings)
    index = build_timeslot_index(problem.timeslots, settings)
    expertise = expertise_map(problem.teaches)
    rooms = tuple(problem.rooms)

    special = [s for s in sessions if s.is_special]
    bundles = build_bundles(sessions)
    logger.info("Total periods: %d (%d special, %d bundles)", len(sessions), len(special), len(bundles))
    if special and not index.fixed_activity_slots:
        logger.warning("No fixed %s activity slots found; special sessions cannot be placed", settings.activity_day)

    def attempt_fn(attempt: int, rng: random.Random) -> AttemptResult:
        result = run_schedule_attempt(special, bundles, index, expertise, rooms, rng, settings, attempt=attempt)
        logger.debug("Attempt #%d: %d unassigned", attempt, len(result.unassigned))
        return result

    outcome = run_restarts(attempt_fn, lambda r: len(r.unassigned), restart_config)
    best = outcome.best
    if best is None:
        raise SchedulingError("No schedule was produced")

    if outcome.best_score == 0:
        logger.info("Solution found at attempt #%d", outcome.best_attempt)
    else:
        logger.warning(
            "No complete solution after %d attempts; best attempt #%d leaves %d sessions unassigned",
            outcome.attempts_run,
            outcome.best_attempt,
            outcome.best_score,
        )

    merged = {s.group_id for s in sessions if settings.merge_separator in s.group_id}
    metrics = {
        "total_sessions": float(len(sessions)),
        "special_sessions": float(len(special)),
        "bundles": float(len(bundles)),
        "merged_groups": float(len(merged)),
        "assigned": float(len(best.assignments)),
        "unassigned": float(len(best.unassigned)),
        "attempts_run": float(outcome.attempts_run),
        "best_attempt": float(outcome.best_attempt),
    }
    return best, metrics
