"""Scheduling problem modules (weekly classes, CSV input)."""

from .class_scheduler import (
	Assignment,
	AttemptResult,
	ClassProblem,
	ClassSchedulingSettings,
	ClassSession,
	ProblemDataError,
	Registration,
	StudentGroup,
	Subject,
	Teach,
	Timeslot,
	TimeslotIndex,
	build_sessions,
	build_timeslot_index,
	solve_weekly_timetable,
)

__all__ = [
	"Assignment",
	"AttemptResult",
	"ClassProblem",
	"ClassSchedulingSettings",
	"ClassSession",
	"ProblemDataError",
	"Registration",
	"StudentGroup",
	"Subject",
	"Teach",
	"Timeslot",
	"TimeslotIndex",
	"build_sessions",
	"build_timeslot_index",
	"solve_weekly_timetable",
]
