"""Generate the weekly timetable from the CSV tables and export it.

Usage:
    python scripts/run_scheduler.py --data-dir data --output output.csv

Exit status is 0 when a schedule was written (even an incomplete one) and
1 when nothing was written.

"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

# Ensure project root is on PYTHONPATH when running as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modules.class_scheduler import (
    ClassSchedulingSettings,
    ProblemDataError,
    build_timeslot_index,
    solve_weekly_timetable,
)
from modules.csv_loader import default_data_dir, load_class_problem
from optimizer import RestartConfig, SchedulingError
from utils.timetable_export import default_output_path, write_schedule_csv


logger = logging.getLogger("run_scheduler")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weekly timetable scheduler")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory with the input CSV tables")
    parser.add_argument("--output", type=Path, default=None, help="Schedule CSV to write")
    parser.add_argument("--attempts", type=int, default=RestartConfig.max_attempts, help="Maximum restart attempts")
    parser.add_argument("--seed", type=int, default=None, help="Base seed for reproducible runs")
    parser.add_argument("--workers", type=int, default=1, help="Run attempts on this many threads")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or default_data_dir()
    output = args.output or default_output_path()
    settings = ClassSchedulingSettings(size_seed=args.seed)
    config = RestartConfig(max_attempts=args.attempts, seed=args.seed, workers=max(1, args.workers))

    logger.info("Starting scheduler (spread days, max %d periods/day)", settings.daily_max_periods)

    try:
        problem = load_class_problem(data_dir)
        best, metrics = solve_weekly_timetable(problem, settings=settings, restart_config=config)
    except (FileNotFoundError, ProblemDataError) as e:
        logger.error("Invalid input data: %s", e)
        return 1
    except SchedulingError as e:
        logger.error("No solution found: %s", e)
        return 1

    index = build_timeslot_index(problem.timeslots, settings)
    rows = write_schedule_csv(output, best.assignments, index, separator=settings.merge_separator)

    logger.info("Total classes scheduled: %d", rows)
    if best.unassigned:
        logger.warning("%d sessions could not be placed", len(best.unassigned))
    for k, v in metrics.items():
        logger.debug("%s: %s", k, v)
    return 0


if __name__ == "__main__":
    sys.exit(main())
