import random
import sys
from pathlib import Path

import pytest

# Ensure project root is on PYTHONPATH when tests are run via `pytest`
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from optimizer.restarts import RestartConfig, SchedulingError, run_restarts


def scripted(scores):
    """Attempt function returning (attempt, score) from a fixed script."""

    calls = []

    def attempt_fn(attempt: int, rng: random.Random):
        calls.append(attempt)
        return (attempt, scores[attempt])

    return attempt_fn, calls


def score(result) -> int:
    return result[1]


def test_stops_at_first_perfect_attempt():
    fn, calls = scripted({1: 3, 2: 0, 3: 0, 4: 1})
    result = run_restarts(fn, score, RestartConfig(max_attempts=4))

    assert result.best == (2, 0)
    assert result.best_attempt == 2
    assert result.attempts_run == 2
    assert result.stopped_early
    assert calls == [1, 2]


def test_keeps_strictly_better_and_earlier_on_tie():
    fn, calls = scripted({1: 5, 2: 2, 3: 2, 4: 3})
    result = run_restarts(fn, score, RestartConfig(max_attempts=4))

    assert result.best == (2, 2)
    assert result.best_score == 2
    assert result.attempts_run == 4
    assert not result.stopped_early
    assert calls == [1, 2, 3, 4]


def test_zero_attempts_is_a_failure():
    fn, _calls = scripted({})
    with pytest.raises(SchedulingError):
        run_restarts(fn, score, RestartConfig(max_attempts=0))


def test_seeded_attempts_are_reproducible():
    def draw(attempt: int, rng: random.Random):
        return [rng.random() for _ in range(3)]

    cfg = RestartConfig(max_attempts=5, seed=123)
    a = run_restarts(draw, lambda r: 1, cfg)
    b = run_restarts(draw, lambda r: 1, cfg)
    assert a.best == b.best
    assert a.best_attempt == 1


def test_parallel_matches_sequential_selection():
    scores = {1: 4, 2: 2, 3: 2, 4: 3, 5: 6}
    seq_fn, _ = scripted(scores)
    par_fn, _ = scripted(scores)

    seq = run_restarts(seq_fn, score, RestartConfig(max_attempts=5))
    par = run_restarts(par_fn, score, RestartConfig(max_attempts=5, workers=3))

    assert par.best == seq.best == (2, 2)
    assert par.attempts_run == 5


def test_parallel_prefers_earliest_perfect_attempt():
    fn, calls = scripted({1: 3, 2: 0, 3: 0, 4: 0})
    result = run_restarts(fn, score, RestartConfig(max_attempts=4, workers=4))

    assert result.best == (2, 0)
    assert result.stopped_early
    assert 1 in calls and 2 in calls
