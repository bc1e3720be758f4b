"""Randomized restart search (keep-best).

This module provides a reusable, problem-agnostic restart loop:
- an attempt function builds one candidate from scratch using its own RNG
- a score function returns the cost of a candidate (lower is better, 0 = perfect)
- the loop keeps the best candidate and stops early on a perfect one

Selection rule
--------------
- score 0 => accept immediately and stop
- strictly lower score than the best so far => new best
- equal score => the earlier attempt is kept

Attempts are independent, so they can also run on a thread pool. The parallel
path applies the same rule ordered by (score, attempt index), which gives the
same answer as the sequential loop over the attempts that ran.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

import logging
import random
import threading


logger = logging.getLogger(__name__)


TResult = TypeVar("TResult")

AttemptFn = Callable[[int, random.Random], TResult]
ScoreFn = Callable[[TResult], int]


class SchedulingError(RuntimeError):
    """No candidate was ever recorded by the restart loop."""


@dataclass(frozen=True)
class RestartConfig:
    """Configuration for the restart loop.

    Attributes:
        max_attempts: Upper bound on attempts.
        seed: Base seed. Attempt i uses Random(seed + i). None => unseeded.
        workers: Number of threads. 1 runs attempts sequentially.
    """

    max_attempts: int = 30
    seed: Optional[int] = None
    workers: int = 1


@dataclass
class RestartResult(Generic[TResult]):
    best: Optional[TResult]
    best_score: Optional[int]
    best_attempt: int
    attempts_run: int
    stopped_early: bool


def attempt_rng(config: RestartConfig, attempt: int) -> random.Random:
    if config.seed is None:
        return random.Random()
    return random.Random(config.seed + attempt)


class _BestAccumulator(Generic[TResult]):
    """Lock-protected best-so-far record shared by parallel attempts."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.best: Optional[TResult] = None
        self.best_score: Optional[int] = None
        self.best_attempt = 0
        self.attempts_run = 0
        self.zero_attempt: Optional[int] = None

    def offer(self, attempt: int, result: TResult, score: int) -> None:
        with self._lock:
            self.attempts_run += 1
            if self.best_score is None or (score, attempt) < (self.best_score, self.best_attempt):
                self.best, self.best_score, self.best_attempt = result, score, attempt
            if score == 0 and (self.zero_attempt is None or attempt < self.zero_attempt):
                self.zero_attempt = attempt

    def should_skip(self, attempt: int) -> bool:
        # Attempts after a perfect one cannot win; earlier ones still can.
        with self._lock:
            return self.zero_attempt is not None and attempt > self.zero_attempt


def run_restarts(
    attempt_fn: AttemptFn[TResult],
    score_fn: ScoreFn[TResult],
    config: RestartConfig = RestartConfig(),
) -> RestartResult[TResult]:
    """Run up to `config.max_attempts` attempts and keep the best.

    Raises:
        SchedulingError: no attempt ran, so there is no best candidate.
    """

    if config.workers > 1:
        result = _run_parallel(attempt_fn, score_fn, config)
    else:
        result = _run_sequential(attempt_fn, score_fn, config)

    if result.best is None:
        raise SchedulingError(f"No attempt produced a result (max_attempts={config.max_attempts})")
    return result


def _run_sequential(
    attempt_fn: AttemptFn[TResult],
    score_fn: ScoreFn[TResult],
    config: RestartConfig,
) -> RestartResult[TResult]:
    best: Optional[TResult] = None
    best_score: Optional[int] = None
    best_attempt = 0
    attempts_run = 0

    for attempt in range(1, config.max_attempts + 1):
        cand = attempt_fn(attempt, attempt_rng(config, attempt))
        score = score_fn(cand)
        attempts_run += 1

        if score == 0:
            return RestartResult(best=cand, best_score=0, best_attempt=attempt, attempts_run=attempts_run, stopped_early=True)
        if best_score is None or score < best_score:
            best, best_score, best_attempt = cand, score, attempt
            logger.info("Attempt #%d: new best with %d left", attempt, score)

    return RestartResult(
        best=best,
        best_score=best_score,
        best_attempt=best_attempt,
        attempts_run=attempts_run,
        stopped_early=False,
    )


def _run_parallel(
    attempt_fn: AttemptFn[TResult],
    score_fn: ScoreFn[TResult],
    config: RestartConfig,
) -> RestartResult[TResult]:
    acc: _BestAccumulator[TResult] = _BestAccumulator()

    def job(attempt: int) -> None:
        if acc.should_skip(attempt):
            return
        cand = attempt_fn(attempt, attempt_rng(config, attempt))
        acc.offer(attempt, cand, score_fn(cand))

    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        futures = [pool.submit(job, i) for i in range(1, config.max_attempts + 1)]
        for f in futures:
            f.result()

    return RestartResult(
        best=acc.best,
        best_score=acc.best_score,
        best_attempt=acc.best_attempt,
        attempts_run=acc.attempts_run,
        stopped_early=acc.zero_attempt is not None,
    )
