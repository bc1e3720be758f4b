"""Search engines used by the scheduling modules."""

from .restarts import RestartConfig, RestartResult, SchedulingError, attempt_rng, run_restarts

__all__ = ["RestartConfig", "RestartResult", "SchedulingError", "attempt_rng", "run_restarts"]
