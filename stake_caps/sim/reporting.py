"""Progress / result sink contract.

The runner calls `on_trial_complete` once per finished trial and
`on_run_complete` once at the end. Calls are serialized by the runner's
collector lock, so implementations need no locking of their own.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .types import RunSummary, TrialOutcome


logger = logging.getLogger(__name__)


class Reporter(Protocol):
    def on_trial_complete(self, outcome: TrialOutcome, completed: int, total: int) -> None: ...

    def on_run_complete(self, summary: RunSummary) -> None: ...


class NullReporter:
    def on_trial_complete(self, outcome: TrialOutcome, completed: int, total: int) -> None:
        return None

    def on_run_complete(self, summary: RunSummary) -> None:
        return None


class LoggingReporter:
    """Logs failing trials as they arrive and a one-line summary at the end."""

    def __init__(self, every: int = 0) -> None:
        self.every = every

    def on_trial_complete(self, outcome: TrialOutcome, completed: int, total: int) -> None:
        if not outcome.passed:
            logger.info(
                "trial %d failed (seed=%d mode=%s): %s",
                outcome.trial_index,
                outcome.seed,
                outcome.mode.value,
                outcome.error or ",".join(outcome.violations),
            )
        if self.every > 0 and completed % self.every == 0:
            logger.info("progress: %d/%d trials", completed, total)

    def on_run_complete(self, summary: RunSummary) -> None:
        logger.info(
            "run %s: %d/%d trials, %d passed, %d failed (%d malformed)",
            summary.state.value,
            summary.trials_completed,
            summary.trials_requested,
            summary.passed,
            summary.failed,
            summary.malformed,
        )
