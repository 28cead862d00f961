from __future__ import annotations

import logging

from stake_caps.sim.reporting import LoggingReporter, NullReporter
from stake_caps.sim.types import GeneratorMode, RunState, RunSummary, TrialOutcome


def _outcome(index: int, violations=(), error=None) -> TrialOutcome:
    return TrialOutcome(trial_index=index, seed=100 + index, mode=GeneratorMode.UNIFORM, violations=violations, error=error)


def test_null_reporter_accepts_everything() -> None:
    r = NullReporter()
    assert r.on_trial_complete(_outcome(0), 1, 1) is None
    assert r.on_run_complete(RunSummary(RunState.COMPLETED, 1, 1, 1, 0)) is None


def test_logging_reporter_logs_failures_and_summary(caplog) -> None:
    caplog.set_level(logging.INFO, logger="stake_caps.sim.reporting")
    r = LoggingReporter(every=2)
    r.on_trial_complete(_outcome(0), 1, 4)
    r.on_trial_complete(_outcome(1, violations=("monotonicity",)), 2, 4)
    r.on_trial_complete(_outcome(2, error="malformed_snapshot: bad"), 3, 4)
    r.on_run_complete(RunSummary(RunState.ABORTED, 4, 3, 1, 2, malformed=1))

    text = caplog.text
    assert "trial 1 failed (seed=101 mode=uniform): monotonicity" in text
    assert "trial 2 failed (seed=102 mode=uniform): malformed_snapshot: bad" in text
    assert "progress: 2/4 trials" in text
    assert "trial 0 failed" not in text
    assert "run aborted: 3/4 trials, 1 passed, 2 failed (1 malformed)" in text


def test_summary_to_dict_is_sorted_and_plain() -> None:
    summary = RunSummary(
        RunState.COMPLETED,
        3,
        3,
        2,
        1,
        failures_by_invariant={"fairness": 1, "coverage": 1},
        trials_by_mode={"uniform": 2, "boundary": 1},
    )
    data = summary.to_dict()
    assert list(data["failures_by_invariant"]) == ["coverage", "fairness"]
    assert list(data["trials_by_mode"]) == ["boundary", "uniform"]
    assert data["state"] == "completed"
    assert summary.failing_seeds == ()
