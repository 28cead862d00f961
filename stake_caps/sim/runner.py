"""
Simulation runner: many independent generate -> derive -> check passes.

State machine: IDLE -> RUNNING -> (COMPLETED | ABORTED).

- Configuration (parameters, generator ranges, run knobs) is validated before
  any trial runs; a bad configuration moves the runner to ABORTED and the
  error propagates to the caller.
- Trial ``i`` uses ``trial_seed(base_seed, i)`` and the i-th slot of the mode
  schedule. Nothing about trial ``i`` depends on another trial, so trials can
  run on any number of threads and any one of them can be replayed alone.
- A `MalformedSnapshot` inside a trial fails that trial only.
- Cancellation is cooperative and checked between trials; a cancelled run
  still returns a consistent partial summary (state ABORTED).
- An exception escaping a trial sets the cancel event before it propagates,
  so the other workers stop at their next trial and queued batches never start.
  `partial_summary()` still reports what completed.

Invariant violations are data: they end up in `TrialOutcome.violations` and
`RunSummary.failures_by_invariant`, never as exceptions.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from ..core.derivation import DeriveFn, derive_caps
from ..core.invariants import check_all
from ..core.params import CapParameters, validate_parameters
from ..core.types import CapAssignment
from ..errors import InvalidGeneratorConfig, MalformedSnapshot, StakeCapsError
from ..state.snapshot import AccountSnapshot
from .generator import GeneratorConfig, ScenarioGenerator, validate_generator_config
from .reporting import NullReporter, Reporter
from .rng import trial_seed
from .types import FailingTrial, GeneratorMode, RunState, RunSummary, Scenario, TrialOutcome


logger = logging.getLogger(__name__)

ScenarioSource = Callable[[int, GeneratorMode], Scenario]

DEFAULT_MODE_MIX: Tuple[Tuple[GeneratorMode, int], ...] = (
    (GeneratorMode.UNIFORM, 4),
    (GeneratorMode.CLUSTERED, 3),
    (GeneratorMode.NOISE_FIELD, 2),
    (GeneratorMode.BOUNDARY, 1),
)

MAX_WORKERS: int = 256


@dataclass(frozen=True)
class RunConfig:
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    trials: int = 1_000
    base_seed: int = 0
    mode_mix: Tuple[Tuple[GeneratorMode, int], ...] = DEFAULT_MODE_MIX
    workers: int = 1
    batch_size: int = 64


def _require_int(value: object, *, name: str, minimum: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidGeneratorConfig(f"{name} must be an int")
    if value < minimum:
        raise InvalidGeneratorConfig(f"{name} must be >= {minimum}: {value}")
    return value


def validate_run_config(config: RunConfig) -> None:
    """
    Validate everything a run depends on.

    Raises:
        InvalidParameters: Cap parameters out of domain
        InvalidGeneratorConfig: Generator ranges or run knobs out of domain
    """
    if not isinstance(config, RunConfig):
        raise InvalidGeneratorConfig(f"expected RunConfig, got {type(config).__name__}")
    validate_parameters(config.generator.params)
    validate_generator_config(config.generator)
    _require_int(config.trials, name="trials", minimum=0)
    _require_int(config.base_seed, name="base_seed", minimum=0)
    workers = _require_int(config.workers, name="workers", minimum=1)
    if workers > MAX_WORKERS:
        raise InvalidGeneratorConfig(f"workers must be <= {MAX_WORKERS}: {workers}")
    _require_int(config.batch_size, name="batch_size", minimum=1)
    mode_schedule(config.mode_mix)


def mode_schedule(mode_mix: Tuple[Tuple[GeneratorMode, int], ...]) -> Tuple[GeneratorMode, ...]:
    """Expand weights into the repeating per-trial mode cycle."""
    if not mode_mix:
        raise InvalidGeneratorConfig("mode_mix must not be empty")
    cycle: List[GeneratorMode] = []
    seen = set()
    for item in mode_mix:
        if not isinstance(item, tuple) or len(item) != 2:
            raise InvalidGeneratorConfig(f"mode_mix entries must be (mode, weight): {item!r}")
        mode, weight = item
        if not isinstance(mode, GeneratorMode):
            raise InvalidGeneratorConfig(f"unknown generator mode: {mode!r}")
        if mode in seen:
            raise InvalidGeneratorConfig(f"duplicate mode in mode_mix: {mode.value}")
        seen.add(mode)
        _require_int(weight, name=f"weight for {mode.value}", minimum=1)
        cycle.extend([mode] * weight)
    return tuple(cycle)


# ---------------------------------------------------------------------------
# Single pipeline pass
# ---------------------------------------------------------------------------

def evaluate_snapshot(
    snapshot: AccountSnapshot,
    params: CapParameters,
    derive: DeriveFn = derive_caps,
) -> Tuple[CapAssignment, List[str]]:
    """Derive caps for a snapshot (e.g. read from a ledger) and check them."""
    assignment = derive(snapshot, params)
    return assignment, check_all(snapshot, params, assignment, derive)


def evaluate(scenario: Scenario, derive: DeriveFn = derive_caps, *, trial_index: int = 0) -> TrialOutcome:
    """One pass: derive caps for the scenario, then run the invariant battery."""
    assignment, violations = evaluate_snapshot(scenario.snapshot, scenario.params, derive)
    return TrialOutcome(
        trial_index=trial_index,
        seed=scenario.seed,
        mode=scenario.mode,
        scenario=scenario,
        assignment=assignment,
        violations=tuple(violations),
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

class _Collector:
    """The only shared mutable state of a run; every update holds `_lock`."""

    def __init__(self, total: int, reporter: Reporter) -> None:
        self._lock = threading.Lock()
        self._total = total
        self._reporter = reporter
        self.completed = 0
        self.passed = 0
        self.failed = 0
        self.malformed = 0
        self.by_invariant: Counter[str] = Counter()
        self.by_mode: Counter[str] = Counter()
        self.failing: List[FailingTrial] = []
        self.publishers_seen = 0
        self.min_cap: Optional[int] = None
        self.max_cap: Optional[int] = None

    def add(self, outcome: TrialOutcome) -> None:
        with self._lock:
            self.completed += 1
            self.by_mode[outcome.mode.value] += 1
            if outcome.passed:
                self.passed += 1
            else:
                self.failed += 1
                reasons = outcome.violations
                if outcome.error is not None:
                    self.malformed += 1
                    reasons = ("malformed_snapshot",)
                self.by_invariant.update(outcome.violations)
                self.failing.append(
                    FailingTrial(
                        trial_index=outcome.trial_index,
                        seed=outcome.seed,
                        mode=outcome.mode,
                        reasons=reasons,
                    )
                )
            if outcome.assignment is not None:
                self.publishers_seen += len(outcome.assignment)
                for _, cap in outcome.assignment:
                    if self.min_cap is None or cap < self.min_cap:
                        self.min_cap = cap
                    if self.max_cap is None or cap > self.max_cap:
                        self.max_cap = cap
            self._reporter.on_trial_complete(outcome, self.completed, self._total)

    def summary(self, state: RunState) -> RunSummary:
        with self._lock:
            return RunSummary(
                state=state,
                trials_requested=self._total,
                trials_completed=self.completed,
                passed=self.passed,
                failed=self.failed,
                malformed=self.malformed,
                failures_by_invariant=dict(self.by_invariant),
                failing_trials=tuple(sorted(self.failing, key=lambda f: f.trial_index)),
                trials_by_mode=dict(self.by_mode),
                publishers_seen=self.publishers_seen,
                min_cap=self.min_cap,
                max_cap=self.max_cap,
            )


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

class SimulationRunner:
    """Drives `config.trials` independent trials and aggregates the outcomes."""

    def __init__(
        self,
        config: RunConfig,
        *,
        derive: DeriveFn = derive_caps,
        reporter: Optional[Reporter] = None,
        scenario_source: Optional[ScenarioSource] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.derive = derive
        self.reporter: Reporter = reporter if reporter is not None else NullReporter()
        self._scenario_source = scenario_source
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._schedule: Tuple[GeneratorMode, ...] = ()
        self._collector: Optional[_Collector] = None

    @property
    def state(self) -> RunState:
        return self._state

    def cancel(self) -> None:
        """Request cooperative cancellation; running trials finish first."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _source(self) -> ScenarioSource:
        if self._scenario_source is None:
            self._scenario_source = ScenarioGenerator(self.config.generator).generate
        return self._scenario_source

    def trial_plan(self, trial_index: int) -> Tuple[int, GeneratorMode]:
        """``(seed, mode)`` for a trial; a function of the config and index only."""
        if not self._schedule:
            self._schedule = mode_schedule(self.config.mode_mix)
        seed = trial_seed(self.config.base_seed, trial_index)
        return seed, self._schedule[trial_index % len(self._schedule)]

    def run_trial(self, trial_index: int) -> TrialOutcome:
        seed, mode = self.trial_plan(trial_index)
        try:
            scenario = self._source()(seed, mode)
            return evaluate(scenario, self.derive, trial_index=trial_index)
        except MalformedSnapshot as exc:
            logger.warning("trial %d (seed=%d mode=%s): malformed snapshot: %s", trial_index, seed, mode.value, exc)
            return TrialOutcome(
                trial_index=trial_index,
                seed=seed,
                mode=mode,
                error=f"malformed_snapshot: {exc}",
            )

    def replay(self, trial_index: int) -> TrialOutcome:
        """Re-run a single trial in isolation (does not touch runner state)."""
        validate_run_config(self.config)
        return self.run_trial(trial_index)

    def _run_batch(self, indices: range, collector: _Collector) -> None:
        try:
            for i in indices:
                if self._cancel.is_set():
                    return
                outcome = self.run_trial(i)
                if not outcome.passed:
                    logger.debug("trial %d failed: %s", i, outcome.error or ",".join(outcome.violations))
                collector.add(outcome)
        except BaseException:
            # Stop the sibling batches at their next trial boundary.
            self._cancel.set()
            raise

    def partial_summary(self) -> RunSummary:
        """Summary of whatever has completed so far, in the current state."""
        collector = self._collector
        if collector is None:
            collector = _Collector(self.config.trials, NullReporter())
        return collector.summary(self._state)

    def run(self) -> RunSummary:
        """
        Execute the run.

        Raises:
            InvalidParameters / InvalidGeneratorConfig: Before any trial runs
            RuntimeError: If this runner has already been started
        """
        with self._state_lock:
            if self._state is not RunState.IDLE:
                raise RuntimeError(f"runner already {self._state.value}")
            self._state = RunState.RUNNING

        config = self.config
        try:
            validate_run_config(config)
            self._source()
        except StakeCapsError as exc:
            self._state = RunState.ABORTED
            logger.error("run aborted before first trial: %s", exc)
            raise

        logger.info(
            "starting run: %d trials, %d worker(s), base_seed=%d",
            config.trials,
            config.workers,
            config.base_seed,
        )
        collector = _Collector(config.trials, self.reporter)
        self._collector = collector
        batches = [
            range(start, min(start + config.batch_size, config.trials))
            for start in range(0, config.trials, config.batch_size)
        ]
        try:
            if config.workers == 1:
                for batch in batches:
                    self._run_batch(batch, collector)
            else:
                with concurrent.futures.ThreadPoolExecutor(max_workers=config.workers) as pool:
                    futures = [pool.submit(self._run_batch, batch, collector) for batch in batches]
                    try:
                        for fut in concurrent.futures.as_completed(futures):
                            fut.result()
                    except BaseException:
                        self._cancel.set()
                        pool.shutdown(wait=True, cancel_futures=True)
                        raise
        except BaseException:
            self._cancel.set()
            self._state = RunState.ABORTED
            logger.warning("run aborted after %d/%d trials", collector.completed, config.trials)
            raise

        if collector.completed < config.trials:
            self._state = RunState.ABORTED
            logger.warning("run cancelled after %d/%d trials", collector.completed, config.trials)
        else:
            self._state = RunState.COMPLETED

        summary = collector.summary(self._state)
        self.reporter.on_run_complete(summary)
        return summary
