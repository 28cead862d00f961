"""Data types for the scenario harness.

All types are frozen dataclasses (immutable). A `TrialOutcome` is produced by
exactly one pipeline pass and folded into a `RunSummary`; neither is mutated
afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, Optional, Tuple

from ..core.params import CapParameters
from ..core.types import CapAssignment
from ..state.canonical import canonical_json_bytes, sha256_hex
from ..state.snapshot import AccountSnapshot


SCENARIO_VERSION = 1


@unique
class GeneratorMode(Enum):
    """One member per scenario generation strategy."""
    UNIFORM = "uniform"
    CLUSTERED = "clustered"
    NOISE_FIELD = "noise_field"
    BOUNDARY = "boundary"


@unique
class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Scenario:
    """A generated (snapshot, params) pair plus what is needed to replay it."""

    snapshot: AccountSnapshot
    params: CapParameters
    seed: int
    mode: GeneratorMode
    rng_algorithm: str
    case: str = ""  # boundary catalogue entry, empty for randomized modes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SCENARIO_VERSION,
            "seed": int(self.seed),
            "mode": self.mode.value,
            "rng_algorithm": self.rng_algorithm,
            "case": self.case,
            "params": self.params.to_dict(),
            "snapshot": self.snapshot.to_dict(),
        }

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    def fingerprint(self) -> str:
        return sha256_hex(self.canonical_bytes())


@dataclass(frozen=True)
class TrialOutcome:
    """Result of one generate -> derive -> check pass."""

    trial_index: int
    seed: int
    mode: GeneratorMode
    scenario: Optional[Scenario] = None
    assignment: Optional[CapAssignment] = None
    violations: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.error is None and not self.violations


@dataclass(frozen=True)
class FailingTrial:
    trial_index: int
    seed: int
    mode: GeneratorMode
    reasons: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trial_index": self.trial_index,
            "seed": self.seed,
            "mode": self.mode.value,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class RunSummary:
    """Aggregate over every trial that ran."""

    state: RunState
    trials_requested: int
    trials_completed: int
    passed: int
    failed: int
    malformed: int = 0
    failures_by_invariant: Dict[str, int] = field(default_factory=dict)
    failing_trials: Tuple[FailingTrial, ...] = ()
    trials_by_mode: Dict[str, int] = field(default_factory=dict)
    publishers_seen: int = 0
    min_cap: Optional[int] = None
    max_cap: Optional[int] = None

    @property
    def cancelled(self) -> bool:
        return self.state is RunState.ABORTED

    @property
    def failing_seeds(self) -> Tuple[int, ...]:
        return tuple(f.seed for f in self.failing_trials)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "trials_requested": self.trials_requested,
            "trials_completed": self.trials_completed,
            "passed": self.passed,
            "failed": self.failed,
            "malformed": self.malformed,
            "failures_by_invariant": dict(sorted(self.failures_by_invariant.items())),
            "failing_trials": [f.to_dict() for f in self.failing_trials],
            "trials_by_mode": dict(sorted(self.trials_by_mode.items())),
            "publishers_seen": self.publishers_seen,
            "min_cap": self.min_cap,
            "max_cap": self.max_cap,
        }
