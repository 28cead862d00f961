"""
Randomized scenario harness for the stake-cap derivation.

Generates synthetic stake snapshots, runs the derivation and the invariant
battery on each, and aggregates outcomes into a `RunSummary`.
"""

from .generator import GeneratorConfig, ScenarioGenerator, boundary_case_names, validate_generator_config
from .reporting import LoggingReporter, NullReporter, Reporter
from .rng import SeededSequence, trial_seed
from .runner import (
    DEFAULT_MODE_MIX,
    RunConfig,
    SimulationRunner,
    evaluate,
    evaluate_snapshot,
    validate_run_config,
)
from .types import FailingTrial, GeneratorMode, RunState, RunSummary, Scenario, TrialOutcome

__all__ = [
    "GeneratorConfig",
    "ScenarioGenerator",
    "boundary_case_names",
    "validate_generator_config",
    "LoggingReporter",
    "NullReporter",
    "Reporter",
    "SeededSequence",
    "trial_seed",
    "DEFAULT_MODE_MIX",
    "RunConfig",
    "SimulationRunner",
    "evaluate",
    "evaluate_snapshot",
    "validate_run_config",
    "FailingTrial",
    "GeneratorMode",
    "RunState",
    "RunSummary",
    "Scenario",
    "TrialOutcome",
]
