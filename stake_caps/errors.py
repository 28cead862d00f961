"""Exception taxonomy for stake-cap derivation and simulation.

Structural and configuration problems are exceptions. Invariant violations
are ordinary data (``TrialOutcome.violations``); ``InvariantViolationError``
only exists for callers that prefer ``check_or_raise()``.
"""

from __future__ import annotations


class StakeCapsError(Exception):
    """Base class for all stake-cap errors."""


class MalformedSnapshot(StakeCapsError, ValueError):
    """Raised when snapshot input data is structurally invalid."""


class InvalidParameters(StakeCapsError, ValueError):
    """Raised when cap parameters fall outside their domain."""


class InvalidGeneratorConfig(StakeCapsError, ValueError):
    """Raised when generator ranges or knobs are empty, inverted or out of domain."""


class InvariantViolationError(StakeCapsError):
    """Raised by ``check_or_raise()`` when a derivation violates invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
