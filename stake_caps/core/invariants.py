"""Invariant checkers for cap assignments.

Each `inv_*` function returns True when the invariant holds for
``(snapshot, params, assignment)``; `check_all()` returns the list of violated
invariant names in registry order (empty = all pass).

Everything here is pure: inputs are never mutated, and re-running a check on
the same triple yields the same list.

Conservation-safety is deliberately *not* an invariant: caps bound individual
publishers, and the sum of caps is never a ledger limit. It is listed in
`NON_PROPERTIES` so that nobody adds an aggregate check by accident.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from ..errors import InvariantViolationError
from ..state.amounts import U64_MAX, PubKey
from ..state.snapshot import AccountSnapshot
from .derivation import DeriveFn, derive_caps
from .params import CapParameters
from .types import CapAssignment


MAX_MONOTONICITY_PROBES: int = 16

NON_PROPERTIES: tuple[str, ...] = ("conservation_safety",)


def inv_coverage(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn,
) -> bool:
    if len(assignment) != len(snapshot):
        return False
    return assignment.pubkeys() == snapshot.pubkeys()


def inv_boundedness(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn,
) -> bool:
    return all(params.floor <= cap <= params.ceiling for _, cap in assignment)


def inv_fairness(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn,
) -> bool:
    cap_by_stake: Dict[int, int] = {}
    for pk, stake in snapshot:
        cap = assignment.get(pk)
        if cap is None:
            continue  # reported by coverage
        seen = cap_by_stake.setdefault(stake, cap)
        if seen != cap:
            return False
    return True


def monotonicity_probes(snapshot: AccountSnapshot, limit: int = MAX_MONOTONICITY_PROBES) -> List[PubKey]:
    """
    Deterministic probe set: the first publisher of each distinct stake value,
    thinned to at most `limit` evenly spaced picks (snapshot order).
    """
    seen: set[int] = set()
    reps: List[PubKey] = []
    for pk, stake in snapshot:
        if stake not in seen:
            seen.add(stake)
            reps.append(pk)
    if len(reps) <= limit:
        return reps
    return [reps[(i * len(reps)) // limit] for i in range(limit)]


def _raised_stakes(stake: int, headroom: int) -> Tuple[int, ...]:
    out = []
    for bump in (1, max(1, stake)):
        if bump <= headroom:
            out.append(stake + bump)
    return tuple(out)


def inv_monotonicity(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn,
) -> bool:
    headroom = U64_MAX - snapshot.total_stake
    for pk in monotonicity_probes(snapshot):
        cap = assignment.get(pk)
        if cap is None:
            continue  # reported by coverage
        stake = snapshot.stake_of(pk)
        for raised in _raised_stakes(stake, headroom):
            grown = derive(snapshot.with_stake(pk, raised), params).get(pk)
            if grown is not None and grown > cap:
                return False
    return True


# ---------------------------------------------------------------------------
# Registry + check_all
# ---------------------------------------------------------------------------

InvariantFn = Callable[[AccountSnapshot, CapParameters, CapAssignment, DeriveFn], bool]

INVARIANT_REGISTRY: dict[str, InvariantFn] = {
    "coverage": inv_coverage,
    "boundedness": inv_boundedness,
    "monotonicity": inv_monotonicity,
    "fairness": inv_fairness,
}


def check_all(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn = derive_caps,
) -> list[str]:
    """Return list of violated invariant names (empty = all pass)."""
    return [
        inv_id
        for inv_id, check_fn in INVARIANT_REGISTRY.items()
        if not check_fn(snapshot, params, assignment, derive)
    ]


def check_or_raise(
    snapshot: AccountSnapshot,
    params: CapParameters,
    assignment: CapAssignment,
    derive: DeriveFn = derive_caps,
) -> None:
    """Like ``check_all()`` but raises `InvariantViolationError` on any violation."""
    violations = check_all(snapshot, params, assignment, derive)
    if violations:
        raise InvariantViolationError(violations)
