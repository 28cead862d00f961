"""
Stake-cap derivation (anti-concentration curve).

Every publisher receives the same cap, computed from network-wide stake:

    span   = ceiling - floor
    excess = max(0, total_stake - concentration_threshold)
    cap    = floor + span * T * 10000 // (T * 10000 + excess * curve_shape_bps)

where ``T = concentration_threshold``. Properties (tested):
- cap == ceiling while total_stake <= T (neutral curve at low stake),
- cap < ceiling once total_stake > T (whenever floor < ceiling),
- floor <= cap <= ceiling,
- non-increasing in total_stake,
- independent of publisher identity and iteration order.

The whole computation is one integer floor division on non-negative operands,
so results are bit-for-bit reproducible.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Tuple

from ..state.snapshot import AccountSnapshot
from .math import BPS_SCALE, saturating_sub
from .params import CapParameters, validate_parameters
from .types import CapAssignment


DeriveFn = Callable[[AccountSnapshot, CapParameters], CapAssignment]


def _publisher_cap_unchecked(total_stake: int, params: CapParameters) -> int:
    span = params.ceiling - params.floor
    if span == 0:
        return params.ceiling
    excess = saturating_sub(total_stake, params.concentration_threshold)
    if excess == 0:
        return params.ceiling
    base = params.concentration_threshold * BPS_SCALE
    denom = base + excess * params.curve_shape_bps
    return params.floor + (span * base) // denom


def publisher_cap(total_stake: int, params: CapParameters) -> int:
    """Cap applied to every publisher when the network holds `total_stake`."""
    validate_parameters(params)
    if not isinstance(total_stake, int) or isinstance(total_stake, bool) or total_stake < 0:
        raise ValueError(f"total_stake must be a non-negative int: {total_stake!r}")
    return _publisher_cap_unchecked(total_stake, params)


def derive_caps(snapshot: AccountSnapshot, params: CapParameters) -> CapAssignment:
    """
    Derive the cap assignment for `snapshot`.

    Never fails on snapshot content; `AccountSnapshot` already guarantees the
    structural invariants.

    Raises:
        InvalidParameters: If `params` is out of domain
    """
    validate_parameters(params)
    cap = _publisher_cap_unchecked(snapshot.total_stake, params)
    return CapAssignment(entries=tuple((pk, cap) for pk, _ in snapshot.entries))


def cap_curve(params: CapParameters, totals: Iterable[int]) -> List[Tuple[int, int]]:
    """Tabulate ``(total_stake, cap)`` points, for reports and plots."""
    validate_parameters(params)
    points = []
    for total in totals:
        if not isinstance(total, int) or isinstance(total, bool) or total < 0:
            raise ValueError(f"total_stake must be a non-negative int: {total!r}")
        points.append((total, _publisher_cap_unchecked(total, params)))
    return points
