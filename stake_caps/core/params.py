"""Cap parameters: the externally supplied knobs of the derivation curve.

Units/conventions:
- `ceiling`, `floor` and `concentration_threshold` are ledger-native amounts.
- `curve_shape_bps` scales how hard the cap shrinks per unit of stake above
  the threshold (10_000 = 1x).

Parameters are plain values; they are validated at the point of use
(`validate_parameters`, called by `derive_caps`), never trusted from a loader.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ..errors import InvalidParameters
from .math import BPS_SCALE, MAX_CURVE_SHAPE_BPS, is_amount


# Defaults of the `set-parameters` instruction: m = 1.8e12, z = 10.
DEFAULT_CEILING: int = 1_800_000_000_000
DEFAULT_Z: int = 10


@dataclass(frozen=True)
class CapParameters:
    """Tunable inputs to cap derivation."""

    ceiling: int = DEFAULT_CEILING
    floor: int = 1_000_000
    curve_shape_bps: int = DEFAULT_Z * BPS_SCALE // 10
    concentration_threshold: int = 10 * DEFAULT_CEILING

    def to_dict(self) -> Dict[str, int]:
        return {
            "ceiling": int(self.ceiling),
            "floor": int(self.floor),
            "curve_shape_bps": int(self.curve_shape_bps),
            "concentration_threshold": int(self.concentration_threshold),
        }


PARAM_FIELDS: tuple[str, ...] = tuple(CapParameters.__dataclass_fields__)


def validate_parameters(params: CapParameters) -> None:
    """
    Check parameter domains.

    Raises:
        InvalidParameters: Wrong type, out-of-domain value, floor above
            ceiling, zero threshold, or curve shape outside
            ``[1, MAX_CURVE_SHAPE_BPS]``.
    """
    if not isinstance(params, CapParameters):
        raise InvalidParameters(f"expected CapParameters, got {type(params).__name__}")
    for name in PARAM_FIELDS:
        val = getattr(params, name)
        if not is_amount(val):
            raise InvalidParameters(f"{name} must be a u64 amount: {val!r}")
    if params.floor > params.ceiling:
        raise InvalidParameters(f"floor {params.floor} exceeds ceiling {params.ceiling}")
    if params.concentration_threshold < 1:
        raise InvalidParameters("concentration_threshold must be positive")
    if not (1 <= params.curve_shape_bps <= MAX_CURVE_SHAPE_BPS):
        raise InvalidParameters(
            f"curve_shape_bps must be in [1, {MAX_CURVE_SHAPE_BPS}]: {params.curve_shape_bps}"
        )


def params_from_dict(d: Mapping[str, Any]) -> CapParameters:
    """Build parameters from a mapping; missing keys take defaults. Unknown keys are rejected."""
    if not isinstance(d, Mapping):
        raise TypeError("parameters must be a mapping")
    unknown = sorted(set(d) - set(PARAM_FIELDS))
    if unknown:
        raise InvalidParameters(f"unknown parameter(s): {', '.join(unknown)}")
    return CapParameters(**{k: d[k] for k in PARAM_FIELDS if k in d})
