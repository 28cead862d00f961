"""`core`: pure, integer-only stake-cap derivation and its invariants.

- deterministic derivation (`derive_caps`),
- immutable inputs/outputs (frozen dataclasses),
- invariant battery reporting every violation (`check_all`).

Public API:
- `derive_caps(snapshot, params) -> CapAssignment`
- `publisher_cap(total_stake, params) -> int`
- `check_all(snapshot, params, assignment) -> list[str]`
"""

from .derivation import DeriveFn, cap_curve, derive_caps, publisher_cap
from .invariants import INVARIANT_REGISTRY, NON_PROPERTIES, check_all, check_or_raise
from .params import CapParameters, params_from_dict, validate_parameters
from .types import CapAssignment, assignment_from_mapping

__all__ = [
    "DeriveFn",
    "cap_curve",
    "derive_caps",
    "publisher_cap",
    "INVARIANT_REGISTRY",
    "NON_PROPERTIES",
    "check_all",
    "check_or_raise",
    "CapParameters",
    "params_from_dict",
    "validate_parameters",
    "CapAssignment",
    "assignment_from_mapping",
]
