"""
Procedural noise field for smoothly varying stake profiles.

Neighbouring publisher indices sample nearby points of a 2D OpenSimplex field,
so adjacent stakes change gradually. That is what probes the derivation
curve's continuity: a tiny move in the inputs should only ever move caps the
"right" way.
"""

from __future__ import annotations

from opensimplex import OpenSimplex

from ..core.math import clamp


class NoiseField:
    """Maps publisher indices to integer stakes in ``[lo, hi]``."""

    def __init__(self, seed: int, *, frequency: float, row: float = 0.0) -> None:
        if frequency <= 0:
            raise ValueError(f"frequency must be positive: {frequency}")
        self._noise = OpenSimplex(seed=seed)
        self.frequency = frequency
        self.row = row

    def sample(self, index: int) -> float:
        """Raw field value in ``[-1, 1]`` at publisher `index`."""
        # Second axis walks at half speed to hide the lattice.
        x = index * self.frequency
        return self._noise.noise2(x, self.row + x * 0.5)

    def stake_at(self, index: int, lo: int, hi: int) -> int:
        mid = (lo + hi) // 2
        half = (hi - lo) // 2
        offset = int(half * self.sample(index))  # truncates toward zero
        return clamp(mid + offset, lo, hi)
