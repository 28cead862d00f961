"""Seeded pseudo-random sequence used by every generator mode.

One abstraction, one algorithm identifier. A scenario records only
``(seed, algorithm)``; that pair is enough to replay it exactly.

Per-trial seeds are derived by hashing ``(base_seed, trial_index)`` so that a
trial's inputs never depend on any other trial having run.
"""

from __future__ import annotations

import hashlib
import random
from typing import Callable, Dict


DEFAULT_ALGORITHM = "mt19937"

# algorithm id -> factory(seed). Python's `random.Random` is MT19937 and its
# int seeding and integer sampling are stable across interpreter releases.
_ALGORITHMS: Dict[str, Callable[[int], random.Random]] = {
    "mt19937": random.Random,
}

SEED_MASK = (1 << 63) - 1


def supported_algorithms() -> tuple[str, ...]:
    return tuple(sorted(_ALGORITHMS))


def trial_seed(base_seed: int, trial_index: int) -> int:
    """Derive an independent 63-bit seed for one trial."""
    if not isinstance(base_seed, int) or isinstance(base_seed, bool):
        raise TypeError("base_seed must be an int")
    if not isinstance(trial_index, int) or isinstance(trial_index, bool) or trial_index < 0:
        raise ValueError(f"trial_index must be a non-negative int: {trial_index!r}")
    payload = f"stake_caps:trial:v1:{base_seed}:{trial_index}".encode("ascii")
    return int.from_bytes(hashlib.sha256(payload).digest()[:8], "big") & SEED_MASK


class SeededSequence:
    """Integer-only sampling helpers over a named, seeded generator."""

    def __init__(self, seed: int, algorithm: str = DEFAULT_ALGORITHM) -> None:
        if not isinstance(seed, int) or isinstance(seed, bool):
            raise TypeError("seed must be an int")
        factory = _ALGORITHMS.get(algorithm)
        if factory is None:
            raise ValueError(f"unknown rng algorithm: {algorithm!r}")
        self.seed = seed
        self.algorithm = algorithm
        self._rng = factory(seed)

    def randint(self, lo: int, hi: int) -> int:
        """Uniform integer in ``[lo, hi]`` (inclusive)."""
        if lo > hi:
            raise ValueError(f"empty range [{lo}, {hi}]")
        return self._rng.randint(lo, hi)

    def randbelow(self, n: int) -> int:
        """Uniform integer in ``[0, n)``."""
        return self._rng.randrange(n)

    def chance_bps(self, bps: int) -> bool:
        """True with probability ``bps / 10000``."""
        return self._rng.randrange(10_000) < bps

    def key_bytes(self, nbytes: int = 32) -> bytes:
        return self._rng.getrandbits(8 * nbytes).to_bytes(nbytes, "big")

    def fork_seed(self) -> int:
        """Draw a seed for a dependent generator (e.g. a noise field)."""
        return self._rng.getrandbits(63)

    def __repr__(self) -> str:
        return f"SeededSequence(seed={self.seed}, algorithm={self.algorithm!r})"
