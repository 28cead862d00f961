"""
Synthetic scenario generation.

`ScenarioGenerator.generate(seed, mode)` is a pure function of
``(config, seed, mode)``: the same triple always yields a byte-identical
`Scenario` (compare `Scenario.canonical_bytes()`), which is what makes a failing
trial replayable from its seed alone.

Modes:
- uniform      independent publisher count and stakes from the configured ranges
- clustered    a few stake groups (cartel-like concentration) plus optional whale
- noise_field  stakes follow a smooth OpenSimplex profile over publisher index
- boundary     fixed catalogue of edge cases, selected by ``seed % len(catalogue)``
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Callable, List, Tuple, Union

from ..core.math import BPS_SCALE, bps_of, clamp
from ..core.params import CapParameters
from ..errors import InvalidGeneratorConfig
from ..state.amounts import U64_MAX, Amount, PubKey
from ..state.snapshot import snapshot_from_pairs
from .noise import NoiseField
from .rng import DEFAULT_ALGORITHM, SeededSequence, supported_algorithms
from .types import GeneratorMode, Scenario


MAX_PUBLISHERS: int = 10_000

Pairs = List[Tuple[PubKey, Amount]]


@dataclass(frozen=True)
class GeneratorConfig:
    """Ranges and knobs for scenario generation. Ranges are inclusive ``(min, max)``."""

    params: CapParameters = field(default_factory=CapParameters)
    publisher_range: Tuple[int, int] = (1, 64)
    stake_range: Tuple[int, int] = (0, 50_000_000_000_000)
    max_clusters: int = 4
    cluster_spread_bps: int = 1_000
    outlier_bps: int = 2_500
    outlier_multiplier: int = 20
    noise_frequency: float = 0.05
    rng_algorithm: str = DEFAULT_ALGORITHM


def _check_range(name: str, rng: object, *, hi_limit: int) -> Tuple[int, int]:
    if not isinstance(rng, tuple) or len(rng) != 2:
        raise InvalidGeneratorConfig(f"{name} must be a (min, max) pair: {rng!r}")
    lo, hi = rng
    for v in (lo, hi):
        if not isinstance(v, int) or isinstance(v, bool):
            raise InvalidGeneratorConfig(f"{name} bounds must be ints: {rng!r}")
    if lo < 0:
        raise InvalidGeneratorConfig(f"{name} min must be non-negative: {lo}")
    if lo > hi:
        raise InvalidGeneratorConfig(f"{name} is inverted: min {lo} > max {hi}")
    if hi > hi_limit:
        raise InvalidGeneratorConfig(f"{name} max exceeds {hi_limit}: {hi}")
    return lo, hi


def validate_generator_config(config: GeneratorConfig) -> None:
    """
    Raises:
        InvalidGeneratorConfig: Empty/inverted ranges or out-of-domain knobs
    """
    if not isinstance(config, GeneratorConfig):
        raise InvalidGeneratorConfig(f"expected GeneratorConfig, got {type(config).__name__}")
    _, pmax = _check_range("publisher_range", config.publisher_range, hi_limit=MAX_PUBLISHERS)
    _, smax = _check_range("stake_range", config.stake_range, hi_limit=U64_MAX)
    if smax * pmax > U64_MAX:
        raise InvalidGeneratorConfig("stake_range max times publisher_range max overflows u64")
    for name, val in (
        ("max_clusters", config.max_clusters),
        ("outlier_multiplier", config.outlier_multiplier),
    ):
        if not isinstance(val, int) or isinstance(val, bool) or val < 1:
            raise InvalidGeneratorConfig(f"{name} must be a positive int: {val!r}")
    for name, val in (
        ("cluster_spread_bps", config.cluster_spread_bps),
        ("outlier_bps", config.outlier_bps),
    ):
        if not isinstance(val, int) or isinstance(val, bool) or not (0 <= val <= BPS_SCALE):
            raise InvalidGeneratorConfig(f"{name} must be in [0, {BPS_SCALE}]: {val!r}")
    freq = config.noise_frequency
    if not isinstance(freq, (int, float)) or isinstance(freq, bool) or not (freq > 0):
        raise InvalidGeneratorConfig(f"noise_frequency must be positive: {freq!r}")
    if config.rng_algorithm not in supported_algorithms():
        raise InvalidGeneratorConfig(f"unknown rng_algorithm: {config.rng_algorithm!r}")


# ---------------------------------------------------------------------------
# Randomized modes
# ---------------------------------------------------------------------------

def _random_keys(rng: SeededSequence, n: int) -> List[PubKey]:
    return ["0x" + rng.key_bytes().hex() for _ in range(n)]


def _gen_uniform(rng: SeededSequence, config: GeneratorConfig) -> Pairs:
    pmin, pmax = config.publisher_range
    smin, smax = config.stake_range
    n = rng.randint(pmin, pmax)
    keys = _random_keys(rng, n)
    return [(pk, rng.randint(smin, smax)) for pk in keys]


def _gen_clustered(rng: SeededSequence, config: GeneratorConfig) -> Pairs:
    pmin, pmax = config.publisher_range
    smin, smax = config.stake_range
    n = rng.randint(pmin, pmax)
    if n == 0:
        return []
    keys = _random_keys(rng, n)
    k = rng.randint(1, min(config.max_clusters, n))
    means = [rng.randint(smin, smax) for _ in range(k)]

    stakes = []
    for _ in range(n):
        mean = means[rng.randbelow(k)]
        spread = bps_of(mean, config.cluster_spread_bps)
        stakes.append(clamp(mean + rng.randint(-spread, spread), smin, smax))

    if rng.chance_bps(config.outlier_bps):
        idx = rng.randbelow(n)
        rest = sum(stakes) - stakes[idx]
        whale = min(smax * config.outlier_multiplier, U64_MAX - rest)
        stakes[idx] = max(stakes[idx], whale)

    return list(zip(keys, stakes))


def _gen_noise_field(rng: SeededSequence, config: GeneratorConfig) -> Pairs:
    pmin, pmax = config.publisher_range
    smin, smax = config.stake_range
    n = rng.randint(pmin, pmax)
    keys = _random_keys(rng, n)
    noise = NoiseField(
        rng.fork_seed(),
        frequency=float(config.noise_frequency),
        row=float(rng.randbelow(1024)),
    )
    return [(pk, noise.stake_at(i, smin, smax)) for i, pk in enumerate(keys)]


# ---------------------------------------------------------------------------
# Boundary catalogue (deterministic, not randomized)
# ---------------------------------------------------------------------------

def boundary_key(i: int) -> PubKey:
    return "0x" + hashlib.sha256(f"stake_caps:boundary:{i}".encode("ascii")).hexdigest()


def _keyed(stakes: List[int]) -> Pairs:
    return [(boundary_key(i), s) for i, s in enumerate(stakes)]


def _split_total(total: int, parts: int) -> List[int]:
    share = total // parts
    return [share] * (parts - 1) + [total - share * (parts - 1)]


def _b_empty(config: GeneratorConfig) -> Pairs:
    return []


def _b_all_zero(config: GeneratorConfig) -> Pairs:
    return _keyed([0, 0, 0, 0])


def _b_single_holder(config: GeneratorConfig) -> Pairs:
    return _keyed([config.stake_range[1]])


def _b_whale_with_zeros(config: GeneratorConfig) -> Pairs:
    return _keyed([config.stake_range[1], 0, 0, 0])


def _b_at_ceiling(config: GeneratorConfig) -> Pairs:
    ceiling = config.params.ceiling
    count = max(1, min(4, U64_MAX // max(ceiling, 1)))
    return _keyed([ceiling] * count)


def _b_at_threshold(config: GeneratorConfig) -> Pairs:
    return _keyed(_split_total(config.params.concentration_threshold, 2))


def _b_above_threshold(config: GeneratorConfig) -> Pairs:
    total = min(config.params.concentration_threshold + 1, U64_MAX)
    return _keyed(_split_total(total, 2))


def _b_u64_saturated(config: GeneratorConfig) -> Pairs:
    return _keyed(_split_total(U64_MAX, 2))


def _b_ties(config: GeneratorConfig) -> Pairs:
    stake = min(config.stake_range[1], U64_MAX // 5)
    return _keyed([stake] * 5)


BOUNDARY_CASES: Tuple[Tuple[str, Callable[[GeneratorConfig], Pairs]], ...] = (
    ("empty", _b_empty),
    ("all_zero", _b_all_zero),
    ("single_holder", _b_single_holder),
    ("whale_with_zeros", _b_whale_with_zeros),
    ("at_ceiling", _b_at_ceiling),
    ("at_threshold", _b_at_threshold),
    ("above_threshold", _b_above_threshold),
    ("u64_saturated", _b_u64_saturated),
    ("ties", _b_ties),
)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

_RANDOMIZED: dict[GeneratorMode, Callable[[SeededSequence, GeneratorConfig], Pairs]] = {
    GeneratorMode.UNIFORM: _gen_uniform,
    GeneratorMode.CLUSTERED: _gen_clustered,
    GeneratorMode.NOISE_FIELD: _gen_noise_field,
}


class ScenarioGenerator:
    """Produces `Scenario` values from ``(seed, mode)``."""

    def __init__(self, config: GeneratorConfig) -> None:
        validate_generator_config(config)
        self.config = config

    def generate(self, seed: int, mode: Union[GeneratorMode, str]) -> Scenario:
        """
        Generate one scenario.

        Raises:
            InvalidGeneratorConfig: Unknown mode or negative seed
            MalformedSnapshot: If the sampled data is structurally invalid
        """
        if not isinstance(seed, int) or isinstance(seed, bool) or seed < 0:
            raise InvalidGeneratorConfig(f"seed must be a non-negative int: {seed!r}")
        try:
            mode = GeneratorMode(mode)
        except ValueError as exc:
            raise InvalidGeneratorConfig(f"unknown generator mode: {mode!r}") from exc

        config = self.config
        if mode is GeneratorMode.BOUNDARY:
            case, builder_fn = BOUNDARY_CASES[seed % len(BOUNDARY_CASES)]
            snapshot = snapshot_from_pairs(builder_fn(config), slot=0)
        else:
            case = ""
            rng = SeededSequence(seed, config.rng_algorithm)
            slot = rng.randbelow(1 << 32)
            snapshot = snapshot_from_pairs(_RANDOMIZED[mode](rng, config), slot=slot)

        return Scenario(
            snapshot=snapshot,
            params=config.params,
            seed=seed,
            mode=mode,
            rng_algorithm=config.rng_algorithm,
            case=case,
        )


def boundary_case_names() -> Tuple[str, ...]:
    return tuple(name for name, _ in BOUNDARY_CASES)

