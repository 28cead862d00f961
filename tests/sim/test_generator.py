"""Tests for stake_caps/sim/generator.py."""

from __future__ import annotations

from dataclasses import replace

import pytest

from stake_caps.core.derivation import derive_caps
from stake_caps.core.invariants import check_all
from stake_caps.core.params import CapParameters
from stake_caps.errors import InvalidGeneratorConfig
from stake_caps.sim.generator import (
    BOUNDARY_CASES,
    GeneratorConfig,
    ScenarioGenerator,
    boundary_case_names,
    validate_generator_config,
)
from stake_caps.sim.types import GeneratorMode
from stake_caps.state.amounts import U64_MAX


SMALL = GeneratorConfig(publisher_range=(2, 12), stake_range=(10, 1_000_000))
RANDOMIZED = (GeneratorMode.UNIFORM, GeneratorMode.CLUSTERED, GeneratorMode.NOISE_FIELD)


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("mode", list(GeneratorMode))
def test_same_seed_gives_byte_identical_scenario(mode) -> None:
    gen = ScenarioGenerator(SMALL)
    a = gen.generate(424242, mode)
    b = ScenarioGenerator(SMALL).generate(424242, mode)
    assert a.canonical_bytes() == b.canonical_bytes()
    assert a.fingerprint() == b.fingerprint()
    assert a == b


@pytest.mark.parametrize("mode", RANDOMIZED)
def test_different_seeds_differ(mode) -> None:
    gen = ScenarioGenerator(SMALL)
    assert gen.generate(1, mode).canonical_bytes() != gen.generate(2, mode).canonical_bytes()


def test_mode_accepts_string_value() -> None:
    gen = ScenarioGenerator(SMALL)
    assert gen.generate(5, "uniform") == gen.generate(5, GeneratorMode.UNIFORM)


def test_scenario_records_replay_inputs() -> None:
    scenario = ScenarioGenerator(SMALL).generate(77, GeneratorMode.CLUSTERED)
    data = scenario.to_dict()
    assert data["seed"] == 77
    assert data["mode"] == "clustered"
    assert data["rng_algorithm"] == "mt19937"
    assert data["params"] == SMALL.params.to_dict()


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("mode", [GeneratorMode.UNIFORM, GeneratorMode.NOISE_FIELD])
def test_counts_and_stakes_within_ranges(mode) -> None:
    gen = ScenarioGenerator(SMALL)
    for seed in range(30):
        snap = gen.generate(seed, mode).snapshot
        assert 2 <= len(snap) <= 12
        assert all(10 <= stake <= 1_000_000 for _, stake in snap)


def test_clustered_without_outlier_stays_in_range() -> None:
    config = replace(SMALL, outlier_bps=0)
    gen = ScenarioGenerator(config)
    for seed in range(30):
        snap = gen.generate(seed, GeneratorMode.CLUSTERED).snapshot
        assert all(10 <= stake <= 1_000_000 for _, stake in snap)


def test_clustered_whale_holds_multiple_of_max() -> None:
    config = replace(SMALL, outlier_bps=10_000, outlier_multiplier=20)
    gen = ScenarioGenerator(config)
    for seed in range(10):
        snap = gen.generate(seed, GeneratorMode.CLUSTERED).snapshot
        assert max(stake for _, stake in snap) == 20 * 1_000_000


def test_zero_publishers_allowed() -> None:
    config = replace(SMALL, publisher_range=(0, 0))
    for mode in RANDOMIZED:
        assert len(ScenarioGenerator(config).generate(3, mode).snapshot) == 0


# ---------------------------------------------------------------------------
# Boundary catalogue
# ---------------------------------------------------------------------------

def test_boundary_selection_by_seed() -> None:
    gen = ScenarioGenerator(GeneratorConfig())
    names = boundary_case_names()
    assert len(names) == len(BOUNDARY_CASES)
    for i, name in enumerate(names):
        assert gen.generate(i, GeneratorMode.BOUNDARY).case == name
        assert gen.generate(i + len(names), GeneratorMode.BOUNDARY).case == name


def test_boundary_cases_hit_their_edges() -> None:
    config = GeneratorConfig()
    params = config.params
    gen = ScenarioGenerator(config)
    by_name = {name: gen.generate(i, GeneratorMode.BOUNDARY).snapshot for i, name in enumerate(boundary_case_names())}

    assert len(by_name["empty"]) == 0
    assert len(by_name["all_zero"]) > 0 and by_name["all_zero"].total_stake == 0
    assert len(by_name["single_holder"]) == 1
    assert sorted(s for _, s in by_name["whale_with_zeros"])[:-1] == [0, 0, 0]
    assert all(s == params.ceiling for _, s in by_name["at_ceiling"])
    assert by_name["at_threshold"].total_stake == params.concentration_threshold
    assert by_name["above_threshold"].total_stake == params.concentration_threshold + 1
    assert by_name["u64_saturated"].total_stake == U64_MAX
    assert len({s for _, s in by_name["ties"]}) == 1


def test_boundary_cases_with_huge_ceiling() -> None:
    params = CapParameters(ceiling=U64_MAX, floor=0, concentration_threshold=U64_MAX)
    gen = ScenarioGenerator(GeneratorConfig(params=params))
    for i in range(len(BOUNDARY_CASES)):
        gen.generate(i, GeneratorMode.BOUNDARY)


@pytest.mark.parametrize("mode", list(GeneratorMode))
def test_generated_scenarios_pass_invariants(mode) -> None:
    gen = ScenarioGenerator(GeneratorConfig())
    for seed in range(12):
        scenario = gen.generate(seed, mode)
        caps = derive_caps(scenario.snapshot, scenario.params)
        assert check_all(scenario.snapshot, scenario.params, caps) == []


# ---------------------------------------------------------------------------
# Config validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "overrides",
    [
        {"publisher_range": (5, 2)},
        {"publisher_range": (-1, 2)},
        {"publisher_range": (1, 10**6)},
        {"publisher_range": [1, 2]},
        {"stake_range": (10, 1)},
        {"stake_range": (0, U64_MAX + 1)},
        {"stake_range": (0, U64_MAX // 2)},
        {"max_clusters": 0},
        {"cluster_spread_bps": 10_001},
        {"outlier_bps": -1},
        {"outlier_multiplier": 0},
        {"noise_frequency": 0},
        {"noise_frequency": True},
        {"rng_algorithm": "pcg64"},
    ],
)
def test_invalid_generator_config(overrides) -> None:
    config = replace(GeneratorConfig(), **overrides)
    with pytest.raises(InvalidGeneratorConfig):
        validate_generator_config(config)
    with pytest.raises(InvalidGeneratorConfig):
        ScenarioGenerator(config)


def test_generate_rejects_bad_seed_and_mode() -> None:
    gen = ScenarioGenerator(SMALL)
    with pytest.raises(InvalidGeneratorConfig):
        gen.generate(-1, GeneratorMode.UNIFORM)
    with pytest.raises(InvalidGeneratorConfig):
        gen.generate(1, "gaussian")
