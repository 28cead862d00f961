"""Tests for stake_caps/core/invariants.py: the invariant battery."""

from __future__ import annotations

import pytest

from stake_caps.core.derivation import derive_caps
from stake_caps.core.invariants import (
    INVARIANT_REGISTRY,
    MAX_MONOTONICITY_PROBES,
    NON_PROPERTIES,
    check_all,
    check_or_raise,
    monotonicity_probes,
)
from stake_caps.core.params import CapParameters
from stake_caps.core.types import CapAssignment, assignment_from_mapping
from stake_caps.errors import InvariantViolationError
from stake_caps.state.amounts import U64_MAX
from stake_caps.state.snapshot import EMPTY_SNAPSHOT, snapshot_from_pairs


PK_A = "0x" + "11" * 32
PK_B = "0x" + "22" * 32
PK_C = "0x" + "33" * 32

PARAMS = CapParameters(ceiling=1000, floor=10, curve_shape_bps=10_000, concentration_threshold=100)


def _key(i: int) -> str:
    return "0x" + f"{i:064x}"


def rising_derive(snapshot, params):
    """Cap grows with total stake: violates monotonicity only."""
    cap = min(params.ceiling, params.floor + snapshot.total_stake)
    return CapAssignment(entries=tuple((pk, cap) for pk, _ in snapshot))


class TestRegistry:
    def test_registry_order(self):
        assert list(INVARIANT_REGISTRY) == ["coverage", "boundedness", "monotonicity", "fairness"]

    def test_conservation_is_a_non_property(self):
        assert "conservation_safety" in NON_PROPERTIES
        assert "conservation_safety" not in INVARIANT_REGISTRY


class TestDerivedAssignmentsPass:
    def test_empty_snapshot(self):
        assert check_all(EMPTY_SNAPSHOT, PARAMS, derive_caps(EMPTY_SNAPSHOT, PARAMS)) == []

    def test_above_threshold(self):
        snap = snapshot_from_pairs([(PK_A, 100), (PK_B, 50), (PK_C, 0)])
        assert check_all(snap, PARAMS, derive_caps(snap, PARAMS)) == []

    def test_u64_saturated_total(self):
        snap = snapshot_from_pairs([(PK_A, U64_MAX // 2), (PK_B, U64_MAX - U64_MAX // 2)])
        assert check_all(snap, PARAMS, derive_caps(snap, PARAMS)) == []

    def test_idempotent(self):
        snap = snapshot_from_pairs([(PK_A, 100), (PK_B, 50)])
        caps = derive_caps(snap, PARAMS)
        assert check_all(snap, PARAMS, caps) == check_all(snap, PARAMS, caps)


class TestCoverage:
    def test_missing_publisher(self):
        snap = snapshot_from_pairs([(PK_A, 1), (PK_B, 1)])
        caps = assignment_from_mapping({PK_A: 1000})
        assert check_all(snap, PARAMS, caps) == ["coverage"]

    def test_extra_publisher(self):
        snap = snapshot_from_pairs([(PK_A, 1)])
        caps = assignment_from_mapping({PK_A: 1000, PK_B: 1000})
        assert "coverage" in check_all(snap, PARAMS, caps)


class TestBoundedness:
    def test_cap_above_ceiling(self):
        snap = snapshot_from_pairs([(PK_A, 1)])
        caps = assignment_from_mapping({PK_A: 1001})
        assert "boundedness" in check_all(snap, PARAMS, caps)

    def test_cap_below_floor(self):
        snap = snapshot_from_pairs([(PK_A, 1)])
        caps = assignment_from_mapping({PK_A: 9})
        assert "boundedness" in check_all(snap, PARAMS, caps)


class TestFairness:
    def test_equal_stakes_unequal_caps(self):
        snap = snapshot_from_pairs([(PK_A, 5), (PK_B, 5)])
        caps = assignment_from_mapping({PK_A: 1000, PK_B: 999})
        assert "fairness" in check_all(snap, PARAMS, caps)

    def test_different_stakes_may_differ(self):
        snap = snapshot_from_pairs([(PK_A, 5), (PK_B, 6)])
        caps = assignment_from_mapping({PK_A: 1000, PK_B: 999})
        assert "fairness" not in check_all(snap, PARAMS, caps)


class TestMonotonicity:
    def test_rising_curve_detected(self):
        snap = snapshot_from_pairs([(PK_A, 100)])
        caps = rising_derive(snap, PARAMS)
        assert check_all(snap, PARAMS, caps, rising_derive) == ["monotonicity"]

    def test_probe_skipped_without_headroom(self):
        snap = snapshot_from_pairs([(PK_A, U64_MAX)])
        caps = rising_derive(snap, PARAMS)
        assert "monotonicity" not in check_all(snap, PARAMS, caps, rising_derive)

    def test_probes_one_per_distinct_stake(self):
        snap = snapshot_from_pairs([(_key(i), i % 3) for i in range(9)])
        probes = monotonicity_probes(snap)
        assert len(probes) == 3
        assert [snap.stake_of(pk) for pk in probes] == [0, 1, 2]

    def test_probes_thinned_to_limit(self):
        snap = snapshot_from_pairs([(_key(i), i) for i in range(100)])
        probes = monotonicity_probes(snap)
        assert len(probes) == MAX_MONOTONICITY_PROBES
        assert probes == monotonicity_probes(snap)
        assert len(set(probes)) == len(probes)


def test_check_or_raise() -> None:
    snap = snapshot_from_pairs([(PK_A, 1)])
    check_or_raise(snap, PARAMS, derive_caps(snap, PARAMS))
    with pytest.raises(InvariantViolationError) as excinfo:
        check_or_raise(snap, PARAMS, assignment_from_mapping({PK_A: 1001}))
    assert excinfo.value.violations == ["boundedness"]
