"""Tests for AccountSnapshot / SnapshotBuilder validation."""

from __future__ import annotations

import pytest

from stake_caps.errors import MalformedSnapshot
from stake_caps.state.amounts import U64_MAX
from stake_caps.state.snapshot import (
    EMPTY_SNAPSHOT,
    AccountSnapshot,
    SnapshotBuilder,
    snapshot_from_dict,
    snapshot_from_pairs,
)


PK_A = "0x" + "11" * 32
PK_B = "0x" + "22" * 32
PK_C = "0x" + "33" * 32


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def test_builder_sorts_entries_and_sums_total() -> None:
    snap = SnapshotBuilder().add(PK_C, 3).add(PK_A, 1).add(PK_B, 2).build(slot=9)
    assert snap.pubkeys() == (PK_A, PK_B, PK_C)
    assert snap.total_stake == 6
    assert snap.slot == 9
    assert len(snap) == 3


def test_builder_canonicalizes_keys() -> None:
    snap = SnapshotBuilder().add("AB" * 32, 5).build()
    assert snap.pubkeys() == ("0x" + "ab" * 32,)


def test_builder_rejects_duplicate_immediately() -> None:
    b = SnapshotBuilder().add("0x" + "AB" * 32, 1)
    with pytest.raises(MalformedSnapshot):
        b.add("0x" + "ab" * 32, 2)
    assert len(b) == 1


@pytest.mark.parametrize("stake", [-1, U64_MAX + 1, True, 1.5, "10"])
def test_builder_rejects_bad_stake(stake) -> None:
    with pytest.raises(MalformedSnapshot):
        SnapshotBuilder().add(PK_A, stake)


@pytest.mark.parametrize("pubkey", ["0x1234", "zz" * 32, 42, ""])
def test_builder_rejects_bad_key(pubkey) -> None:
    with pytest.raises(MalformedSnapshot):
        SnapshotBuilder().add(pubkey, 1)


def test_declared_total_must_match() -> None:
    b = SnapshotBuilder().add(PK_A, 10).add(PK_B, 20)
    assert b.build(declared_total=30).total_stake == 30
    with pytest.raises(MalformedSnapshot):
        b.build(declared_total=31)


def test_total_overflow_rejected() -> None:
    with pytest.raises(MalformedSnapshot):
        snapshot_from_pairs([(PK_A, U64_MAX), (PK_B, 1)])


def test_total_exactly_u64_max_accepted() -> None:
    snap = snapshot_from_pairs([(PK_A, U64_MAX - 1), (PK_B, 1)])
    assert snap.total_stake == U64_MAX


def test_malformed_snapshot_is_value_error() -> None:
    with pytest.raises(ValueError):
        snapshot_from_pairs([(PK_A, -5)])


# ---------------------------------------------------------------------------
# Direct construction
# ---------------------------------------------------------------------------

def test_direct_construction_rejects_unsorted() -> None:
    with pytest.raises(MalformedSnapshot):
        AccountSnapshot(entries=((PK_B, 1), (PK_A, 1)), total_stake=2)


def test_direct_construction_rejects_duplicate() -> None:
    with pytest.raises(MalformedSnapshot):
        AccountSnapshot(entries=((PK_A, 1), (PK_A, 1)), total_stake=2)


def test_direct_construction_rejects_total_mismatch() -> None:
    with pytest.raises(MalformedSnapshot):
        AccountSnapshot(entries=((PK_A, 1),), total_stake=2)


def test_direct_construction_rejects_non_canonical_key() -> None:
    with pytest.raises(MalformedSnapshot):
        AccountSnapshot(entries=(("0x" + "AA" * 32, 1),), total_stake=1)


def test_direct_construction_rejects_negative_slot() -> None:
    with pytest.raises(MalformedSnapshot):
        AccountSnapshot(entries=(), total_stake=0, slot=-1)


def test_empty_snapshot() -> None:
    assert len(EMPTY_SNAPSHOT) == 0
    assert EMPTY_SNAPSHOT.total_stake == 0
    assert list(EMPTY_SNAPSHOT) == []


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def test_stake_of_and_contains() -> None:
    snap = snapshot_from_pairs([(PK_A, 7), (PK_B, 0)])
    assert snap.stake_of(PK_A) == 7
    assert snap.stake_of(PK_B) == 0
    assert PK_A in snap
    assert PK_C not in snap
    with pytest.raises(KeyError):
        snap.stake_of(PK_C)


def test_with_stake_returns_new_snapshot() -> None:
    snap = snapshot_from_pairs([(PK_A, 7), (PK_B, 3)], slot=4)
    grown = snap.with_stake(PK_A, 100)
    assert grown.stake_of(PK_A) == 100
    assert grown.total_stake == 103
    assert grown.slot == 4
    assert snap.stake_of(PK_A) == 7
    assert snap.total_stake == 10
    with pytest.raises(KeyError):
        snap.with_stake(PK_C, 1)


def test_iteration_order_is_deterministic() -> None:
    a = snapshot_from_pairs([(PK_B, 2), (PK_A, 1)])
    b = snapshot_from_pairs([(PK_A, 1), (PK_B, 2)])
    assert list(a) == list(b)
    assert a == b
    assert a.canonical_bytes() == b.canonical_bytes()


def test_dict_roundtrip() -> None:
    snap = snapshot_from_pairs([(PK_A, 1), (PK_B, 2)], slot=77)
    data = snap.to_dict()
    assert data["version"] == 1
    assert data["publishers"][0] == {"pubkey": PK_A, "stake": 1}
    assert snapshot_from_dict(data) == snap


def test_from_dict_rejects_unknown_version() -> None:
    with pytest.raises(MalformedSnapshot):
        snapshot_from_dict({"version": 99, "publishers": []})


def test_from_dict_rejects_bad_records() -> None:
    with pytest.raises(MalformedSnapshot):
        snapshot_from_dict({"publishers": [{"pubkey": PK_A}]})
    with pytest.raises(MalformedSnapshot):
        snapshot_from_dict({"publishers": "nope"})
