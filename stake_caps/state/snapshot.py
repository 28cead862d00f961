"""
Point-in-time view of publisher stake balances.

`AccountSnapshot` is immutable and validates itself on construction, so every
instance (synthetic or read from a ledger export) satisfies:
- entries are strictly ascending by pubkey (no duplicates),
- every stake is a u64 amount,
- `total_stake` is exactly the sum of the entries and fits in u64.

`SnapshotBuilder` is the incremental front door used by generators and ledger
readers; it rejects duplicate publishers as soon as they are added.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from ..errors import MalformedSnapshot
from .amounts import U64_MAX, Amount, PubKey, is_amount
from .canonical import canonical_json_bytes, canonical_pubkey, is_canonical_pubkey


SNAPSHOT_VERSION = 1

Entry = Tuple[PubKey, Amount]


@dataclass(frozen=True)
class AccountSnapshot:
    """Immutable, ordered publisher -> stake mapping plus total and slot."""

    entries: Tuple[Entry, ...]
    total_stake: Amount
    slot: int = 0
    _index: Dict[PubKey, Amount] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.entries, tuple):
            raise MalformedSnapshot("entries must be a tuple of (pubkey, stake) pairs")
        if not isinstance(self.slot, int) or isinstance(self.slot, bool) or self.slot < 0:
            raise MalformedSnapshot(f"slot must be a non-negative int: {self.slot!r}")
        if not isinstance(self.total_stake, int) or isinstance(self.total_stake, bool):
            raise MalformedSnapshot("total_stake must be an int")

        index: Dict[PubKey, Amount] = {}
        prev: Optional[PubKey] = None
        running = 0
        for item in self.entries:
            if not isinstance(item, tuple) or len(item) != 2:
                raise MalformedSnapshot(f"entry must be a (pubkey, stake) pair: {item!r}")
            pk, stake = item
            if not is_canonical_pubkey(pk):
                raise MalformedSnapshot(f"pubkey must be a canonical 32-byte hex key: {pk!r}")
            if pk in index:
                raise MalformedSnapshot(f"duplicate publisher: {pk}")
            if prev is not None and pk < prev:
                raise MalformedSnapshot("entries must be sorted by pubkey")
            if not is_amount(stake):
                raise MalformedSnapshot(f"stake for {pk} must be a u64 amount: {stake!r}")
            running += stake
            index[pk] = stake
            prev = pk

        if running > U64_MAX:
            raise MalformedSnapshot(f"total stake overflows u64: {running}")
        if running != self.total_stake:
            raise MalformedSnapshot(
                f"total_stake mismatch: declared {self.total_stake}, entries sum to {running}"
            )
        # Frozen dataclass: the lookup index is derived state, set once here.
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self.entries)

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._index

    def stake_of(self, pubkey: PubKey) -> Amount:
        """Stake for `pubkey`. Raises KeyError if the publisher is absent."""
        return self._index[pubkey]

    def pubkeys(self) -> Tuple[PubKey, ...]:
        return tuple(pk for pk, _ in self.entries)

    def with_stake(self, pubkey: PubKey, stake: Amount) -> "AccountSnapshot":
        """Return a new snapshot with one publisher's stake replaced."""
        if pubkey not in self._index:
            raise KeyError(pubkey)
        entries = tuple((pk, stake if pk == pubkey else s) for pk, s in self.entries)
        total = self.total_stake - self._index[pubkey] + stake
        return AccountSnapshot(entries=entries, total_stake=total, slot=self.slot)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "slot": int(self.slot),
            "total_stake": int(self.total_stake),
            "publishers": [{"pubkey": pk, "stake": int(s)} for pk, s in self.entries],
        }

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    def __repr__(self) -> str:
        return f"AccountSnapshot({len(self.entries)} publishers, total={self.total_stake}, slot={self.slot})"


class SnapshotBuilder:
    """
    Validated builder for `AccountSnapshot`.

    Keys are canonicalized on `add()` so that "0xAB.." and "ab.." collide as
    duplicates instead of silently becoming two publishers.
    """

    def __init__(self) -> None:
        self._stakes: Dict[PubKey, Amount] = {}

    def add(self, pubkey: PubKey, stake: Amount) -> "SnapshotBuilder":
        try:
            pk = canonical_pubkey(pubkey)
        except (TypeError, ValueError) as exc:
            raise MalformedSnapshot(f"invalid publisher key {pubkey!r}: {exc}") from exc
        if pk in self._stakes:
            raise MalformedSnapshot(f"duplicate publisher: {pk}")
        if not is_amount(stake):
            raise MalformedSnapshot(f"stake for {pk} must be a u64 amount: {stake!r}")
        self._stakes[pk] = int(stake)
        return self

    def __len__(self) -> int:
        return len(self._stakes)

    def build(self, slot: int = 0, declared_total: Optional[Amount] = None) -> AccountSnapshot:
        """
        Build the snapshot.

        Args:
            slot: Logical timestamp of the snapshot
            declared_total: Total reported by the data source, if any. Must
                match the sum of the added stakes.

        Raises:
            MalformedSnapshot: On any structural violation
        """
        entries = tuple(sorted(self._stakes.items()))
        total = sum(s for _, s in entries)
        if declared_total is not None:
            if not isinstance(declared_total, int) or isinstance(declared_total, bool):
                raise MalformedSnapshot("declared_total must be an int")
            if declared_total != total:
                raise MalformedSnapshot(
                    f"total_stake mismatch: declared {declared_total}, entries sum to {total}"
                )
        return AccountSnapshot(entries=entries, total_stake=total, slot=slot)


def snapshot_from_pairs(
    pairs: Iterable[Tuple[PubKey, Amount]],
    *,
    slot: int = 0,
    declared_total: Optional[Amount] = None,
) -> AccountSnapshot:
    """Build a snapshot from (pubkey, stake) pairs in any order."""
    builder = SnapshotBuilder()
    for pk, stake in pairs:
        builder.add(pk, stake)
    return builder.build(slot=slot, declared_total=declared_total)


def snapshot_from_dict(data: Mapping[str, Any]) -> AccountSnapshot:
    """Inverse of `AccountSnapshot.to_dict()`."""
    if not isinstance(data, Mapping):
        raise MalformedSnapshot("snapshot data must be a mapping")
    version = data.get("version", SNAPSHOT_VERSION)
    if version != SNAPSHOT_VERSION:
        raise MalformedSnapshot(f"unsupported snapshot version: {version!r}")
    publishers = data.get("publishers")
    if not isinstance(publishers, list):
        raise MalformedSnapshot("publishers must be a list")
    pairs = []
    for rec in publishers:
        if not isinstance(rec, Mapping) or "pubkey" not in rec or "stake" not in rec:
            raise MalformedSnapshot(f"publisher record must have pubkey and stake: {rec!r}")
        pairs.append((rec["pubkey"], rec["stake"]))
    return snapshot_from_pairs(
        pairs,
        slot=data.get("slot", 0),
        declared_total=data.get("total_stake"),
    )


EMPTY_SNAPSHOT = AccountSnapshot(entries=(), total_stake=0, slot=0)
