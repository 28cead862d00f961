"""Derivation output types.

`CapAssignment` is frozen and ordered by pubkey so that its canonical encoding
is stable for the downstream transaction builder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from ..state.amounts import Amount, PubKey
from ..state.canonical import canonical_json_bytes


CapEntry = Tuple[PubKey, Amount]


@dataclass(frozen=True)
class CapAssignment:
    """Ordered publisher -> cap mapping."""

    entries: Tuple[CapEntry, ...] = ()
    _index: Dict[PubKey, Amount] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.entries, tuple):
            raise TypeError("entries must be a tuple of (pubkey, cap) pairs")
        index: Dict[PubKey, Amount] = {}
        prev: Optional[PubKey] = None
        for item in self.entries:
            if not isinstance(item, tuple) or len(item) != 2:
                raise TypeError(f"entry must be a (pubkey, cap) pair: {item!r}")
            pk, cap = item
            if not isinstance(pk, str):
                raise TypeError("pubkey must be a str")
            if not isinstance(cap, int) or isinstance(cap, bool):
                raise TypeError(f"cap for {pk} must be an int")
            if cap < 0:
                raise ValueError(f"cap for {pk} must be non-negative: {cap}")
            if prev is not None and pk <= prev:
                raise ValueError("entries must be strictly ascending by pubkey")
            index[pk] = cap
            prev = pk
        object.__setattr__(self, "_index", index)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CapEntry]:
        return iter(self.entries)

    def __contains__(self, pubkey: object) -> bool:
        return pubkey in self._index

    def get(self, pubkey: PubKey) -> Optional[Amount]:
        return self._index.get(pubkey)

    def cap_of(self, pubkey: PubKey) -> Amount:
        """Cap for `pubkey`. Raises KeyError if absent."""
        return self._index[pubkey]

    def pubkeys(self) -> Tuple[PubKey, ...]:
        return tuple(pk for pk, _ in self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {"caps": [{"pubkey": pk, "cap": int(cap)} for pk, cap in self.entries]}

    def canonical_bytes(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    def __repr__(self) -> str:
        return f"CapAssignment({len(self.entries)} entries)"


def assignment_from_mapping(caps: Dict[PubKey, Amount]) -> CapAssignment:
    """Build an assignment from an unordered mapping (sorted by pubkey)."""
    return CapAssignment(entries=tuple(sorted(caps.items())))
