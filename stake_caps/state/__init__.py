"""
Snapshot state for stake-cap derivation
"""

from .amounts import U64_MAX, Amount, PubKey
from .snapshot import AccountSnapshot, SnapshotBuilder, snapshot_from_dict, snapshot_from_pairs

__all__ = [
    "U64_MAX",
    "Amount",
    "PubKey",
    "AccountSnapshot",
    "SnapshotBuilder",
    "snapshot_from_dict",
    "snapshot_from_pairs",
]
