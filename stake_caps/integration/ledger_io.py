"""
Ledger-facing encoding for stake-cap derivation.

Goals:
- Ledger exports go through the same validated `SnapshotBuilder` as synthetic data.
- Cap assignments leave the core as deterministic, versioned JSON with a
  domain-separated commitment, so a downstream signer sees stable bytes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from ..core.params import CapParameters
from ..core.types import CapAssignment
from ..errors import MalformedSnapshot
from ..state.canonical import canonical_json_bytes, domain_sep_bytes, sha256_hex
from ..state.snapshot import AccountSnapshot, SnapshotBuilder


CAP_PAYLOAD_VERSION = 1
CAP_PAYLOAD_KIND = "stake_caps_update"


def _amount_field(value: Any, *, name: str) -> int:
    # u64 values are often exported as decimal strings to survive JSON number limits.
    if isinstance(value, str) and value.isdigit() and value.isascii():
        return int(value)
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedSnapshot(f"{name} must be an integer amount: {value!r}")
    return value


def snapshot_from_accounts(
    records: Iterable[Mapping[str, Any]],
    slot: int = 0,
    declared_total: Optional[int] = None,
) -> AccountSnapshot:
    """
    Build a snapshot from decoded ledger account records.

    Each record must be a mapping with ``pubkey`` and ``stake``. A duplicated
    key, a malformed value or a `declared_total` that disagrees with the sum
    raises `MalformedSnapshot`.
    """
    builder = SnapshotBuilder()
    for rec in records:
        if not isinstance(rec, Mapping) or "pubkey" not in rec or "stake" not in rec:
            raise MalformedSnapshot(f"account record must have pubkey and stake: {rec!r}")
        builder.add(rec["pubkey"], _amount_field(rec["stake"], name="stake"))
    if declared_total is not None:
        declared_total = _amount_field(declared_total, name="total_stake")
    return builder.build(slot=slot, declared_total=declared_total)


def load_snapshot_json(path: Union[str, Path]) -> AccountSnapshot:
    """
    Read a ledger export.

    Accepted shapes: a list of account records, or an object with
    ``publishers`` (or ``accounts``) plus optional ``slot`` and ``total_stake``.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedSnapshot(f"{path}: invalid JSON: {exc}") from exc

    if isinstance(data, list):
        return snapshot_from_accounts(data)
    if not isinstance(data, Mapping):
        raise MalformedSnapshot(f"{path}: snapshot export must be a list or an object")
    records = data.get("publishers", data.get("accounts"))
    if not isinstance(records, list):
        raise MalformedSnapshot(f"{path}: missing publishers list")
    return snapshot_from_accounts(
        records,
        slot=data.get("slot", 0),
        declared_total=data.get("total_stake"),
    )


def assignment_payload(assignment: CapAssignment, params: CapParameters, slot: int) -> Dict[str, Any]:
    """Versioned submission payload. Caps are listed in ascending pubkey order."""
    if not isinstance(assignment, CapAssignment):
        raise TypeError("assignment must be a CapAssignment")
    if not isinstance(params, CapParameters):
        raise TypeError("params must be CapParameters")
    if not isinstance(slot, int) or isinstance(slot, bool) or slot < 0:
        raise ValueError(f"slot must be a non-negative int: {slot!r}")
    return {
        "version": CAP_PAYLOAD_VERSION,
        "kind": CAP_PAYLOAD_KIND,
        "slot": slot,
        "params": params.to_dict(),
        "caps": [{"pubkey": pk, "cap": int(cap)} for pk, cap in assignment],
    }


def payload_commitment_hex(payload: Mapping[str, Any]) -> str:
    """sha256 over the domain separator plus the canonical payload bytes."""
    version = payload.get("version", CAP_PAYLOAD_VERSION)
    return sha256_hex(domain_sep_bytes("cap_assignment", version=version) + canonical_json_bytes(dict(payload)))
