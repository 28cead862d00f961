"""
Adapters between ledger data and the stake-cap core.

- `snapshot_from_accounts` / `load_snapshot_json`: decoded account records -> `AccountSnapshot`
- `assignment_payload` / `payload_commitment_hex`: `CapAssignment` -> stable bytes for submission
"""

from .ledger_io import (
    CAP_PAYLOAD_VERSION,
    assignment_payload,
    load_snapshot_json,
    payload_commitment_hex,
    snapshot_from_accounts,
)

__all__ = [
    "CAP_PAYLOAD_VERSION",
    "assignment_payload",
    "load_snapshot_json",
    "payload_commitment_hex",
    "snapshot_from_accounts",
]
