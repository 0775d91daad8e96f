"""
Repository Package

Single-table persistence for the ledger: key derivation, entity codec
and the LedgerRepository that ties them to a KeyValueStore.
"""

from fintrack.repository.keys import (
    PRIMARY_KEY,
    SECONDARY_INDEXES,
    TABLE_INDEXES,
    budget_keys,
    transaction_keys,
    user_keys,
)
from fintrack.repository.ledger import (
    LedgerRepository,
    decode_cursor,
    encode_cursor,
)

__all__ = [
    # Table layout
    "PRIMARY_KEY",
    "SECONDARY_INDEXES",
    "TABLE_INDEXES",
    # Keys
    "budget_keys",
    "transaction_keys",
    "user_keys",
    # Repository
    "LedgerRepository",
    "decode_cursor",
    "encode_cursor",
]
