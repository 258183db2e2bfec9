# assetledger/__init__.py
"""
assetledger: dealer balance records on a versioned, append-only ledger.
Every mutation is committed per transaction and kept in a per-key history.

Deterministic engine, pluggable world-state stores (memory, SQLite).
"""

__version__ = "0.1.0-dev"

from assetledger.core.errors import AlreadyExists, LedgerError, NotFound, PersistenceError, ValidationError
from assetledger.core.types import Asset, HistoryRecord
from assetledger.contract.asset import AssetContract
from assetledger.chain.context import TransactionContext
from assetledger.chain.session import LedgerSession
from assetledger.storage import MemoryStore, SQLiteStore, StateStore, create_storage
from assetledger.verify.verifier import StateVerifier

__all__ = [
    "Asset",
    "HistoryRecord",
    "AssetContract",
    "TransactionContext",
    "LedgerSession",
    "StateStore",
    "MemoryStore",
    "SQLiteStore",
    "create_storage",
    "StateVerifier",
    "LedgerError",
    "NotFound",
    "AlreadyExists",
    "ValidationError",
    "PersistenceError",
]
