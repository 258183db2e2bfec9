"""
Storage backends for the asset world state and its append-only history.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional, Tuple
from pathlib import Path

from assetledger.core.types import KeyModification

# key -> new value, or None for a deletion
WriteSet = Dict[str, Optional[bytes]]


class StateStore(ABC):
    """Abstract base for world state + history persistence.

    ``commit`` is the only mutation primitive: it applies a whole
    transaction's write set atomically and appends one history entry per
    written key, in commit order.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        pass

    def exists(self, key: str) -> bool:
        value = self.get(key)
        return value is not None and len(value) > 0

    @abstractmethod
    def get_range(self, start: str = "", end: str = "") -> Iterator[Tuple[str, bytes]]:
        """Live keys in [start, end) in key order; empty bounds are open."""
        pass

    @abstractmethod
    def history(self, key: str) -> Iterator[KeyModification]:
        pass

    @abstractmethod
    def commit(self, tx_id: str, timestamp: str, writes: WriteSet) -> None:
        pass

    @abstractmethod
    def history_keys(self) -> List[str]:
        """Every key ever written, live or deleted, in key order."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def in_range(key: str, start: str, end: str) -> bool:
    return (not start or key >= start) and (not end or key < end)


def create_storage(uri: str) -> StateStore:
    if uri == "memory:":
        from .memory import MemoryStore
        return MemoryStore()

    if uri.startswith("sqlite://"):
        from .sqlite import SQLiteStore
        # sqlite:///abs/path.db is absolute, sqlite://rel/path.db is cwd-relative
        raw_path = uri[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in storage URI: {uri}")
        return SQLiteStore(Path(raw_path).resolve())

    raise ValueError(f"Unsupported storage URI: {uri}")


from .memory import MemoryStore
from .sqlite import SQLiteStore

__all__ = ["StateStore", "WriteSet", "create_storage", "MemoryStore", "SQLiteStore"]
