# assetledger/chain/context.py
from dataclasses import dataclass, field
from typing import Iterator, Optional, Tuple

from assetledger.core.types import KeyModification
from assetledger.storage import StateStore, WriteSet, in_range


@dataclass
class TransactionContext:
    """
    Everything one transaction may touch: its id, its timestamp and the store.

    Writes are buffered in ``writes`` and only reach the store through
    ``commit()``; discarding the context discards them. Reads see this
    transaction's own pending writes first.
    """
    tx_id: str
    timestamp: str
    store: StateStore
    writes: WriteSet = field(default_factory=dict)
    committed: bool = False

    def get_state(self, key: str) -> Optional[bytes]:
        if key in self.writes:
            return self.writes[key]
        return self.store.get(key)

    def state_exists(self, key: str) -> bool:
        value = self.get_state(key)
        return value is not None and len(value) > 0

    def put_state(self, key: str, value: bytes) -> None:
        self._check_open()
        self.writes[key] = bytes(value)

    def delete_state(self, key: str) -> None:
        self._check_open()
        self.writes[key] = None

    def get_state_by_range(self, start: str = "", end: str = "") -> Iterator[Tuple[str, bytes]]:
        if not self.writes:
            return self.store.get_range(start, end)
        merged = dict(self.store.get_range(start, end))
        for key, value in self.writes.items():
            if not in_range(key, start, end):
                continue
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        return iter(sorted(merged.items()))

    def get_history_for_key(self, key: str) -> Iterator[KeyModification]:
        """Committed history only; this transaction's writes are not history yet."""
        return self.store.history(key)

    def commit(self) -> None:
        self._check_open()
        if self.writes:
            self.store.commit(self.tx_id, self.timestamp, self.writes)
        self.committed = True

    def _check_open(self):
        if self.committed:
            raise RuntimeError(f"Transaction {self.tx_id} is already committed")
