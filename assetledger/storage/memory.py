# assetledger/storage/memory.py
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from assetledger.core.errors import PersistenceError
from assetledger.core.types import KeyModification
from . import StateStore, WriteSet, in_range

logger = logging.getLogger(__name__)


class MemoryStore(StateStore):
    """In-process world state + history. Used by tests and ``memory:`` URIs."""

    def __init__(self):
        self._state: Optional[Dict[str, bytes]] = {}
        self._history: Dict[str, List[KeyModification]] = {}
        self._tx_ids = set()
        self._seq = 0

    @property
    def state(self) -> Dict[str, bytes]:
        if self._state is None:
            raise PersistenceError(None, "Storage is closed")
        return self._state

    def get(self, key: str) -> Optional[bytes]:
        return self.state.get(key)

    def get_range(self, start: str = "", end: str = "") -> Iterator[Tuple[str, bytes]]:
        # Snapshot so callers may keep iterating across later commits
        snapshot = sorted((k, v) for k, v in self.state.items() if in_range(k, start, end))
        return iter(snapshot)

    def history(self, key: str) -> Iterator[KeyModification]:
        self.state  # raises once closed
        return iter(list(self._history.get(key, ())))

    def commit(self, tx_id: str, timestamp: str, writes: WriteSet) -> None:
        state = self.state
        if tx_id in self._tx_ids:
            raise PersistenceError(None, f"Transaction {tx_id} was already committed")

        for key in sorted(writes):
            value = writes[key]
            self._seq += 1
            if value is None:
                state.pop(key, None)
            else:
                state[key] = bytes(value)
            self._history.setdefault(key, []).append(KeyModification(
                seq=self._seq,
                tx_id=tx_id,
                timestamp=timestamp,
                value=None if value is None else bytes(value),
                is_delete=value is None,
            ))
        self._tx_ids.add(tx_id)

    def history_keys(self) -> List[str]:
        self.state
        return sorted(self._history)

    def close(self) -> None:
        if self._state is not None:
            logger.debug("memory store closed (%d live keys)", len(self._state))
        self._state = None
