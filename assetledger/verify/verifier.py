# assetledger/verify/verifier.py
from typing import List, Optional
from dataclasses import dataclass

from assetledger.core.errors import LedgerError
from assetledger.core.types import decode_asset
from assetledger.storage import StateStore


@dataclass
class VerificationFailure:
    key: Optional[str]
    message: str
    category: str = "general"  # e.g. "history_order", "state_mismatch", "decode", "orphan", "storage"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None
    keys_checked: int = 0

    def __post_init__(self):
        if self.failures is None:
            self.failures = []

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def add(self, key: Optional[str], message: str, category: str) -> None:
        self.failures.append(VerificationFailure(key, message, category))
        self.is_valid = False

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "World state matches history ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.key}] {f.category}: {f.message}")
        return "\n".join(lines)


class StateVerifier:
    """
    Offline consistency check between world state and the history log.

    The latest history entry of every key must be exactly what world state
    holds (or the key must be absent after a deletion), and every live key
    must decode to a valid asset.
    """

    def verify(self, store: StateStore) -> VerificationResult:
        try:
            history_keys = store.history_keys()
            live = dict(store.get_range("", ""))
        except LedgerError as e:
            return VerificationResult(
                False,
                f"Failed to load ledger from storage: {e.reason}",
                [VerificationFailure(e.key, e.reason, "storage")],
            )

        result = VerificationResult(True)

        # 1. Every live key needs a history
        for key in sorted(set(live) - set(history_keys)):
            result.add(key, "Live key has no history", "orphan")

        # 2. History order + latest entry vs world state
        for key in history_keys:
            result.keys_checked += 1
            last = None
            try:
                for mod in store.history(key):
                    if last is not None and mod.seq <= last.seq:
                        result.add(key, f"History sequence not increasing at {mod.seq}", "history_order")
                    last = mod
            except LedgerError as e:
                result.add(key, e.reason, "storage")
                continue

            if last is None:
                continue
            if last.is_delete:
                if key in live:
                    result.add(key, f"Deleted in tx {last.tx_id} but still present in world state", "state_mismatch")
            elif live.get(key) != last.value:
                result.add(key, f"World state differs from latest history entry (tx {last.tx_id})", "state_mismatch")

        # 3. Every live value is a well-formed asset
        for key, value in live.items():
            try:
                decode_asset(key, value)
            except LedgerError as e:
                result.add(key, e.reason, "decode")

        result.message = (
            f"{result.keys_checked} keys consistent" if result.is_valid
            else f"Failed with {len(result.failures)} issues"
        )
        return result
