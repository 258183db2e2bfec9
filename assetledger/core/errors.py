# assetledger/core/errors.py
from typing import Optional


class LedgerError(Exception):
    """Base for every failure raised by the asset ledger.

    ``kind`` lets callers branch on the failure without parsing the message.
    """

    kind: str = "ledger"

    def __init__(self, key: Optional[str], reason: str):
        self.key = key
        self.reason = reason
        super().__init__(reason)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "key": self.key, "reason": self.reason}


class NotFound(LedgerError):
    kind = "not_found"

    def __init__(self, key: str, reason: Optional[str] = None):
        super().__init__(key, reason or f"The asset {key} does not exist")


class AlreadyExists(LedgerError):
    kind = "already_exists"

    def __init__(self, key: str, reason: Optional[str] = None):
        super().__init__(key, reason or f"The asset {key} already exists")


class ValidationError(LedgerError):
    kind = "validation"

    def __init__(self, key: Optional[str], field: str, reason: str):
        self.field = field
        super().__init__(key, f"Invalid {field} for asset {key}: {reason}")

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["field"] = self.field
        return d


class PersistenceError(LedgerError):
    kind = "persistence"
