# assetledger/chain/session.py
import logging
import re
import types
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import uuid4

from assetledger.chain.context import TransactionContext
from assetledger.contract.asset import AssetContract
from assetledger.core.errors import LedgerError
from assetledger.storage import StateStore, create_storage

logger = logging.getLogger(__name__)

OPERATIONS = (
    "init_ledger",
    "create_asset",
    "read_asset",
    "read_asset_json",
    "update_asset",
    "delete_asset",
    "transfer_asset",
    "asset_exists",
    "get_all_assets",
    "get_asset_history",
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def operation_name(name: str) -> str:
    """Accept both ``CreateAsset`` and ``create_asset``."""
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()
    if snake not in OPERATIONS:
        raise ValueError(f"Unknown ledger operation: {name}")
    return snake


class LedgerSession:
    """
    Runs ledger operations against one store, one transaction at a time.

    Plays the part of the ordering runtime: it hands every transaction an id
    and a timestamp, commits the write set when the operation returns, and
    drops it when the operation raises.
    """

    def __init__(
        self,
        storage: Optional[Union[StateStore, str]] = None,
        contract: Optional[AssetContract] = None,
    ):
        # Handle storage argument flexibly
        if storage is None:
            storage = "memory:"
        if isinstance(storage, str):
            stripped = storage.strip()
            if stripped.startswith(("sqlite://", "memory:")):
                storage = create_storage(stripped)
            elif stripped:
                # Plain file path → SQLite
                storage = create_storage(f"sqlite://{stripped}")
            else:
                storage = create_storage("memory:")

        self.storage: Optional[StateStore] = storage
        self.contract = contract or AssetContract()

    @property
    def store(self) -> StateStore:
        if self.storage is None:
            raise RuntimeError("Session is closed")
        return self.storage

    def begin(self, tx_id: Optional[str] = None, timestamp: Optional[str] = None) -> TransactionContext:
        return TransactionContext(
            tx_id=tx_id or uuid4().hex,
            timestamp=timestamp or utc_now(),
            store=self.store,
        )

    def submit(
        self,
        operation: str,
        *args,
        tx_id: Optional[str] = None,
        timestamp: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """Run an operation and commit its writes. Nothing is written if it raises."""
        name = operation_name(operation)
        ctx = self.begin(tx_id, timestamp)
        try:
            result = getattr(self.contract, name)(ctx, *args, **kwargs)
            if isinstance(result, types.GeneratorType):
                result = list(result)
            ctx.commit()
        except LedgerError as e:
            logger.warning("tx %s %s discarded: %s (%s)", ctx.tx_id, name, e.reason, e.kind)
            raise

        if ctx.writes:
            logger.info("tx %s %s committed %d key(s)", ctx.tx_id, name, len(ctx.writes))
        return result

    def evaluate(self, operation: str, *args, **kwargs) -> Any:
        """Run an operation as a query; any writes it makes are thrown away."""
        name = operation_name(operation)
        ctx = self.begin()
        result = getattr(self.contract, name)(ctx, *args, **kwargs)
        if isinstance(result, types.GeneratorType):
            result = list(result)
        return result

    def close(self) -> None:
        if self.storage is not None:
            self.storage.close()
            logger.debug("session storage closed")
        self.storage = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
