# assetledger/contract/asset.py
"""
Asset ledger engine: the operations applied once per ordered transaction.

Every method takes the TransactionContext first and touches state only
through it. Nothing here reads clocks, randomness or the environment, so
replicas replaying the same transactions end up with identical state.
"""

from itertools import chain
from typing import Iterator, List

from assetledger.chain.context import TransactionContext
from assetledger.core.amounts import Amount, parse_amount
from assetledger.core.canon import canonical_json_str
from assetledger.core.errors import AlreadyExists, NotFound
from assetledger.core.types import (
    DELETED_MARKER,
    Asset,
    HistoryRecord,
    KeyModification,
    decode_asset,
    encode_asset,
    normalize_status,
)

BOOTSTRAP_ASSETS = [
    {
        "DEALERID": "0001",
        "MSISDN": "9876543210",
        "MPIN": "1212",
        "BALANCE": 10000,
        "STATUS": "active",
        "TRANSAMOUNT": 0,
        "TRANSTYPE": "NA",
        "REMARKS": "Initial Balance",
    },
]


class AssetContract:
    """Dealer balance / transaction profile records keyed by asset id."""

    def init_ledger(self, ctx: TransactionContext, overwrite: bool = False) -> str:
        """
        Seed ASSET0.. with the bootstrap records.

        Re-running against a ledger that already holds any bootstrap key
        raises AlreadyExists unless ``overwrite`` is set.
        """
        assets = [Asset.from_record(f"ASSET{i}", record) for i, record in enumerate(BOOTSTRAP_ASSETS)]
        if not overwrite:
            for asset in assets:
                if self.asset_exists(ctx, asset.id):
                    raise AlreadyExists(asset.id, f"The asset {asset.id} already exists, ledger is already initialized")

        for asset in assets:
            ctx.put_state(asset.id, encode_asset(asset))
        return "Ledger Initialized Successfully"

    def create_asset(
        self,
        ctx: TransactionContext,
        id: str,
        dealer_id: str,
        msisdn: str,
        mpin: str,
        balance: Amount,
        status: str,
        trans_amount: Amount,
        trans_type: str,
        remarks: str,
    ) -> str:
        if self.asset_exists(ctx, id):
            raise AlreadyExists(id)

        asset = Asset.build(id, dealer_id, msisdn, mpin, balance, status, trans_amount, trans_type, remarks)
        ctx.put_state(id, encode_asset(asset))
        return f"Asset {id} created successfully"

    def read_asset(self, ctx: TransactionContext, id: str) -> Asset:
        data = ctx.get_state(id)
        if not data:
            raise NotFound(id)
        return decode_asset(id, data)

    def read_asset_json(self, ctx: TransactionContext, id: str) -> str:
        return canonical_json_str(self.read_asset(ctx, id).to_record())

    def update_asset(
        self,
        ctx: TransactionContext,
        id: str,
        balance: Amount,
        status: str,
        trans_amount: Amount,
        trans_type: str,
        remarks: str,
    ) -> str:
        current = self.read_asset(ctx, id)
        updated = current.evolve(
            balance=parse_amount(balance, "balance", id),
            status=normalize_status(status, id),
            trans_amount=parse_amount(trans_amount, "trans_amount", id),
            trans_type=trans_type,
            remarks=remarks,
        )
        ctx.put_state(id, encode_asset(updated))
        return f"Asset {id} updated successfully"

    def delete_asset(self, ctx: TransactionContext, id: str) -> str:
        if not self.asset_exists(ctx, id):
            raise NotFound(id)
        ctx.delete_state(id)
        return f"Asset {id} deleted successfully"

    def transfer_asset(self, ctx: TransactionContext, id: str, new_mpin: str) -> str:
        # Only the credential field changes; balance and ownership stay put.
        current = self.read_asset(ctx, id)
        ctx.put_state(id, encode_asset(current.evolve(mpin=new_mpin)))
        return f"Asset {id} transferred successfully"

    def asset_exists(self, ctx: TransactionContext, id: str) -> bool:
        return ctx.state_exists(id)

    def get_all_assets(self, ctx: TransactionContext) -> List[Asset]:
        return [decode_asset(key, value) for key, value in ctx.get_state_by_range("", "")]

    def get_asset_history(self, ctx: TransactionContext, id: str) -> Iterator[HistoryRecord]:
        """
        Chronological (commit order) history of ``id``, lazily decoded.

        Raises NotFound right away if the key was never written; deleted keys
        still return their full history ending with the deletion marker.
        """
        modifications = ctx.get_history_for_key(id)
        first = next(modifications, None)
        if first is None:
            raise NotFound(id, f"The asset {id} has no history")
        return _project_history(id, chain([first], modifications))


def _project_history(id: str, modifications: Iterator[KeyModification]) -> Iterator[HistoryRecord]:
    for mod in modifications:
        yield HistoryRecord(
            tx_id=mod.tx_id,
            timestamp=mod.timestamp,
            data=DELETED_MARKER if mod.is_delete else decode_asset(id, mod.value),
        )
