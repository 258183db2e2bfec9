# assetledger/core/types.py
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Literal, Optional, Union

from assetledger.core.amounts import Amount, amount_to_json, parse_amount
from assetledger.core.canon import canonical_json, load_json
from assetledger.core.errors import ValidationError

ASSET_STATUSES = ("active", "inactive")

DELETED_MARKER = "Deleted"

# Stored field name -> Asset attribute, in the order the record is built.
RECORD_FIELDS = {
    "DEALERID": "dealer_id",
    "MSISDN": "msisdn",
    "MPIN": "mpin",
    "BALANCE": "balance",
    "STATUS": "status",
    "TRANSAMOUNT": "trans_amount",
    "TRANSTYPE": "trans_type",
    "REMARKS": "remarks",
}


def _require_text(key: Optional[str], name: str, value, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise ValidationError(key, name, f"expected a string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        raise ValidationError(key, name, "value is empty")
    return value


def normalize_status(value, key: Optional[str] = None) -> str:
    status = _require_text(key, "status", value).strip().lower()
    if status not in ASSET_STATUSES:
        raise ValidationError(key, "status", f"{value!r} is not one of {', '.join(ASSET_STATUSES)}")
    return status


@dataclass(frozen=True)
class Asset:
    """A dealer balance / transaction profile stored under ``id``."""
    id: str
    dealer_id: str
    msisdn: str
    mpin: str
    balance: Decimal
    status: Literal["active", "inactive"]
    trans_amount: Decimal
    trans_type: str
    remarks: str = ""

    def __post_init__(self):
        _require_text(self.id, "id", self.id)
        for name in ("dealer_id", "msisdn", "mpin", "trans_type"):
            _require_text(self.id, name, getattr(self, name))
        _require_text(self.id, "remarks", self.remarks, allow_empty=True)
        if self.status not in ASSET_STATUSES:
            raise ValidationError(self.id, "status", f"{self.status!r} is not one of {', '.join(ASSET_STATUSES)}")
        for name in ("balance", "trans_amount"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                raise ValidationError(self.id, name, "must be a Decimal, use Asset.build() for raw input")
            parse_amount(value, name, self.id)

    @classmethod
    def build(
        cls,
        id: str,
        dealer_id: str,
        msisdn: str,
        mpin: str,
        balance: Amount,
        status: str,
        trans_amount: Amount,
        trans_type: str,
        remarks: str = "",
    ) -> "Asset":
        """Coerce caller-supplied primitives (e.g. REST string amounts) into an Asset."""
        _require_text(id, "id", id)
        return cls(
            id=id,
            dealer_id=dealer_id,
            msisdn=msisdn,
            mpin=mpin,
            balance=parse_amount(balance, "balance", id),
            status=normalize_status(status, id),
            trans_amount=parse_amount(trans_amount, "trans_amount", id),
            trans_type=trans_type,
            remarks=remarks,
        )

    def evolve(self, **changes) -> "Asset":
        """Copy with some fields replaced; ``id`` never changes."""
        if "id" in changes and changes["id"] != self.id:
            raise ValidationError(self.id, "id", "asset id is immutable")
        return replace(self, **changes)

    def to_record(self) -> dict:
        """Field mapping as persisted, upper-case keys, ids excluded."""
        record = {}
        for stored, attr in RECORD_FIELDS.items():
            value = getattr(self, attr)
            record[stored] = amount_to_json(value) if isinstance(value, Decimal) else value
        return record

    @classmethod
    def from_record(cls, id: str, record: dict) -> "Asset":
        missing = [name for name in RECORD_FIELDS if record.get(name) is None]
        if missing:
            raise ValidationError(id, missing[0], "field is missing from stored record")
        return cls.build(id, *(record[name] for name in RECORD_FIELDS))


def encode_asset(asset: Asset) -> bytes:
    return canonical_json(asset.to_record())


def decode_asset(id: str, data: bytes) -> Asset:
    try:
        record = load_json(data)
    except ValueError as e:
        raise ValidationError(id, "value", f"stored value is not valid JSON: {e}") from None
    if not isinstance(record, dict):
        raise ValidationError(id, "value", "stored value is not a JSON object")
    return Asset.from_record(id, record)


@dataclass(frozen=True)
class KeyModification:
    """One entry of a key's append-only history, as kept by the store."""
    seq: int                        # store commit sequence, the only ordering key
    tx_id: str
    timestamp: str                  # ISO 8601 UTC, informational only
    value: Optional[bytes] = None   # None for deletions
    is_delete: bool = False


@dataclass(frozen=True)
class HistoryRecord:
    """History entry projected for callers: decoded snapshot or the deletion marker."""
    tx_id: str
    timestamp: str
    data: Union[Asset, str] = field(default=DELETED_MARKER)

    @property
    def is_delete(self) -> bool:
        return self.data == DELETED_MARKER

    def to_dict(self) -> dict:
        data = self.data.to_record() if isinstance(self.data, Asset) else self.data
        return {"txId": self.tx_id, "timestamp": self.timestamp, "data": data}
