# assetledger/core/canon.py
import json
from typing import Any

try:
    import jcs
except ImportError:
    raise ImportError("Please install jcs: pip install jcs")


def canonical_json(obj: Any) -> bytes:
    """
    Produce deterministic UTF-8 bytes according to RFC 8785 (JSON Canonicalization Scheme).
    Every replica encoding the same asset ends up with byte-identical state.
    """
    return jcs.canonicalize(obj)


def canonical_json_str(obj: Any) -> str:
    """Same as above, but returns string (CLI output, read_asset_json)."""
    return canonical_json(obj).decode("utf-8")


def load_json(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))
