import json
from typing import Any


def json_loads(s: str) -> Any:
    return json.loads(s)


def canonical_json_bytes(obj: Any) -> bytes:
    """
    Deterministic JSON encoding used for hashing, signing and persistence.

    Keys are sorted and whitespace removed so that equal values always
    produce identical bytes.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")
