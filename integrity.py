"""
Canonical JSON + SHA-256 content hashing for stored records.

Canonical form (anyone recomputing a hash must reproduce it byte for byte):
    - JSON text, no whitespace: separators "," and ":"
    - object keys sorted by Unicode code point, at every level
    - non-ASCII characters written as-is, the string is hashed as UTF-8
    - floats with an integral value are written as integers (42.0 -> 42)
    - NaN / Infinity are not allowed
    - datetimes are written as "YYYY-MM-DDTHH:MM:SS.mmmZ" (UTC)
    - None is written as null, never dropped; records hash every declared
      field, so an absent optional field appears as "field":null
    - a container that is its own ancestor is written as null; a container
      reached twice through different branches is written out both times

The last two rules differ from the earlier JavaScript service, which dropped
undefined keys and wrote null for any container seen before in the call.
Hashes produced by that service are not reproduced by this module.
"""
import hashlib
import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

HASH_LENGTH = 64


def format_timestamp(dt: datetime) -> str:
    # naive datetimes are taken to be UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S") + f".{dt.microsecond // 1000:03d}Z"


def _normalize(value: Any, ancestors: set) -> Any:
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"non-finite number in record: {value!r}")
        return int(value) if value.is_integer() else value
    if isinstance(value, datetime):
        return format_timestamp(value)

    if isinstance(value, (dict, list, tuple)):
        # self-reference on the current path becomes null
        if id(value) in ancestors:
            return None
        ancestors.add(id(value))
        try:
            if isinstance(value, dict):
                out = {}
                for k in sorted(value):
                    if not isinstance(k, str):
                        raise TypeError(f"record keys must be strings, got {type(k).__name__}")
                    out[k] = _normalize(value[k], ancestors)
                return out
            return [_normalize(v, ancestors) for v in value]
        finally:
            ancestors.discard(id(value))

    raise TypeError(f"cannot canonicalize value of type {type(value).__name__}")


def canonicalize(value: Any) -> str:
    return json.dumps(
        _normalize(value, set()),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def sha256_hex(canonical: str) -> str:
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def compute_record_hash(fields: Dict[str, Any], timestamp: str) -> Tuple[str, str]:
    """Hash a record's fields together with its creation timestamp.

    Returns (hash, canonical). The timestamp is part of the hashed content, so
    it has to be stored exactly as passed here.
    """
    block = dict(fields)
    block["timestamp"] = timestamp
    canonical = canonicalize(block)
    return sha256_hex(canonical), canonical


def verify_stored_record(stored: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute the hash of a stored record and compare it to the stored one.

    ``stored`` holds exactly the hashed fields plus ``timestamp`` and ``hash``.
    A mismatch is reported as ``valid: False``, not raised.
    """
    fields = {k: v for k, v in stored.items() if k not in ("hash", "timestamp")}
    recomputed, canonical = compute_record_hash(fields, stored["timestamp"])
    stored_hash = stored["hash"]
    return {
        "valid": recomputed == stored_hash,
        "storedHash": stored_hash,
        "recomputedHash": recomputed,
        "canonical": canonical,
    }
