"""
Deterministic content hashing for idempotency checks.

The bulk processor remembers, next to each idempotency key, a hash of the
request it answered.  A repeat of the same key with the same content
replays the stored response; the same key with different content is a
conflict.

Examples:
    >>> compute_payload_hash({"x": 1, "y": [2]}) == compute_payload_hash({"y": [2], "x": 1})
    True

Tags:
    hashing, deduplication, idempotency, ojs-lifecycle

Doc-Types:
    - API Reference
"""

import hashlib
import json
from typing import Any


def compute_payload_hash(payload: Any, length: int = 64) -> str:
    """Hash a JSON-compatible structure independent of dict key order.

    Mappings whose keys cannot be ordered against each other (``1`` next
    to ``"a"``) are hashed in insertion order instead.
    """
    try:
        content = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    except TypeError:
        content = json.dumps(payload, separators=(",", ":"), default=str)
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:length]


__all__ = ["compute_payload_hash"]
