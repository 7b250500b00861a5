"""x-client-transaction-id generation.

The web client tags every API request with a transaction id. The server only
checks it heuristically, so a value with the same shape (encoded timestamp
plus random material) that never repeats is sufficient.
"""

from __future__ import annotations

import base64
import secrets
import string
import time


_ALPHABET = string.ascii_letters + string.digits + "+/"


def _random_string(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _encode_timestamp(now_ms: int) -> str:
    raw = now_ms.to_bytes(8, "big")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_transaction_id() -> str:
    """Return a fresh transaction id; never reuse one across requests."""
    timestamp = _encode_timestamp(time.time_ns() // 1_000_000)
    return f"{timestamp}{_random_string(16)}{_random_string(8)}"

