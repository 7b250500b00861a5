"""Unit tests for transaction id generation."""

from __future__ import annotations

import base64
import re
import time

from xfetch.twitter.transaction import generate_transaction_id


class TestGenerateTransactionId:
    """Test shape and uniqueness of transaction ids."""

    def test_shape(self):
        tx_id = generate_transaction_id()
        # 8 bytes of base64url without padding is 11 chars, then 16 + 8 random
        assert len(tx_id) == 11 + 24
        assert re.fullmatch(r"[A-Za-z0-9_\-]{11}[A-Za-z0-9+/]{24}", tx_id)

    def test_prefix_encodes_current_time(self):
        before = time.time_ns() // 1_000_000
        tx_id = generate_transaction_id()
        after = time.time_ns() // 1_000_000

        raw = base64.urlsafe_b64decode(tx_id[:11] + "=")
        assert before <= int.from_bytes(raw, "big") <= after

    def test_ids_never_repeat(self):
        ids = {generate_transaction_id() for _ in range(1000)}
        assert len(ids) == 1000
