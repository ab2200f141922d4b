"""
Unit tests for the error hierarchy
"""

import unittest
from decimal import Decimal

from peelybot.errors import (
    BlockhashUnavailable,
    BotError,
    ConfigurationError,
    ErrorCode,
    InsufficientReserve,
    RetriesExhausted,
    RpcError,
    RpcErrorKind,
)


class TestErrorCodes(unittest.TestCase):

    def test_str_includes_code(self):
        error = ConfigurationError.missing("RPC_ENDPOINT")
        self.assertEqual(str(error), "[9002] Missing required configuration: RPC_ENDPOINT")

    def test_only_transient_kinds_recoverable(self):
        for kind in RpcErrorKind:
            error = RpcError("x", kind)
            expected = kind in (RpcErrorKind.RATE_LIMITED, RpcErrorKind.SEND_FAILED)
            self.assertEqual(error.should_retry, expected, kind)

    def test_kind_maps_to_code(self):
        self.assertEqual(RpcError.rate_limited("u").code, ErrorCode.RPC_RATE_LIMITED)
        self.assertEqual(RpcError("dup", RpcErrorKind.ALREADY_PROCESSED).code, ErrorCode.TX_ALREADY_PROCESSED)

    def test_reserve_balance_in_sol(self):
        error = InsufficientReserve(1_000_000, 2_039_280)
        self.assertEqual(error.balance_sol, Decimal("0.001"))
        self.assertEqual(error.code, ErrorCode.TX_INSUFFICIENT_RESERVE)

    def test_blockhash_unavailable(self):
        error = BlockhashUnavailable(3, RpcError.rate_limited("u"))
        self.assertIsInstance(error, RetriesExhausted)
        self.assertIsInstance(error, BotError)
        self.assertEqual(error.code.value, "2005")
        self.assertEqual(error.attempts, 3)

    def test_retries_exhausted_message(self):
        error = RetriesExhausted("submit", 4, RpcError.rate_limited("u"))
        self.assertIn("submit failed after 4 attempts", error.message)
        self.assertFalse(error.recoverable)


if __name__ == "__main__":
    unittest.main()
