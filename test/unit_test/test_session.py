"""
Unit tests for session state and the operation guard
"""

import unittest

from peelybot.errors import ErrorCode, OperationInProgress
from peelybot.session import SessionRegistry


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestSessionStage(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.sessions = SessionRegistry(ttl_seconds=60, clock=self.clock)

    def test_stage_round_trip(self):
        self.sessions.set_stage("1", "awaiting_contract_address")
        self.assertEqual(self.sessions.get_stage("1"), "awaiting_contract_address")

    def test_data_merged(self):
        self.sessions.set_stage("1", "awaiting_contract_address")
        session = self.sessions.set_stage("1", "awaiting_sol_amount", mint="Mint111")

        self.assertEqual(session.stage, "awaiting_sol_amount")
        self.assertEqual(session.data, {"mint": "Mint111"})

    def test_expired_session_dropped(self):
        self.sessions.set_stage("1", "awaiting_contract_address")
        self.clock.now += 61

        self.assertIsNone(self.sessions.get("1"))

    def test_expire_sweeps(self):
        self.sessions.set_stage("1", "a")
        self.clock.now += 30
        self.sessions.set_stage("2", "b")
        self.clock.now += 31

        self.assertEqual(self.sessions.expire(), 1)
        self.assertIsNone(self.sessions.get_stage("1"))
        self.assertEqual(self.sessions.get_stage("2"), "b")

    def test_clear(self):
        self.sessions.set_stage("1", "a")
        self.sessions.clear("1")
        self.assertIsNone(self.sessions.get("1"))


class TestOperationGuard(unittest.TestCase):

    def setUp(self):
        self.sessions = SessionRegistry(ttl_seconds=60)

    def test_concurrent_operation_rejected(self):
        with self.sessions.operation("1", "withdraw"):
            self.assertEqual(self.sessions.in_flight("1"), "withdraw")
            with self.assertRaises(OperationInProgress) as ctx:
                with self.sessions.operation("1", "buy"):
                    pass

        self.assertEqual(ctx.exception.code, ErrorCode.OPERATION_IN_PROGRESS)
        self.assertEqual(ctx.exception.operation, "withdraw")

    def test_other_users_not_blocked(self):
        with self.sessions.operation("1", "withdraw"):
            with self.sessions.operation("2", "buy"):
                self.assertEqual(self.sessions.in_flight("2"), "buy")

    def test_released_on_error(self):
        with self.assertRaises(RuntimeError):
            with self.sessions.operation("1", "sell"):
                raise RuntimeError("boom")

        self.assertIsNone(self.sessions.in_flight("1"))
        with self.sessions.operation("1", "sell"):
            pass

    def test_stage_cleared_on_completion(self):
        self.sessions.set_stage("1", "awaiting_sol_amount", mint="Mint111")

        with self.sessions.operation("1", "buy"):
            pass

        self.assertIsNone(self.sessions.get("1"))


if __name__ == "__main__":
    unittest.main()
