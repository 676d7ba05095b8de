"""
Unit tests for retry logic module
"""

import asyncio
import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from erc20_adapter.config import RetryPolicy
from erc20_adapter.errors import (
    ConfigurationError,
    ErrorCode,
    NetworkFailure,
    TransactionReverted,
)
from erc20_adapter.infra.retry import (
    ResilientCaller,
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)


class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting"""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class TestRetryPolicy(unittest.TestCase):
    """Tests for RetryPolicy"""

    def test_delay_doubles_and_caps(self):
        policy = RetryPolicy(base_delay=0.3, max_delay=1.0, max_attempts=5)
        self.assertAlmostEqual(policy.delay_for(1), 0.3)
        self.assertAlmostEqual(policy.delay_for(2), 0.6)
        self.assertAlmostEqual(policy.delay_for(3), 1.0)
        self.assertAlmostEqual(policy.delay_for(4), 1.0)

    def test_rejects_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            RetryPolicy(max_attempts=0)
        with self.assertRaises(ConfigurationError):
            RetryPolicy(base_delay=-1)


class TestResilientCaller(unittest.IsolatedAsyncioTestCase):
    """Tests for ResilientCaller"""

    def setUp(self):
        self.sleep = RecordingSleep()
        self.policy = RetryPolicy(base_delay=0.1, max_delay=10.0, max_attempts=3)
        self.caller = ResilientCaller(self.policy, timeout_seconds=1.0, sleep=self.sleep)

    async def test_success_first_attempt(self):
        operation = AsyncMock(return_value=42)

        result = await self.caller.call(operation)

        self.assertEqual(result, 42)
        self.assertEqual(operation.call_count, 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_success_after_failures(self):
        operation = AsyncMock(side_effect=[
            NetworkFailure.connection_failed("https://rpc"),
            NetworkFailure.connection_failed("https://rpc"),
            "ok",
        ])

        result = await self.caller.call(operation)

        self.assertEqual(result, "ok")
        self.assertEqual(operation.call_count, 3)
        self.assertEqual(self.sleep.delays, [0.1, 0.2])

    async def test_exhausts_attempts_and_reports_last_error(self):
        """max_attempts=3: exactly three calls, final error is the last failure"""
        errors = [
            NetworkFailure.connection_failed("https://rpc-1"),
            NetworkFailure.connection_failed("https://rpc-2"),
            NetworkFailure.rate_limited("https://rpc-3"),
        ]
        operation = AsyncMock(side_effect=errors)

        with self.assertRaises(NetworkFailure) as ctx:
            await self.caller.call(operation, operation_name="balanceOf")

        self.assertEqual(operation.call_count, 3)
        self.assertIs(ctx.exception, errors[-1])
        self.assertEqual(self.sleep.delays, [0.1, 0.2])

    async def test_foreign_error_is_wrapped_as_network_failure(self):
        last = ConnectionResetError("reset")
        operation = AsyncMock(side_effect=[OSError("a"), OSError("b"), last])

        with self.assertRaises(NetworkFailure) as ctx:
            await self.caller.call(operation, operation_name="getBalance")

        self.assertEqual(operation.call_count, 3)
        self.assertIs(ctx.exception.original_error, last)
        self.assertIs(ctx.exception.__cause__, last)

    async def test_timeout_counts_as_failed_attempt(self):
        caller = ResilientCaller(self.policy, timeout_seconds=0.01, sleep=self.sleep)
        calls = []

        async def slow():
            calls.append(1)
            await asyncio.sleep(1)

        with self.assertRaises(NetworkFailure) as ctx:
            await caller.call(slow)

        self.assertEqual(len(calls), 3)
        self.assertEqual(ctx.exception.code, ErrorCode.RPC_TIMEOUT)

    async def test_permanent_error_not_retried(self):
        reverted = TransactionReverted.estimation("paused")
        operation = AsyncMock(side_effect=reverted)

        with self.assertRaises(TransactionReverted) as ctx:
            await self.caller.call(operation)

        self.assertIs(ctx.exception, reverted)
        self.assertEqual(operation.call_count, 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_non_idempotent_runs_exactly_once(self):
        failure = NetworkFailure.connection_failed("https://rpc")
        operation = AsyncMock(side_effect=failure)

        with self.assertRaises(NetworkFailure) as ctx:
            await self.caller.call(operation, idempotent=False)

        self.assertIs(ctx.exception, failure)
        self.assertEqual(operation.call_count, 1)
        self.assertEqual(self.sleep.delays, [])

    async def test_non_idempotent_success(self):
        operation = AsyncMock(return_value="0xhash")

        result = await self.caller.call(operation, idempotent=False)

        self.assertEqual(result, "0xhash")
        self.assertEqual(operation.call_count, 1)


class TestCorrelationId(unittest.TestCase):
    """Tests for correlation ID functionality"""

    def test_generate_correlation_id_format(self):
        cid = generate_correlation_id()
        self.assertEqual(len(cid), 12)
        self.assertTrue(all(c in "0123456789abcdef" for c in cid))

    def test_correlation_ids_are_unique(self):
        ids = {generate_correlation_id() for _ in range(100)}
        self.assertEqual(len(ids), 100)

    def test_set_and_get_correlation_id(self):
        token = set_correlation_id("test_id_123")
        try:
            self.assertEqual(get_correlation_id(), "test_id_123")
        finally:
            set_correlation_id(None)

    def test_context_scopes_and_restores(self):
        set_correlation_id(None)
        with CorrelationContext("transfer") as cid:
            self.assertTrue(cid.startswith("transfer_"))
            self.assertEqual(get_correlation_id(), cid)
        self.assertIsNone(get_correlation_id())

    def test_nested_contexts(self):
        with CorrelationContext("outer") as outer_cid:
            with CorrelationContext("inner") as inner_cid:
                self.assertEqual(get_correlation_id(), inner_cid)
            self.assertEqual(get_correlation_id(), outer_cid)


if __name__ == "__main__":
    unittest.main()
