"""
Unit tests for fee, nonce and gas-limit resolution
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from erc20_adapter.config import RetryPolicy, TxConfig
from erc20_adapter.errors import ConfigurationError, ErrorCode, NetworkFailure, RpcError, TransactionReverted
from erc20_adapter.infra.retry import ResilientCaller
from erc20_adapter.modules.fees import FeeAndNonceResolver, GAS_LIMIT_FLOORS
from erc20_adapter.types import TxOptions, TxTemplate

GWEI = 10 ** 9
SENDER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"


async def no_sleep(delay):
    return None


def make_template(operation: str = "transfer") -> TxTemplate:
    return TxTemplate(to=TOKEN, data="0xa9059cbb", from_address=SENDER, operation=operation)


class ResolverTestCase(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.rpc = MagicMock()
        self.rpc.get_fee_data = AsyncMock(return_value={
            "max_fee_per_gas": 40 * GWEI,
            "max_priority_fee_per_gas": 2 * GWEI,
        })
        self.rpc.get_transaction_count = AsyncMock(return_value=9)
        self.rpc.estimate_gas = AsyncMock(return_value=50_000)
        caller = ResilientCaller(
            RetryPolicy(base_delay=0.0, max_delay=0.0, max_attempts=2),
            timeout_seconds=1.0,
            sleep=no_sleep,
        )
        self.resolver = FeeAndNonceResolver(self.rpc, caller, TxConfig())


class TestFeeResolution(ResolverTestCase):
    """Fee order: override -> network -> floor"""

    async def test_int_override_wins(self):
        params = await self.resolver.resolve(TxOptions(max_fee_per_gas=55 * GWEI), make_template())

        self.assertEqual(params.fee.max_fee_per_gas, 55 * GWEI)
        self.assertEqual(params.fee.max_priority_fee_per_gas, 2 * GWEI)

    async def test_gwei_string_matches_wei_int(self):
        from_string = await self.resolver.resolve(
            TxOptions(max_fee_per_gas="2.5", max_priority_fee_per_gas="1.5"), make_template()
        )
        from_int = await self.resolver.resolve(
            TxOptions(max_fee_per_gas=2_500_000_000, max_priority_fee_per_gas=1_500_000_000),
            make_template(),
        )

        self.assertEqual(from_string.fee.max_fee_per_gas, 2_500_000_000)
        self.assertEqual(from_string.fee, from_int.fee)

    async def test_network_value_when_omitted(self):
        params = await self.resolver.resolve(TxOptions(), make_template())

        self.assertEqual(params.fee.max_fee_per_gas, 40 * GWEI)
        self.assertEqual(params.fee.max_priority_fee_per_gas, 2 * GWEI)

    async def test_floor_when_network_has_no_value(self):
        self.rpc.get_fee_data.return_value = {"max_fee_per_gas": None, "max_priority_fee_per_gas": None}

        params = await self.resolver.resolve(None, make_template())

        self.assertEqual(params.fee.max_fee_per_gas, 20 * GWEI)
        self.assertEqual(params.fee.max_priority_fee_per_gas, 1 * GWEI)

    async def test_both_overrides_skip_network(self):
        await self.resolver.resolve(
            TxOptions(max_fee_per_gas=30 * GWEI, max_priority_fee_per_gas=GWEI), make_template()
        )

        self.rpc.get_fee_data.assert_not_called()

    async def test_inconsistent_overrides_rejected(self):
        with self.assertRaises(ConfigurationError):
            await self.resolver.resolve(
                TxOptions(max_fee_per_gas=GWEI, max_priority_fee_per_gas=5 * GWEI), make_template()
            )

    async def test_max_fee_raised_to_priority_fee(self):
        self.rpc.get_fee_data.return_value = {"max_fee_per_gas": 3 * GWEI, "max_priority_fee_per_gas": GWEI}

        params = await self.resolver.resolve(TxOptions(max_priority_fee_per_gas=7 * GWEI), make_template())

        self.assertEqual(params.fee.max_fee_per_gas, 7 * GWEI)
        self.assertEqual(params.fee.max_priority_fee_per_gas, 7 * GWEI)

    async def test_malformed_override_rejected(self):
        with self.assertRaises(ConfigurationError):
            await self.resolver.resolve(TxOptions(max_fee_per_gas="fast"), make_template())

    async def test_fee_lookup_failure_propagates(self):
        self.rpc.get_fee_data.side_effect = NetworkFailure.connection_failed("https://rpc")

        with self.assertRaises(NetworkFailure):
            await self.resolver.resolve(TxOptions(), make_template())

        self.assertEqual(self.rpc.get_fee_data.call_count, 2)


class TestNonceResolution(ResolverTestCase):

    async def test_explicit_nonce(self):
        params = await self.resolver.resolve(TxOptions(nonce=3), make_template())

        self.assertEqual(params.nonce, 3)
        self.rpc.get_transaction_count.assert_not_called()

    async def test_auto_nonce_uses_pending_count(self):
        params = await self.resolver.resolve(TxOptions(nonce="auto"), make_template())

        self.assertEqual(params.nonce, 9)
        self.rpc.get_transaction_count.assert_awaited_once_with(SENDER, "pending")

    async def test_invalid_nonce(self):
        with self.assertRaises(ConfigurationError):
            await self.resolver.resolve(TxOptions(nonce=-1), make_template())


class TestGasLimitResolution(ResolverTestCase):

    async def test_estimate_with_buffer(self):
        params = await self.resolver.resolve(TxOptions(), make_template())

        self.assertEqual(params.gas_limit, 60_000)
        tx = self.rpc.estimate_gas.call_args[0][0]
        self.assertEqual(tx["from"], SENDER)
        self.assertEqual(tx["to"], TOKEN)

    async def test_override_skips_estimation(self):
        params = await self.resolver.resolve(TxOptions(gas_limit=100_000), make_template())

        self.assertEqual(params.gas_limit, 100_000)
        self.rpc.estimate_gas.assert_not_called()

    async def test_revert_is_reported_not_floored(self):
        self.rpc.estimate_gas.side_effect = TransactionReverted.estimation("ERC20: insufficient allowance")

        with self.assertRaises(TransactionReverted) as ctx:
            await self.resolver.resolve(TxOptions(), make_template("transferFrom"))

        self.assertEqual(ctx.exception.reason, "ERC20: insufficient allowance")
        self.assertEqual(self.rpc.estimate_gas.call_count, 1)

    async def test_unavailable_estimation_uses_operation_floor(self):
        self.rpc.estimate_gas.side_effect = NetworkFailure.connection_failed("https://rpc")

        for operation, floor in GAS_LIMIT_FLOORS.items():
            params = await self.resolver.resolve(TxOptions(), make_template(operation))
            self.assertEqual(params.gas_limit, floor)

        self.assertEqual(GAS_LIMIT_FLOORS, {"transfer": 21_000, "approve": 46_000, "transferFrom": 65_000})

    async def test_node_rejection_is_reported_not_floored(self):
        self.rpc.estimate_gas.side_effect = RpcError(
            "insufficient funds for gas * price + value",
            rpc_code=-32000,
            code=ErrorCode.TX_INSUFFICIENT_FUNDS,
        )

        with self.assertRaises(TransactionReverted) as ctx:
            await self.resolver.resolve(TxOptions(), make_template("approve"))

        self.assertEqual(ctx.exception.reason, "insufficient funds for gas * price + value")
        self.assertEqual(self.rpc.estimate_gas.call_count, 1)

    async def test_rate_limited_estimation_uses_floor(self):
        self.rpc.estimate_gas.side_effect = RpcError(
            "limit exceeded", rpc_code=-32005, code=ErrorCode.RPC_RATE_LIMITED
        )

        params = await self.resolver.resolve(TxOptions(), make_template("approve"))

        self.assertEqual(params.gas_limit, 46_000)
        self.assertEqual(self.rpc.estimate_gas.call_count, 2)


if __name__ == "__main__":
    unittest.main()
