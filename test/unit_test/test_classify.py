"""
Unit tests for node error classification
"""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from eth_abi import encode as abi_encode

from erc20_adapter.errors import (
    ErrorCode,
    NetworkFailure,
    NonceConflict,
    RpcError,
    TransactionReverted,
    InsufficientFunds,
    classify_rpc_error,
    decode_revert_reason,
    is_permanent,
    to_revert,
    to_submission_error,
)


def _revert_data(reason: str) -> str:
    return "0x08c379a0" + abi_encode(["string"], [reason]).hex()


class TestClassifyRpcError(unittest.TestCase):
    """Tests for classify_rpc_error"""

    def test_nonce_too_low(self):
        error = RpcError("nonce too low: next nonce 7, tx nonce 5", rpc_code=-32000)
        self.assertEqual(classify_rpc_error(error), ErrorCode.NONCE_TOO_LOW)

    def test_already_known(self):
        error = RpcError("already known", rpc_code=-32000)
        self.assertEqual(classify_rpc_error(error), ErrorCode.NONCE_ALREADY_KNOWN)

    def test_replacement_underpriced(self):
        error = RpcError("Replacement transaction underpriced", rpc_code=-32000)
        self.assertEqual(classify_rpc_error(error), ErrorCode.REPLACEMENT_UNDERPRICED)

    def test_insufficient_funds(self):
        error = RpcError("insufficient funds for gas * price + value: balance 0", rpc_code=-32000)
        self.assertEqual(classify_rpc_error(error), ErrorCode.TX_INSUFFICIENT_FUNDS)

    def test_execution_reverted_code(self):
        error = RpcError("execution reverted: paused", rpc_code=3)
        self.assertEqual(classify_rpc_error(error), ErrorCode.TX_REVERTED)

    def test_limit_exceeded(self):
        error = RpcError("request limit reached", rpc_code=-32005)
        self.assertEqual(classify_rpc_error(error), ErrorCode.RPC_RATE_LIMITED)

    def test_nonce_word_elsewhere_is_not_a_nonce_error(self):
        """Only the canonical message prefix counts, not a keyword anywhere"""
        error = RpcError("invalid argument 0: nonce field must be hex", rpc_code=-32602)
        self.assertEqual(classify_rpc_error(error), ErrorCode.RPC_FAILED)

    def test_unknown_defaults_to_rpc_failed(self):
        self.assertEqual(classify_rpc_error(RpcError("something odd")), ErrorCode.RPC_FAILED)
        self.assertEqual(classify_rpc_error(ValueError("x")), ErrorCode.RPC_FAILED)

    def test_adapter_error_keeps_its_code(self):
        error = NetworkFailure.timeout("https://rpc", 1.0)
        self.assertEqual(classify_rpc_error(error), ErrorCode.RPC_TIMEOUT)


class TestPermanence(unittest.TestCase):
    """Tests for is_permanent"""

    def test_revert_is_permanent(self):
        self.assertTrue(is_permanent(TransactionReverted.estimation("no")))

    def test_network_failure_is_not_permanent(self):
        self.assertFalse(is_permanent(NetworkFailure.timeout(None, 1.0)))

    def test_non_recoverable_adapter_error_is_permanent(self):
        self.assertTrue(is_permanent(InsufficientFunds.gas(10, 1)))

    def test_foreign_error_is_not_permanent(self):
        self.assertFalse(is_permanent(ConnectionResetError()))

    def test_funds_and_nonce_rejections_are_permanent(self):
        funds = RpcError(
            "insufficient funds for gas * price + value",
            rpc_code=-32000,
            code=ErrorCode.TX_INSUFFICIENT_FUNDS,
        )
        nonce = RpcError("nonce too low", rpc_code=-32000, code=ErrorCode.NONCE_TOO_LOW)

        self.assertTrue(is_permanent(funds))
        self.assertTrue(is_permanent(nonce))

    def test_generic_rpc_error_is_not_permanent(self):
        self.assertFalse(is_permanent(RpcError("header not found", rpc_code=-32000)))


class TestRevertDecoding(unittest.TestCase):
    """Tests for revert reason decoding"""

    def test_error_string(self):
        data = _revert_data("ERC20: insufficient allowance")
        self.assertEqual(decode_revert_reason(data), "ERC20: insufficient allowance")

    def test_nested_data(self):
        data = {"data": _revert_data("paused")}
        self.assertEqual(decode_revert_reason(data), "paused")

    def test_custom_error_returns_raw_hex(self):
        self.assertEqual(decode_revert_reason("0xdeadbeef"), "0xdeadbeef")

    def test_empty(self):
        self.assertIsNone(decode_revert_reason(None))
        self.assertIsNone(decode_revert_reason("0x"))

    def test_to_revert_prefers_decoded_reason(self):
        error = RpcError("execution reverted", rpc_code=3, rpc_data=_revert_data("too much"))
        reverted = to_revert(error)
        self.assertIsInstance(reverted, TransactionReverted)
        self.assertEqual(reverted.reason, "too much")
        self.assertIs(reverted.original_error, error)

    def test_to_revert_falls_back_to_message(self):
        error = RpcError("execution reverted", rpc_code=3)
        self.assertEqual(to_revert(error).reason, "execution reverted")


class TestSubmissionErrors(unittest.TestCase):
    """Tests for to_submission_error"""

    def test_nonce_error_becomes_nonce_conflict(self):
        error = RpcError("nonce too low", rpc_code=-32000)
        mapped = to_submission_error(error, nonce=4)
        self.assertIsInstance(mapped, NonceConflict)
        self.assertEqual(mapped.nonce, 4)
        self.assertEqual(mapped.code, ErrorCode.NONCE_TOO_LOW)
        self.assertIs(mapped.original_error, error)

    def test_other_errors_pass_through(self):
        error = NetworkFailure.connection_failed("https://rpc")
        self.assertIs(to_submission_error(error, nonce=1), error)


if __name__ == "__main__":
    unittest.main()
