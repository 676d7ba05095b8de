"""
Structured classification of node-reported errors

JSON-RPC nodes report transaction-pool rejections as a numeric code plus a
canonical message. Classification compares against the enumerated table of
known messages below (prefix match on the normalised message) instead of
searching free text for keywords; anything unknown maps to RPC_FAILED.
"""

from typing import Optional

from eth_abi import decode as abi_decode

from .exceptions import (
    ErrorCode,
    Erc20AdapterError,
    RpcError,
    NonceConflict,
    TransactionReverted,
    NONCE_CODES,
)

# EIP-1474 / EIP-140 codes
RPC_CODE_EXECUTION_REVERTED = 3
RPC_CODE_LIMIT_EXCEEDED = -32005

# Solidity Error(string) selector
ERROR_STRING_SELECTOR = "0x08c379a0"

# Canonical txpool / execution messages (geth, erigon, nethermind, besu)
KNOWN_NODE_ERRORS = (
    ("nonce too low", ErrorCode.NONCE_TOO_LOW),
    ("nonce has already been used", ErrorCode.NONCE_TOO_LOW),
    ("already known", ErrorCode.NONCE_ALREADY_KNOWN),
    ("known transaction", ErrorCode.NONCE_ALREADY_KNOWN),
    ("replacement transaction underpriced", ErrorCode.REPLACEMENT_UNDERPRICED),
    ("insufficient funds for gas * price + value", ErrorCode.TX_INSUFFICIENT_FUNDS),
    ("execution reverted", ErrorCode.TX_REVERTED),
)


def classify_rpc_error(error: Exception) -> ErrorCode:
    """
    Map an exception onto an ErrorCode.

    Args:
        error: Exception raised by the transport or the node

    Returns:
        The matching ErrorCode, RPC_FAILED when nothing matches
    """
    if isinstance(error, RpcError):
        if error.rpc_code == RPC_CODE_EXECUTION_REVERTED:
            return ErrorCode.TX_REVERTED
        message = (error.rpc_message or "").strip().lower()
        for prefix, code in KNOWN_NODE_ERRORS:
            if message.startswith(prefix):
                return code
        if error.rpc_code == RPC_CODE_LIMIT_EXCEEDED:
            return ErrorCode.RPC_RATE_LIMITED
        return ErrorCode.RPC_FAILED

    if isinstance(error, Erc20AdapterError):
        return error.code

    return ErrorCode.RPC_FAILED


def is_permanent(error: Exception) -> bool:
    """True when repeating the same request cannot change the outcome."""
    if isinstance(error, TransactionReverted):
        return True
    if isinstance(error, RpcError) and (
        error.code == ErrorCode.TX_INSUFFICIENT_FUNDS or error.code in NONCE_CODES
    ):
        return True
    if isinstance(error, Erc20AdapterError):
        return not error.recoverable
    return False


def decode_revert_reason(data) -> Optional[str]:
    """
    Decode the revert payload attached to an execution error.

    Args:
        data: Hex string (or dict with a "data" key, as some nodes nest it)

    Returns:
        The Error(string) message, the raw hex for custom errors, or None
    """
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x") or len(data) <= 2:
        return None
    if data.lower().startswith(ERROR_STRING_SELECTOR):
        try:
            (reason,) = abi_decode(["string"], bytes.fromhex(data[10:]))
            return reason
        except Exception:
            return data
    return data


def to_revert(error: RpcError) -> TransactionReverted:
    """Build TransactionReverted from a node execution error."""
    reason = decode_revert_reason(error.rpc_data) or error.rpc_message
    return TransactionReverted.estimation(reason, error)


def to_submission_error(error: Exception, nonce: Optional[int] = None) -> Exception:
    """
    Translate a broadcast failure.

    Nonce-class failures become NonceConflict; every other error is
    returned unchanged so the caller can re-raise it as-is.
    """
    if isinstance(error, NonceConflict):
        return error
    code = classify_rpc_error(error)
    if code in NONCE_CODES:
        message = error.rpc_message if isinstance(error, RpcError) else str(error)
        return NonceConflict(message, code=code, nonce=nonce, original_error=error)
    return error
