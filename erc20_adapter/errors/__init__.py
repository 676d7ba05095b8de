"""
Error definitions for ERC-20 Adapter
"""

from .exceptions import (
    ErrorCode,
    Erc20AdapterError,
    NetworkFailure,
    RpcError,
    InsufficientFunds,
    NonceConflict,
    TransactionReverted,
    SubscriptionDeliveryError,
    SignerError,
    ConfigurationError,
    NONCE_CODES,
)
from .classify import (
    classify_rpc_error,
    decode_revert_reason,
    is_permanent,
    to_revert,
    to_submission_error,
)

__all__ = [
    "ErrorCode",
    "Erc20AdapterError",
    "NetworkFailure",
    "RpcError",
    "InsufficientFunds",
    "NonceConflict",
    "TransactionReverted",
    "SubscriptionDeliveryError",
    "SignerError",
    "ConfigurationError",
    "NONCE_CODES",
    "classify_rpc_error",
    "decode_revert_reason",
    "is_permanent",
    "to_revert",
    "to_submission_error",
]
