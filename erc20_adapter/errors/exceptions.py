"""
Exception definitions for ERC-20 Adapter
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """
    Unified error codes for token operations

    1xxx - Network / RPC errors
    2xxx - Transaction errors
    3xxx - Nonce errors
    4xxx - Subscription errors
    6xxx - Signer errors
    9xxx - Configuration errors
    """
    # Network errors (recoverable)
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"
    RPC_FAILED = "1005"
    SOCKET_CONNECTION_FAILED = "1006"

    # Transaction errors
    TX_REVERTED = "2001"
    TX_SEND_FAILED = "2002"
    TX_NOT_FOUND = "2003"
    TX_INSUFFICIENT_FUNDS = "2004"
    TX_INSUFFICIENT_GAS_FUNDS = "2005"
    TX_RECEIPT_TIMEOUT = "2006"

    # Nonce errors
    NONCE_TOO_LOW = "3001"
    NONCE_ALREADY_KNOWN = "3002"
    REPLACEMENT_UNDERPRICED = "3003"

    # Subscription errors
    SUBSCRIPTION_DELIVERY_FAILED = "4001"

    # Signer errors
    SIGNER_NOT_CONFIGURED = "6001"
    SIGNER_FAILED = "6002"
    SIGNER_NOT_CONNECTED = "6003"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


NONCE_CODES = frozenset({
    ErrorCode.NONCE_TOO_LOW,
    ErrorCode.NONCE_ALREADY_KNOWN,
    ErrorCode.REPLACEMENT_UNDERPRICED,
})


class Erc20AdapterError(Exception):
    """
    Base exception for all ERC-20 adapter errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class NetworkFailure(Erc20AdapterError):
    """
    Network-related errors - recoverable by the caller

    Raised when:
    - A request times out
    - The transport fails to connect
    - A read keeps failing after the retry policy is exhausted
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        merged = {"endpoint": endpoint} if endpoint else {}
        merged.update(details or {})
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details=merged,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "NetworkFailure":
        return cls(
            f"Failed to connect to endpoint: {endpoint}",
            ErrorCode.RPC_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: Optional[str], timeout_seconds: float) -> "NetworkFailure":
        return cls(
            f"Request timed out after {timeout_seconds}s",
            ErrorCode.RPC_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "NetworkFailure":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.RPC_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def retries_exhausted(
        cls,
        operation: str,
        attempts: int,
        error: Exception,
    ) -> "NetworkFailure":
        code = error.code if isinstance(error, Erc20AdapterError) else ErrorCode.RPC_FAILED
        return cls(
            f"{operation} failed after {attempts} attempts: {error}",
            code,
            original_error=error,
            details={"attempts": attempts},
        )

    @classmethod
    def socket_failed(cls, endpoint: str, error: Exception = None) -> "NetworkFailure":
        return cls(
            f"WebSocket connection failed: {endpoint}",
            ErrorCode.SOCKET_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )


class RpcError(NetworkFailure):
    """
    Error object returned by the node in a JSON-RPC response

    Keeps the structured ``code`` / ``message`` / ``data`` triple so callers
    can classify without parsing ``str(error)``.
    """

    def __init__(
        self,
        message: str,
        rpc_code: Optional[int] = None,
        rpc_data=None,
        code: ErrorCode = ErrorCode.RPC_FAILED,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            f"RPC error: {message}",
            code,
            endpoint=endpoint,
            details={"rpc_error_code": rpc_code, "rpc_error_data": rpc_data},
        )
        self.rpc_code = rpc_code
        self.rpc_message = message
        self.rpc_data = rpc_data


class InsufficientFunds(Erc20AdapterError):
    """
    Insufficient balance - not recoverable without deposit

    Raised when:
    - Wallet doesn't hold enough of the token being transferred
    - Native balance can't cover gas_limit * max_fee_per_gas
    """

    def __init__(
        self,
        message: str,
        required: int,
        available: int,
        denomination: str,
        code: ErrorCode = ErrorCode.TX_INSUFFICIENT_FUNDS,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={
                "required": required,
                "available": available,
                "denomination": denomination,
            },
        )
        self.required = required
        self.available = available
        self.denomination = denomination

    @classmethod
    def token_balance(cls, required: int, available: int) -> "InsufficientFunds":
        return cls(
            f"Insufficient token balance. Required: {required}, Available: {available}",
            required=required,
            available=available,
            denomination="token",
        )

    @classmethod
    def gas(cls, required: int, available: int) -> "InsufficientFunds":
        return cls(
            f"Insufficient native balance for gas. Required: {required} wei, Available: {available} wei",
            required=required,
            available=available,
            denomination="gas",
            code=ErrorCode.TX_INSUFFICIENT_GAS_FUNDS,
        )


class NonceConflict(Erc20AdapterError):
    """
    Submission rejected because the nonce is stale or already in use

    The caller decides whether to resubmit with a fresh nonce.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.NONCE_TOO_LOW,
        nonce: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"nonce": nonce},
        )
        self.nonce = nonce


class TransactionReverted(Erc20AdapterError):
    """
    Transaction would revert (or did revert) on-chain

    Attributes:
        reason: Decoded revert reason, when the node supplied one
    """

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        tx_hash: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.TX_REVERTED,
            recoverable=False,
            original_error=original_error,
            details={"reason": reason, "tx_hash": tx_hash},
        )
        self.reason = reason
        self.tx_hash = tx_hash

    @classmethod
    def estimation(cls, reason: Optional[str], error: Exception = None) -> "TransactionReverted":
        return cls("Failed to estimate gas", reason=reason, original_error=error)

    @classmethod
    def on_chain(cls, tx_hash: str) -> "TransactionReverted":
        return cls(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)


class SubscriptionDeliveryError(Erc20AdapterError):
    """
    A subscriber callback raised while handling an event

    Logged and isolated; never propagates to sibling callbacks.
    """

    def __init__(self, event_type: str, channel: str, error: Exception):
        super().__init__(
            f"{event_type} callback failed on {channel} channel: {error}",
            ErrorCode.SUBSCRIPTION_DELIVERY_FAILED,
            recoverable=False,
            original_error=error,
            details={"event_type": event_type, "channel": channel},
        )
        self.event_type = event_type
        self.channel = channel


class SignerError(Erc20AdapterError):
    """
    Signing-related errors

    Raised when:
    - No signer configured
    - Signing operation fails
    - Signer used before being bound to a chain
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SIGNER_FAILED,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def not_configured(cls) -> "SignerError":
        return cls(
            "No signer configured. Provide a private key, mnemonic or keystore.",
            ErrorCode.SIGNER_NOT_CONFIGURED,
        )

    @classmethod
    def failed(cls, reason: str) -> "SignerError":
        return cls(f"Signing failed: {reason}", ErrorCode.SIGNER_FAILED)

    @classmethod
    def not_connected(cls) -> "SignerError":
        return cls(
            "Signer is not bound to a chain. Call connect(chain_id) first.",
            ErrorCode.SIGNER_NOT_CONNECTED,
        )


class ConfigurationError(Erc20AdapterError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)
