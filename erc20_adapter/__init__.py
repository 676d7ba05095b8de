"""
ERC-20 Adapter - Resilient ERC-20 client for EIP-1559 chains

Provides:
- Token reads with timeout and exponential-backoff retry
- transfer / approve / transferFrom with fee, nonce and gas resolution,
  balance checks and single-shot submission
- Transfer / Approval events over provider polling and a reconnecting
  WebSocket push channel
"""

from .client import TokenClient
from .config import (
    Config,
    RetryPolicy,
    RpcConfig,
    SocketConfig,
    EventsConfig,
    TxConfig,
    LoggingConfig,
    load_config,
    setup_logging,
)
from .types import (
    AUTO,
    FeeQuote,
    TxOptions,
    TxPlan,
    TransferIntent,
    ApproveIntent,
    TransferFromIntent,
    EventKind,
    TransferEvent,
    ApprovalEvent,
    SubscriptionFilter,
    EventSubscriptionHandle,
    TokenAmount,
    Gwei,
    TxReceipt,
    TxStatus,
    SimulationResult,
)
from .errors import (
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
)
from .infra import (
    RpcClient,
    ResilientCaller,
    EVMSigner,
    create_evm_signer,
    LogWatcher,
    ReconnectingSocket,
    SocketConnectionState,
)
from .modules import (
    FeeAndNonceResolver,
    TransactionBuilder,
    TransactionReplacer,
    DualChannelEventBus,
    Erc20Token,
)
from .contracts import Erc20Contract, ERC20_ABI

__version__ = "0.1.0"

__all__ = [
    # Client
    "TokenClient",
    # Config
    "Config",
    "RetryPolicy",
    "RpcConfig",
    "SocketConfig",
    "EventsConfig",
    "TxConfig",
    "LoggingConfig",
    "load_config",
    "setup_logging",
    # Types
    "AUTO",
    "FeeQuote",
    "TxOptions",
    "TxPlan",
    "TransferIntent",
    "ApproveIntent",
    "TransferFromIntent",
    "EventKind",
    "TransferEvent",
    "ApprovalEvent",
    "SubscriptionFilter",
    "EventSubscriptionHandle",
    "TokenAmount",
    "Gwei",
    "TxReceipt",
    "TxStatus",
    "SimulationResult",
    # Errors
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
    # Infrastructure
    "RpcClient",
    "ResilientCaller",
    "EVMSigner",
    "create_evm_signer",
    "LogWatcher",
    "ReconnectingSocket",
    "SocketConnectionState",
    # Modules
    "FeeAndNonceResolver",
    "TransactionBuilder",
    "TransactionReplacer",
    "DualChannelEventBus",
    "Erc20Token",
    "Erc20Contract",
    "ERC20_ABI",
]
