"""
Infrastructure layer for ERC-20 Adapter

Provides:
- RpcClient: Async JSON-RPC transport over httpx
- ResilientCaller: Timeout and retry policy for remote calls
- EVMSigner: EIP-1559 transaction signing using eth-account
- LogWatcher: Polling provider-side log listener
- ReconnectingSocket: WebSocket push channel with reconnection
"""

from .rpc import RpcClient
from .retry import (
    ResilientCaller,
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .evm_signer import EVMSigner, create_evm_signer
from .log_watcher import LogWatcher
from .ws_client import ReconnectingSocket, SocketConnectionState

__all__ = [
    "RpcClient",
    "ResilientCaller",
    "CorrelationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "EVMSigner",
    "create_evm_signer",
    "LogWatcher",
    "ReconnectingSocket",
    "SocketConnectionState",
]
