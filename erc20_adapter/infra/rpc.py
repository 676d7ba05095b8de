"""
RPC Client for EVM chains

Provides an async JSON-RPC interface with:
- Structured error objects (node code, message, data preserved)
- Revert detection for eth_call / eth_estimateGas
- Request timeout management

Retry and backoff are not handled here; route calls through
``ResilientCaller`` so reads and sends get different treatment.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import (
    ErrorCode,
    NetworkFailure,
    RpcError,
    ConfigurationError,
    classify_rpc_error,
    to_revert,
)

logger = logging.getLogger(__name__)

# ethers-compatible default when eth_maxPriorityFeePerGas is unsupported
DEFAULT_PRIORITY_FEE = 1_000_000_000


def _to_int(value: Any) -> Optional[int]:
    """Decode a JSON-RPC quantity"""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(value, 16)


def _to_hex(value: int) -> str:
    return hex(value)


class RpcClient:
    """
    Async EVM JSON-RPC client

    Usage:
        async with RpcClient("https://rpc.example.com") as rpc:
            chain_id = await rpc.chain_id()
            balance = await rpc.get_balance("0x...")

        # Custom RPC call
        result = await rpc.call("eth_gasPrice", [])
    """

    def __init__(
        self,
        endpoint: str,
        timeout_seconds: float = 12.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize RPC client

        Args:
            endpoint: RPC endpoint URL
            timeout_seconds: HTTP-level timeout for a single request
            transport: Optional httpx transport (used by tests)
        """
        if not endpoint:
            raise ConfigurationError.missing("RPC endpoint")

        self._endpoint = endpoint
        self._timeout = timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def call(self, method: str, params: List[Any]) -> Any:
        """
        Make a single JSON-RPC call

        Args:
            method: RPC method name
            params: RPC parameters

        Returns:
            RPC result

        Raises:
            NetworkFailure: Transport failure or HTTP error
            RpcError: Node returned a JSON-RPC error object
            TransactionReverted: Node reported an execution revert
        """
        client = self._get_client()
        body = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            response = await client.post(self._endpoint, json=body)
        except httpx.TimeoutException as e:
            logger.warning(f"RPC timeout: {method} @ {self._endpoint}")
            raise NetworkFailure.timeout(self._endpoint, self._timeout) from e
        except httpx.RequestError as e:
            logger.warning(f"RPC connection error: {method} @ {self._endpoint}: {e}")
            raise NetworkFailure.connection_failed(self._endpoint, e) from e

        if response.status_code == 429:
            logger.warning(f"Rate limited by {self._endpoint}")
            raise NetworkFailure.rate_limited(self._endpoint)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkFailure(
                f"HTTP error {response.status_code}",
                original_error=e,
                endpoint=self._endpoint,
            ) from e

        try:
            result = response.json()
        except ValueError as e:
            raise NetworkFailure(
                f"Invalid JSON-RPC response for {method}",
                ErrorCode.RPC_INVALID_RESPONSE,
                original_error=e,
                endpoint=self._endpoint,
            ) from e

        if "error" in result:
            error = result["error"] or {}
            rpc_error = RpcError(
                error.get("message", str(error)),
                rpc_code=error.get("code"),
                rpc_data=error.get("data"),
                endpoint=self._endpoint,
            )
            code = classify_rpc_error(rpc_error)
            if code == ErrorCode.TX_REVERTED:
                raise to_revert(rpc_error)
            rpc_error.code = code
            logger.debug(f"RPC {method} returned error: {rpc_error}")
            raise rpc_error

        return result.get("result")

    async def chain_id(self) -> int:
        return _to_int(await self.call("eth_chainId", []))

    async def block_number(self) -> int:
        return _to_int(await self.call("eth_blockNumber", []))

    async def get_block(self, block: str = "latest") -> Optional[Dict[str, Any]]:
        """Get block header (transaction hashes only)"""
        return await self.call("eth_getBlockByNumber", [block, False])

    async def get_balance(self, address: str, block: str = "latest") -> int:
        """Get native balance in wei"""
        return _to_int(await self.call("eth_getBalance", [address, block]))

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        """Get next nonce for an account (includes mempool by default)"""
        return _to_int(await self.call("eth_getTransactionCount", [address, block]))

    async def max_priority_fee_per_gas(self) -> int:
        return _to_int(await self.call("eth_maxPriorityFeePerGas", []))

    async def get_fee_data(self) -> Dict[str, Optional[int]]:
        """
        Network-suggested EIP-1559 fees

        max_fee_per_gas = 2 * baseFeePerGas + priority fee. Both values are
        None when the latest block carries no base fee.
        """
        block = await self.get_block("latest")
        base_fee = _to_int((block or {}).get("baseFeePerGas"))
        if base_fee is None:
            return {"max_fee_per_gas": None, "max_priority_fee_per_gas": None}

        try:
            priority_fee = await self.max_priority_fee_per_gas()
        except RpcError as e:
            logger.debug(f"eth_maxPriorityFeePerGas unavailable, using default: {e}")
            priority_fee = DEFAULT_PRIORITY_FEE

        return {
            "max_fee_per_gas": base_fee * 2 + priority_fee,
            "max_priority_fee_per_gas": priority_fee,
        }

    async def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """
        Simulate a transaction and return its gas usage

        Raises:
            TransactionReverted: The call would revert
        """
        return _to_int(await self.call("eth_estimateGas", [tx]))

    async def eth_call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        """Execute a read-only contract call, returning the raw hex output"""
        return await self.call("eth_call", [tx, block])

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        """
        Broadcast a signed transaction

        Returns:
            Transaction hash (0x-prefixed hex)
        """
        return await self.call("eth_sendRawTransaction", ["0x" + bytes(raw_tx).hex()])

    async def get_logs(
        self,
        address: str,
        topics: List[Any],
        from_block: int,
        to_block: int,
    ) -> List[Dict[str, Any]]:
        params = {
            "address": address,
            "topics": topics,
            "fromBlock": _to_hex(from_block),
            "toBlock": _to_hex(to_block),
        }
        return await self.call("eth_getLogs", [params]) or []

    async def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionByHash", [tx_hash])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def close(self):
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"RpcClient(endpoint={self._endpoint})"
