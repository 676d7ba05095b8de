"""
TokenClient - Unified entry point for ERC-20 operations

Provides a high-level interface to query and mutate ERC-20 token state on one
chain and to receive token events over the provider and push channels.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from web3 import Web3

from .config import Config
from .errors import ConfigurationError, ErrorCode, NetworkFailure, TransactionReverted
from .infra import LogWatcher, ReconnectingSocket, ResilientCaller, RpcClient
from .infra.evm_signer import EVMSigner
from .modules import Erc20Token, FeeAndNonceResolver, TransactionReplacer
from .types import SimulationResult, TxReceipt

logger = logging.getLogger(__name__)


class TokenClient:
    """
    Unified ERC-20 adapter client

    Provides:
    - erc20(address): Per-token reads, mutations and event subscriptions
    - wait_for_receipt / simulate: Transaction inspection
    - replace / cancel: Fee-bumped re-submission of a pending transaction

    Usage:
        config = Config.create(
            rpc_url="https://rpc.example.com",
            ws_url="wss://events.example.com",
            chain_id=1,
        )

        async with await TokenClient.initialize(config) as client:
            token = client.erc20("0xToken...")
            tx_hash = await token.transfer("0xRecipient...", 10**18, signer)
            receipt = await client.wait_for_receipt(tx_hash)
    """

    def __init__(
        self,
        config: Config,
        rpc: Optional[RpcClient] = None,
        socket: Optional[ReconnectingSocket] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize TokenClient

        Prefer ``TokenClient.initialize``, which also checks the RPC endpoint
        and starts the push channel.

        Args:
            config: Validated configuration
            rpc: Optional RPC client (built from config if omitted)
            socket: Optional push-channel client (built from config if omitted)
            sleep: Awaitable sleep used for backoff and polling
        """
        config.validate()
        self._config = config
        self._sleep = sleep or asyncio.sleep

        self._rpc = rpc or RpcClient(config.rpc.url, timeout_seconds=config.rpc.timeout_seconds)
        self._caller = ResilientCaller(config.rpc.retry, config.rpc.timeout_seconds, sleep=sleep)
        self._resolver = FeeAndNonceResolver(self._rpc, self._caller, config.tx)
        self._replacer = TransactionReplacer(self._rpc, self._caller, config.rpc.chain_id, config.tx)
        self._log_watcher = LogWatcher(
            self._rpc,
            self._caller,
            poll_interval=config.events.poll_interval,
            sleep=sleep,
        )
        self._socket = socket or ReconnectingSocket(
            config.socket.url,
            connect_timeout=config.socket.connect_timeout,
            reconnect_base_delay=config.socket.reconnect_base_delay,
            reconnect_max_delay=config.socket.reconnect_max_delay,
            max_reconnect_attempts=config.socket.max_reconnect_attempts,
            sleep=sleep,
        )

        self._tokens: Dict[str, Erc20Token] = {}
        self._socket_task: Optional[asyncio.Task] = None

    @classmethod
    async def initialize(
        cls,
        config: Config,
        rpc: Optional[RpcClient] = None,
        socket: Optional[ReconnectingSocket] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> "TokenClient":
        """
        Create a client, verify the RPC endpoint and start the push channel

        The socket connects in the background; a failure there is logged and
        events fall back to the provider channel.

        Raises:
            ConfigurationError: Invalid config, or the node reports another chain
            NetworkFailure: RPC endpoint unreachable after retries
        """
        client = cls(config, rpc=rpc, socket=socket, sleep=sleep)
        try:
            await client._check_network()
        except Exception:
            await client.close()
            raise
        client._socket_task = asyncio.get_running_loop().create_task(client._connect_socket())
        return client

    async def _check_network(self) -> None:
        chain_id = await self._caller.call(self._rpc.chain_id, operation_name="eth_chainId")
        expected = self._config.rpc.chain_id
        if chain_id != expected:
            raise ConfigurationError.invalid(
                "ERC20_CHAIN_ID",
                f"configured {expected} but {self._rpc.endpoint} reports {chain_id}",
            )
        logger.info(f"Connected to chain {chain_id} via {self._rpc.endpoint}")

    async def _connect_socket(self) -> None:
        try:
            await self._socket.connect()
        except NetworkFailure as e:
            logger.warning(f"WebSocket connection failed, events will use the provider only: {e}")

    @property
    def config(self) -> Config:
        return self._config

    @property
    def chain_id(self) -> int:
        return self._config.rpc.chain_id

    @property
    def rpc(self) -> RpcClient:
        """Access to RPC client"""
        return self._rpc

    @property
    def caller(self) -> ResilientCaller:
        return self._caller

    @property
    def resolver(self) -> FeeAndNonceResolver:
        return self._resolver

    @property
    def log_watcher(self) -> LogWatcher:
        return self._log_watcher

    @property
    def socket(self) -> ReconnectingSocket:
        """Access to the push-channel client"""
        return self._socket

    def erc20(self, address: str) -> Erc20Token:
        """
        Token module for ``address`` (one instance per token)

        Provides:
        - name(), symbol(), decimals(), total_supply()
        - balance_of(owner), allowance(owner, spender)
        - transfer(...), approve(...), transfer_from(...)
        - events.transfer(...), events.approval(...)
        """
        key = Web3.to_checksum_address(address)
        if key not in self._tokens:
            self._tokens[key] = Erc20Token(self, key)
        return self._tokens[key]

    async def wait_for_receipt(self, tx_hash: str, timeout: float = 120.0) -> TxReceipt:
        """
        Poll until ``tx_hash`` is mined

        Returns:
            The receipt; ``status`` is FAILED when the transaction reverted

        Raises:
            NetworkFailure: No receipt within ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        interval = self._config.tx.receipt_poll_interval

        while True:
            receipt = await self._caller.call(
                lambda: self._rpc.get_transaction_receipt(tx_hash),
                operation_name="getTransactionReceipt",
            )
            if receipt:
                result = TxReceipt.from_rpc(receipt)
                logger.info(f"Receipt for {tx_hash}: {result.status.value} in block {result.block_number}")
                return result
            if loop.time() >= deadline:
                raise NetworkFailure(
                    f"Transaction receipt not found within {timeout}s: {tx_hash}",
                    ErrorCode.TX_RECEIPT_TIMEOUT,
                    details={"tx_hash": tx_hash, "timeout": timeout},
                )
            await self._sleep(interval)

    async def simulate(self, to: str, data: str, from_: Optional[str] = None) -> SimulationResult:
        """Dry-run a call via gas estimation"""
        tx = {"to": to, "data": data}
        if from_:
            tx["from"] = from_
        try:
            gas = await self._caller.call(lambda: self._rpc.estimate_gas(tx), operation_name="estimateGas")
        except TransactionReverted as e:
            return SimulationResult(success=False, revert_reason=e.reason or e.message)
        return SimulationResult(success=True, gas_estimate=gas)

    async def replace(self, tx_hash: str, signer: EVMSigner, multiplier: Optional[float] = None) -> str:
        """Re-send a pending transaction with fees bumped by ``multiplier``"""
        return await self._replacer.replace(tx_hash, signer, multiplier)

    async def cancel(self, tx_hash: str, signer: EVMSigner, multiplier: Optional[float] = None) -> str:
        """Replace a pending transaction with a zero-value self-transfer"""
        return await self._replacer.cancel(tx_hash, signer, multiplier)

    async def disconnect(self) -> None:
        """Stop event delivery on both channels"""
        if self._socket_task is not None and not self._socket_task.done():
            self._socket_task.cancel()
        self._socket_task = None
        await self._log_watcher.close()
        await self._socket.disconnect()

    async def close(self) -> None:
        """Close client connections and release resources"""
        await self.disconnect()
        await self._rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"TokenClient(endpoint={self._rpc.endpoint}, chain_id={self.chain_id})"
