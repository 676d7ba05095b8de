"""
ERC-20 Token Module

Provides reads, mutations and event subscriptions for one token contract.
"""

import logging
from typing import Any, Optional, Sequence, TYPE_CHECKING

from ..contracts import Erc20Contract
from ..infra.evm_signer import EVMSigner
from ..types import (
    ApproveIntent,
    EventKind,
    EventSubscriptionHandle,
    SubscriptionFilter,
    TokenAmount,
    TransferFromIntent,
    TransferIntent,
    TxOptions,
)
from .events import DualChannelEventBus, EventCallback
from .transactions import TransactionBuilder

if TYPE_CHECKING:
    from ..client import TokenClient

logger = logging.getLogger(__name__)


class TokenEvents:
    """
    Event subscriptions for one token

    A ``None`` address matches any value in that position.
    """

    def __init__(self, bus: DualChannelEventBus):
        self._bus = bus

    def transfer(
        self,
        from_: Optional[str],
        to: Optional[str],
        callback: EventCallback,
    ) -> EventSubscriptionHandle:
        return self._bus.subscribe(
            EventKind.TRANSFER,
            SubscriptionFilter({"from": from_, "to": to}),
            callback,
        )

    def approval(
        self,
        owner: Optional[str],
        spender: Optional[str],
        callback: EventCallback,
    ) -> EventSubscriptionHandle:
        return self._bus.subscribe(
            EventKind.APPROVAL,
            SubscriptionFilter({"owner": owner, "spender": spender}),
            callback,
        )


class Erc20Token:
    """
    ERC-20 token operations module

    Provides:
    - Metadata and balance reads (retried, timeout-bounded)
    - transfer / approve / transfer_from (single broadcast each)
    - Transfer and Approval event subscriptions

    Usage:
        client = await TokenClient.initialize(config)
        token = client.erc20("0xToken...")

        balance = await token.balance_of(signer.address)
        tx_hash = await token.transfer("0xRecipient...", 10**18, signer)

        handle = token.events.transfer(None, signer.address, on_transfer)
        handle.cancel()
    """

    def __init__(self, client: "TokenClient", address: str):
        """
        Initialize token module

        Args:
            client: TokenClient instance
            address: Token contract address
        """
        self._client = client
        self._rpc = client.rpc
        self._caller = client.caller
        self._contract = Erc20Contract(address)
        self._builder = TransactionBuilder(
            client.rpc,
            client.caller,
            client.resolver,
            self._contract,
            client.chain_id,
            client.config.tx,
        )
        self.events = TokenEvents(
            DualChannelEventBus(self._contract, client.log_watcher, client.socket)
        )
        self._decimals: Optional[int] = None

    @property
    def address(self) -> str:
        return self._contract.address

    @property
    def contract(self) -> Erc20Contract:
        return self._contract

    async def _read(self, method: str, args: Sequence[Any] = ()) -> Any:
        tx = self._contract.call_tx(method, args)
        raw = await self._caller.call(lambda: self._rpc.eth_call(tx), operation_name=method)
        return self._contract.decode_output(method, raw)

    async def name(self) -> str:
        return await self._read("name")

    async def symbol(self) -> str:
        return await self._read("symbol")

    async def decimals(self) -> int:
        """Token decimals (cached after the first read)"""
        if self._decimals is None:
            self._decimals = await self._read("decimals")
        return self._decimals

    async def total_supply(self) -> int:
        return await self._read("totalSupply")

    async def balance_of(self, owner: str) -> int:
        return await self._read("balanceOf", [owner])

    async def allowance(self, owner: str, spender: str) -> int:
        return await self._read("allowance", [owner, spender])

    async def to_amount(self, value: str) -> TokenAmount:
        """Parse a human-readable amount using this token's decimals"""
        return TokenAmount.from_decimal(value, await self.decimals())

    async def transfer(
        self,
        to: str,
        amount: int,
        signer: EVMSigner,
        options: Optional[TxOptions] = None,
    ) -> str:
        """
        Transfer ``amount`` (minimum units) to ``to``

        Returns:
            Transaction hash
        """
        return await self._builder.build_and_submit(TransferIntent(to, amount), signer, options)

    async def approve(
        self,
        spender: str,
        amount: int,
        signer: EVMSigner,
        options: Optional[TxOptions] = None,
    ) -> str:
        return await self._builder.build_and_submit(ApproveIntent(spender, amount), signer, options)

    async def transfer_from(
        self,
        owner: str,
        to: str,
        amount: int,
        signer: EVMSigner,
        options: Optional[TxOptions] = None,
    ) -> str:
        """Move ``amount`` from ``owner`` to ``to`` using the signer's allowance"""
        return await self._builder.build_and_submit(
            TransferFromIntent(owner, to, amount), signer, options
        )

    def __repr__(self) -> str:
        return f"Erc20Token(address={self.address})"
