"""
Transaction builder and sender

Provides utilities for:
- Turning a token intent into a priced, nonced, signed EIP-1559 transaction
- Balance and affordability checks before anything is signed
- Single-shot submission with nonce-conflict classification
- Replacing or cancelling a pending transaction with bumped fees
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from web3 import Web3

from ..config import TxConfig
from ..contracts import Erc20Contract
from ..errors import (
    Erc20AdapterError,
    ErrorCode,
    InsufficientFunds,
    NonceConflict,
    SignerError,
    to_submission_error,
)
from ..infra.evm_signer import EVMSigner
from ..infra.retry import CorrelationContext, ResilientCaller
from ..infra.rpc import RpcClient
from ..types import (
    FeeQuote,
    Intent,
    TransferIntent,
    ApproveIntent,
    TransferFromIntent,
    TxOptions,
    TxPlan,
    TxTemplate,
)
from .fees import FeeAndNonceResolver

logger = logging.getLogger(__name__)

# Zero-value self-transfer with no calldata
CANCEL_GAS_LIMIT = 21_000


def _intent_args(intent: Intent) -> list:
    if isinstance(intent, TransferIntent):
        return [intent.to, intent.amount]
    if isinstance(intent, ApproveIntent):
        return [intent.spender, intent.amount]
    if isinstance(intent, TransferFromIntent):
        return [intent.owner, intent.to, intent.amount]
    raise TypeError(f"Unsupported intent: {type(intent).__name__}")


def _quantity(value: Any) -> Optional[int]:
    if value is None:
        return None
    return value if isinstance(value, int) else int(value, 16)


def _bind(signer: EVMSigner, chain_id: int) -> EVMSigner:
    if signer.is_connected and signer.chain_id == chain_id:
        return signer
    return signer.connect(chain_id)


async def _submit(
    rpc: RpcClient,
    caller: ResilientCaller,
    signer: EVMSigner,
    chain_id: int,
    plan: TxPlan,
) -> str:
    """Sign ``plan`` and broadcast it exactly once"""
    raw_tx, local_hash = _bind(signer, chain_id).sign_transaction(plan.to_dict())
    logger.debug(f"Signed tx {local_hash} (nonce={plan.nonce})")

    try:
        tx_hash = await caller.call(
            lambda: rpc.send_raw_transaction(raw_tx),
            idempotent=False,
            operation_name="sendRawTransaction",
        )
    except Erc20AdapterError as e:
        error = to_submission_error(e, plan.nonce)
        if error is e:
            raise
        logger.warning(f"Nonce conflict on submission (nonce={plan.nonce}): {e}")
        raise error from e

    logger.info(f"Transaction submitted: {tx_hash}")
    return tx_hash


class TransactionBuilder:
    """
    Builds and submits ERC-20 mutations for one token

    Steps run strictly in order; each is a precondition for the next:
    1. Resolve fee, nonce and gas limit
    2. transfer only: token balance >= amount
    3. Native balance >= gas_limit * max_fee_per_gas
    4. Encode, assemble the plan, sign and broadcast once

    Usage:
        builder = TransactionBuilder(rpc, caller, resolver, Erc20Contract(token), chain_id=1)
        tx_hash = await builder.build_and_submit(TransferIntent(to, 1000), signer)
    """

    def __init__(
        self,
        rpc: RpcClient,
        caller: ResilientCaller,
        resolver: FeeAndNonceResolver,
        contract: Erc20Contract,
        chain_id: int,
        tx_config: Optional[TxConfig] = None,
    ):
        """
        Initialize transaction builder

        Args:
            rpc: RPC client
            caller: Retry/timeout wrapper for reads and the broadcast
            resolver: Fee, nonce and gas-limit resolver
            contract: Token the mutations target
            chain_id: Chain the signer is bound to before signing
            tx_config: Transaction settings
        """
        self._rpc = rpc
        self._caller = caller
        self._resolver = resolver
        self._contract = contract
        self._chain_id = chain_id
        self._config = tx_config or TxConfig()

    @property
    def contract(self) -> Erc20Contract:
        return self._contract

    async def build_and_submit(
        self,
        intent: Intent,
        signer: EVMSigner,
        options: Optional[TxOptions] = None,
    ) -> str:
        """
        Build, sign and broadcast a token mutation

        Args:
            intent: TransferIntent, ApproveIntent or TransferFromIntent
            signer: Sending account
            options: Fee, nonce and gas-limit overrides

        Returns:
            Transaction hash

        Raises:
            InsufficientFunds: Token or native balance too low
            TransactionReverted: Gas estimation reports a revert
            NonceConflict: Node rejected the nonce
            NetworkFailure: Reads failed after retries, or the broadcast failed
        """
        operation = intent.operation
        with CorrelationContext(operation) as cid:
            data = self._contract.encode_call(operation, _intent_args(intent))
            sender = signer.address
            template = TxTemplate(
                to=self._contract.address,
                data=data,
                from_address=sender,
                operation=operation,
            )

            params = await self._resolver.resolve(options, template)

            if isinstance(intent, TransferIntent):
                balance = await self._token_balance(sender)
                if balance < intent.amount:
                    raise InsufficientFunds.token_balance(intent.amount, balance)

            plan = TxPlan(
                to=template.to,
                data=data,
                nonce=params.nonce,
                gas_limit=params.gas_limit,
                fee=params.fee,
            )
            await self._check_gas_funds(sender, plan)

            logger.info(
                f"[{cid}] Submitting {operation} from {sender} "
                f"(nonce={plan.nonce}, gas={plan.gas_limit}, max_fee={plan.fee.max_fee_per_gas})"
            )
            return await _submit(self._rpc, self._caller, signer, self._chain_id, plan)

    async def _token_balance(self, owner: str) -> int:
        tx = self._contract.call_tx("balanceOf", [owner])
        raw = await self._caller.call(lambda: self._rpc.eth_call(tx), operation_name="balanceOf")
        return self._contract.decode_output("balanceOf", raw)

    async def _check_gas_funds(self, sender: str, plan: TxPlan) -> None:
        native = await self._caller.call(
            lambda: self._rpc.get_balance(sender),
            operation_name="getBalance",
        )
        if native < plan.max_cost:
            raise InsufficientFunds.gas(plan.max_cost, native)


class TransactionReplacer:
    """
    Re-submits a pending transaction at the same nonce with bumped fees

    ``replace`` re-signs the original call; ``cancel`` sends a zero-value
    self-transfer instead. Both apply a fixed fee multiplier and broadcast once.

    Usage:
        replacer = TransactionReplacer(rpc, caller, chain_id=1)
        new_hash = await replacer.replace(tx_hash, signer)
        cancel_hash = await replacer.cancel(tx_hash, signer)
    """

    def __init__(
        self,
        rpc: RpcClient,
        caller: ResilientCaller,
        chain_id: int,
        tx_config: Optional[TxConfig] = None,
    ):
        self._rpc = rpc
        self._caller = caller
        self._chain_id = chain_id
        self._config = tx_config or TxConfig()

    async def replace(
        self,
        tx_hash: str,
        signer: EVMSigner,
        multiplier: Optional[float] = None,
    ) -> str:
        """Re-send the same call with fees scaled by ``multiplier``"""
        with CorrelationContext("replace"):
            pending, nonce, fee = await self._load_pending(tx_hash, signer)
            plan = TxPlan(
                to=Web3.to_checksum_address(pending["to"]),
                data=pending.get("input") or pending.get("data") or "0x",
                nonce=nonce,
                gas_limit=_quantity(pending.get("gas")),
                fee=fee.bumped(multiplier or self._config.fee_bump_multiplier),
                value=_quantity(pending.get("value")) or 0,
            )
            logger.info(f"Replacing {tx_hash} at nonce {nonce}")
            return await _submit(self._rpc, self._caller, signer, self._chain_id, plan)

    async def cancel(
        self,
        tx_hash: str,
        signer: EVMSigner,
        multiplier: Optional[float] = None,
    ) -> str:
        """Replace the pending transaction with a zero-value self-transfer"""
        with CorrelationContext("cancel"):
            _, nonce, fee = await self._load_pending(tx_hash, signer)
            plan = TxPlan(
                to=signer.address,
                data="0x",
                nonce=nonce,
                gas_limit=CANCEL_GAS_LIMIT,
                fee=fee.bumped(multiplier or self._config.fee_bump_multiplier),
            )
            logger.info(f"Cancelling {tx_hash} at nonce {nonce}")
            return await _submit(self._rpc, self._caller, signer, self._chain_id, plan)

    async def _load_pending(
        self,
        tx_hash: str,
        signer: EVMSigner,
    ) -> Tuple[Dict[str, Any], int, FeeQuote]:
        pending = await self._caller.call(
            lambda: self._rpc.get_transaction(tx_hash),
            operation_name="getTransaction",
        )
        if not pending:
            raise Erc20AdapterError(f"Transaction {tx_hash} not found", ErrorCode.TX_NOT_FOUND)

        nonce = _quantity(pending.get("nonce"))
        if pending.get("blockNumber") is not None:
            raise NonceConflict(
                f"Transaction {tx_hash} is already mined; nonce {nonce} is used",
                nonce=nonce,
            )

        sender = pending.get("from") or ""
        if sender.lower() != signer.address.lower():
            raise SignerError.failed(f"Transaction {tx_hash} was sent by {sender}, not {signer.address}")

        # Legacy transactions carry only gasPrice
        gas_price = _quantity(pending.get("gasPrice"))
        max_fee = _quantity(pending.get("maxFeePerGas")) or gas_price or 0
        priority_fee = _quantity(pending.get("maxPriorityFeePerGas"))
        if priority_fee is None:
            priority_fee = max_fee
        return pending, nonce, FeeQuote(max_fee, priority_fee)
