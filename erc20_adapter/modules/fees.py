"""
Fee, nonce and gas-limit resolution

Each field is resolved independently; the first concrete value wins:

    fees:      override -> network suggestion -> floor (20 gwei / 1 gwei)
    nonce:     override -> pending transaction count
    gas limit: override -> estimate * 120% -> per-operation floor

Every live lookup goes through ``ResilientCaller`` in idempotent mode.
"""

import logging
from typing import Any, Dict, Optional

from ..config import TxConfig
from ..errors import ConfigurationError, ErrorCode, NetworkFailure, RpcError, to_revert
from ..infra.retry import ResilientCaller
from ..infra.rpc import RpcClient
from ..types import AUTO, FeeQuote, ResolvedParams, TxOptions, TxTemplate, parse_gas_value

logger = logging.getLogger(__name__)

# Used when estimation is unavailable (not when it reports a revert)
GAS_LIMIT_FLOORS: Dict[str, int] = {
    "transfer": 21_000,
    "approve": 46_000,
    "transferFrom": 65_000,
}
DEFAULT_GAS_LIMIT_FLOOR = 21_000


def _parse_override(name: str, value: Any) -> Optional[int]:
    try:
        return parse_gas_value(value)
    except ValueError as e:
        raise ConfigurationError.invalid(name, str(e)) from e


class FeeAndNonceResolver:
    """
    Resolves the priced, nonced, gas-bounded parameters of a transaction

    Usage:
        resolver = FeeAndNonceResolver(rpc, caller, TxConfig())
        params = await resolver.resolve(
            TxOptions(max_fee_per_gas="30.0"),
            TxTemplate(to=token, data=calldata, from_address=sender, operation="transfer"),
        )
    """

    def __init__(self, rpc: RpcClient, caller: ResilientCaller, tx_config: Optional[TxConfig] = None):
        self._rpc = rpc
        self._caller = caller
        self._config = tx_config or TxConfig()

    async def resolve(self, options: Optional[TxOptions], template: TxTemplate) -> ResolvedParams:
        """
        Resolve fee, nonce and gas limit for ``template``.

        Steps run in order: fees, nonce, gas limit.

        Raises:
            ConfigurationError: Malformed or mutually inconsistent overrides
            TransactionReverted: Gas estimation reports the call would revert
            NetworkFailure: Fee or nonce lookup failed after retries
        """
        options = options or TxOptions()
        fee = await self.resolve_fees(options)
        nonce = await self.resolve_nonce(options, template.from_address)
        gas_limit = await self.resolve_gas_limit(options, template)

        logger.debug(
            f"Resolved {template.operation}: nonce={nonce}, gas_limit={gas_limit}, "
            f"max_fee={fee.max_fee_per_gas}, priority_fee={fee.max_priority_fee_per_gas}"
        )
        return ResolvedParams(fee=fee, nonce=nonce, gas_limit=gas_limit)

    async def resolve_fees(self, options: TxOptions) -> FeeQuote:
        max_fee = _parse_override("max_fee_per_gas", options.max_fee_per_gas)
        priority_fee = _parse_override("max_priority_fee_per_gas", options.max_priority_fee_per_gas)
        max_fee_overridden = max_fee is not None
        priority_fee_overridden = priority_fee is not None

        if not (max_fee_overridden and priority_fee_overridden):
            suggested = await self._caller.call(self._rpc.get_fee_data, operation_name="getFeeData")
            if max_fee is None:
                max_fee = suggested.get("max_fee_per_gas") or self._config.max_fee_floor
            if priority_fee is None:
                priority_fee = suggested.get("max_priority_fee_per_gas") or self._config.priority_fee_floor

        if max_fee < priority_fee:
            if not max_fee_overridden:
                max_fee = priority_fee
            elif not priority_fee_overridden:
                priority_fee = max_fee
            else:
                raise ConfigurationError.invalid(
                    "max_fee_per_gas",
                    f"{max_fee} is below max_priority_fee_per_gas {priority_fee}",
                )

        return FeeQuote(max_fee_per_gas=max_fee, max_priority_fee_per_gas=priority_fee)

    async def resolve_nonce(self, options: TxOptions, address: str) -> int:
        nonce = options.nonce
        if nonce is None or nonce == AUTO:
            return await self._caller.call(
                lambda: self._rpc.get_transaction_count(address, "pending"),
                operation_name="getTransactionCount",
            )
        if isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0:
            raise ConfigurationError.invalid("nonce", f"expected a non-negative int or 'auto', got {nonce!r}")
        return nonce

    async def resolve_gas_limit(self, options: TxOptions, template: TxTemplate) -> int:
        floor = GAS_LIMIT_FLOORS.get(template.operation, DEFAULT_GAS_LIMIT_FLOOR)

        if options.gas_limit is not None and options.gas_limit != AUTO:
            return _parse_override("gas_limit", options.gas_limit) or floor

        tx: Dict[str, Any] = {
            "from": template.from_address,
            "to": template.to,
            "data": template.data,
        }
        if template.value:
            tx["value"] = hex(template.value)

        try:
            estimate = await self._caller.call(
                lambda: self._rpc.estimate_gas(tx),
                operation_name="estimateGas",
            )
        except NetworkFailure as e:
            # Only transport-class failures fall back to the floor
            if isinstance(e, RpcError) and e.code != ErrorCode.RPC_RATE_LIMITED:
                raise to_revert(e) from e
            logger.warning(f"Gas estimation unavailable for {template.operation}, using floor {floor}: {e}")
            return floor

        return estimate * self._config.gas_limit_buffer_percent // 100
