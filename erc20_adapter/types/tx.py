"""
Transaction type definitions: options, intents, fee quote and plan
"""

from dataclasses import dataclass
from typing import Optional, Union, Dict, Any

from .amount import GasValue

AUTO = "auto"


@dataclass(frozen=True)
class FeeQuote:
    """
    EIP-1559 fee pair in wei

    Produced fresh for every transaction attempt; never cached.
    """
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    def __post_init__(self):
        if self.max_fee_per_gas < 0 or self.max_priority_fee_per_gas < 0:
            raise ValueError("Fee values must be non-negative")
        if self.max_fee_per_gas < self.max_priority_fee_per_gas:
            raise ValueError(
                f"max_fee_per_gas ({self.max_fee_per_gas}) is below "
                f"max_priority_fee_per_gas ({self.max_priority_fee_per_gas})"
            )

    def bumped(self, multiplier: float) -> "FeeQuote":
        """Scale both fees, e.g. for a replacement transaction"""
        return FeeQuote(
            max_fee_per_gas=int(self.max_fee_per_gas * multiplier),
            max_priority_fee_per_gas=int(self.max_priority_fee_per_gas * multiplier),
        )


@dataclass
class TxOptions:
    """
    Per-call overrides

    Fee fields accept an int (wei), an integer string (wei) or a decimal
    string in gwei ("2.5"). ``nonce`` and ``gas_limit`` accept "auto".
    """
    max_fee_per_gas: Optional[GasValue] = None
    max_priority_fee_per_gas: Optional[GasValue] = None
    nonce: Optional[Union[int, str]] = None
    gas_limit: Optional[GasValue] = None


@dataclass(frozen=True)
class TxTemplate:
    """Call being priced: target, calldata and sender"""
    to: str
    data: str
    from_address: str
    operation: str
    value: int = 0


@dataclass(frozen=True)
class ResolvedParams:
    """Fee, nonce and gas limit, all concrete"""
    fee: FeeQuote
    nonce: int
    gas_limit: int


@dataclass(frozen=True)
class TxPlan:
    """
    Fully resolved, unsigned transaction

    Built once per mutation call, consumed immediately by signing.
    """
    to: str
    data: str
    nonce: int
    gas_limit: int
    fee: FeeQuote
    value: int = 0

    @property
    def max_cost(self) -> int:
        """Worst-case fee in wei"""
        return self.gas_limit * self.fee.max_fee_per_gas

    def to_dict(self) -> Dict[str, Any]:
        """eth-account EIP-1559 transaction dict (chainId added by the signer)"""
        return {
            "type": 2,
            "to": self.to,
            "data": self.data,
            "value": self.value,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "maxFeePerGas": self.fee.max_fee_per_gas,
            "maxPriorityFeePerGas": self.fee.max_priority_fee_per_gas,
        }


@dataclass(frozen=True)
class TransferIntent:
    """Move ``amount`` of the token from the signer to ``to``"""
    to: str
    amount: int

    operation = "transfer"


@dataclass(frozen=True)
class ApproveIntent:
    """Allow ``spender`` to move up to ``amount`` of the signer's tokens"""
    spender: str
    amount: int

    operation = "approve"


@dataclass(frozen=True)
class TransferFromIntent:
    """Move ``amount`` from ``owner`` to ``to`` using the signer's allowance"""
    owner: str
    to: str
    amount: int

    operation = "transferFrom"


Intent = Union[TransferIntent, ApproveIntent, TransferFromIntent]
