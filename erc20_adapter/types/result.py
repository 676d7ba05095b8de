"""
Result type definitions for receipts and simulations
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class TxStatus(Enum):
    """Mined transaction status"""
    SUCCESS = "success"
    FAILED = "failed"


def _int(value: Any) -> int:
    if value is None:
        return 0
    return value if isinstance(value, int) else int(value, 16)


@dataclass
class TxReceipt:
    """
    Mined transaction receipt

    Attributes:
        hash: Transaction hash
        block_number: Block the transaction was included in
        block_hash: Hash of that block
        status: SUCCESS or FAILED
        gas_used: Gas consumed
        effective_gas_price: Price actually paid per gas (wei)
    """
    hash: str
    block_number: int
    block_hash: str
    status: TxStatus
    gas_used: int
    effective_gas_price: int

    @property
    def is_success(self) -> bool:
        return self.status == TxStatus.SUCCESS

    @property
    def fee_wei(self) -> int:
        return self.gas_used * self.effective_gas_price

    @classmethod
    def from_rpc(cls, receipt: Dict[str, Any]) -> "TxReceipt":
        """Build from an eth_getTransactionReceipt result"""
        return cls(
            hash=receipt["transactionHash"],
            block_number=_int(receipt.get("blockNumber")),
            block_hash=receipt.get("blockHash", ""),
            status=TxStatus.SUCCESS if _int(receipt.get("status")) == 1 else TxStatus.FAILED,
            gas_used=_int(receipt.get("gasUsed")),
            effective_gas_price=_int(receipt.get("effectiveGasPrice")),
        )

    def __str__(self) -> str:
        return f"TxReceipt({self.status.value}, {self.hash[:18]}..., block={self.block_number})"


@dataclass
class SimulationResult:
    """Dry-run outcome of a call"""
    success: bool
    gas_estimate: int = 0
    revert_reason: Optional[str] = None
