"""
Type definitions for ERC-20 Adapter
"""

from .amount import Gwei, TokenAmount, parse_gas_value, WEI_PER_GWEI
from .tx import (
    AUTO,
    FeeQuote,
    TxOptions,
    TxTemplate,
    ResolvedParams,
    TxPlan,
    TransferIntent,
    ApproveIntent,
    TransferFromIntent,
    Intent,
)
from .events import (
    EventKind,
    TransferEvent,
    ApprovalEvent,
    SubscriptionFilter,
    EventSubscriptionHandle,
)
from .result import TxReceipt, TxStatus, SimulationResult

__all__ = [
    # Amounts
    "Gwei",
    "TokenAmount",
    "parse_gas_value",
    "WEI_PER_GWEI",
    # Transactions
    "AUTO",
    "FeeQuote",
    "TxOptions",
    "TxTemplate",
    "ResolvedParams",
    "TxPlan",
    "TransferIntent",
    "ApproveIntent",
    "TransferFromIntent",
    "Intent",
    # Events
    "EventKind",
    "TransferEvent",
    "ApprovalEvent",
    "SubscriptionFilter",
    "EventSubscriptionHandle",
    # Results
    "TxReceipt",
    "TxStatus",
    "SimulationResult",
]
