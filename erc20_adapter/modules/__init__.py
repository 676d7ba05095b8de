"""
Functional modules for TokenClient

Provides high-level operations:
- FeeAndNonceResolver: Fee, nonce and gas-limit resolution
- TransactionBuilder: Priced, checked, single-broadcast token mutations
- TransactionReplacer: Fee-bumped replacement and cancellation
- DualChannelEventBus: Provider + socket event subscriptions
- Erc20Token: Per-token reads, mutations and events
"""

from .fees import FeeAndNonceResolver, GAS_LIMIT_FLOORS
from .transactions import TransactionBuilder, TransactionReplacer
from .events import DualChannelEventBus, to_event
from .token import Erc20Token, TokenEvents

__all__ = [
    "FeeAndNonceResolver",
    "GAS_LIMIT_FLOORS",
    "TransactionBuilder",
    "TransactionReplacer",
    "DualChannelEventBus",
    "to_event",
    "Erc20Token",
    "TokenEvents",
]
