"""
Event type definitions: token events, filters and subscription handles
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """ERC-20 events the bus can subscribe to"""
    TRANSFER = "Transfer"
    APPROVAL = "Approval"

    @property
    def filter_fields(self) -> tuple:
        """Indexed fields, in topic order"""
        if self is EventKind.TRANSFER:
            return ("from", "to")
        return ("owner", "spender")


@dataclass(frozen=True)
class TransferEvent:
    from_address: str
    to: str
    value: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None


@dataclass(frozen=True)
class ApprovalEvent:
    owner: str
    spender: str
    value: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None


def _normalise(value: Any) -> Any:
    return value.lower() if isinstance(value, str) else value


class SubscriptionFilter:
    """
    Field constraints applied to every delivered event.

    A field mapped to None (or absent) is a wildcard. String values compare
    case-insensitively so checksummed and lower-case addresses match.

    Usage:
        flt = SubscriptionFilter({"from": "0xAbC...", "to": None})
        flt.matches({"from": "0xabc...", "to": "0x123..."})  # True
    """

    def __init__(self, constraints: Optional[Mapping[str, Optional[str]]] = None):
        self._constraints: Dict[str, Optional[str]] = dict(constraints or {})

    @property
    def constraints(self) -> Dict[str, Optional[str]]:
        return dict(self._constraints)

    def get(self, field: str) -> Optional[str]:
        return self._constraints.get(field)

    def matches(self, payload: Mapping[str, Any]) -> bool:
        for field, expected in self._constraints.items():
            if expected is None:
                continue
            actual = payload.get(field)
            if actual is None or _normalise(actual) != _normalise(expected):
                return False
        return True

    def __repr__(self) -> str:
        return f"SubscriptionFilter({self._constraints})"


class EventSubscriptionHandle:
    """
    Cancellable handle joining the provider and socket channels.

    ``cancel()`` detaches the provider listener, aborts the socket attach task
    if it is still pending, and unsubscribes the socket callback if it was
    registered. Calling it more than once is a no-op.
    """

    def __init__(self, detach_provider: Callable[[], None]):
        self._detach_provider = detach_provider
        self._socket_unsubscribe: Optional[Callable[[], None]] = None
        self._socket_task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def socket_attached(self) -> bool:
        return self._socket_unsubscribe is not None

    def bind_socket_task(self, task: asyncio.Task) -> None:
        self._socket_task = task

    def bind_socket(self, unsubscribe: Callable[[], None]) -> None:
        """Register the socket unsubscribe; runs it at once if already cancelled"""
        if self._cancelled:
            unsubscribe()
            return
        self._socket_unsubscribe = unsubscribe

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True

        self._detach_provider()

        if self._socket_task is not None and not self._socket_task.done():
            self._socket_task.cancel()
        self._socket_task = None

        if self._socket_unsubscribe is not None:
            unsubscribe, self._socket_unsubscribe = self._socket_unsubscribe, None
            unsubscribe()
        logger.debug("Event subscription cancelled")
