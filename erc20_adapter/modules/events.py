"""
Dual-channel event delivery

Every subscription listens on two independent sources:

- provider: polled ``eth_getLogs`` via LogWatcher, attached synchronously
- socket: pushed ``{"type", "data"}`` messages via ReconnectingSocket,
  attached by a background task once the connection opens

Both feed the same callback through the same filter. The same on-chain event
may arrive on both channels; callers that need exactly-once handling
de-duplicate by ``transaction_hash``.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Union

from eth_abi.exceptions import DecodingError

from ..contracts import Erc20Contract
from ..errors import NetworkFailure, SubscriptionDeliveryError
from ..infra.log_watcher import LogWatcher
from ..infra.ws_client import ReconnectingSocket
from ..types import (
    ApprovalEvent,
    EventKind,
    EventSubscriptionHandle,
    SubscriptionFilter,
    TransferEvent,
)

logger = logging.getLogger(__name__)

TokenEvent = Union[TransferEvent, ApprovalEvent]
EventCallback = Callable[[TokenEvent], None]

PROVIDER_CHANNEL = "provider"
SOCKET_CHANNEL = "socket"


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, int):
        return value
    text = str(value)
    return int(text, 16) if text.lower().startswith("0x") else int(text)


def to_event(kind: EventKind, payload: Dict[str, Any]) -> TokenEvent:
    """Normalise a decoded log or pushed payload into an event dataclass"""
    if kind is EventKind.TRANSFER:
        return TransferEvent(
            from_address=payload["from"],
            to=payload["to"],
            value=_int(payload["value"]),
            block_number=_int(payload.get("blockNumber")),
            transaction_hash=payload.get("transactionHash"),
        )
    return ApprovalEvent(
        owner=payload["owner"],
        spender=payload["spender"],
        value=_int(payload["value"]),
        block_number=_int(payload.get("blockNumber")),
        transaction_hash=payload.get("transactionHash"),
    )


class DualChannelEventBus:
    """
    Token event subscriptions over provider and socket channels

    Usage:
        bus = DualChannelEventBus(contract, log_watcher, socket)
        handle = bus.subscribe(
            EventKind.TRANSFER,
            SubscriptionFilter({"from": None, "to": my_address}),
            on_transfer,
        )
        ...
        handle.cancel()
    """

    def __init__(
        self,
        contract: Erc20Contract,
        log_watcher: LogWatcher,
        socket: ReconnectingSocket,
    ):
        self._contract = contract
        self._log_watcher = log_watcher
        self._socket = socket

    def subscribe(
        self,
        kind: EventKind,
        flt: SubscriptionFilter,
        callback: EventCallback,
    ) -> EventSubscriptionHandle:
        """
        Subscribe ``callback`` to ``kind`` events matching ``flt``.

        Returns without waiting for the socket; the provider listener is
        live on return. Requires a running event loop.
        """
        def deliver(channel: str, payload: Any) -> None:
            if handle.cancelled:
                return
            if not isinstance(payload, dict) or not flt.matches(payload):
                return
            try:
                event = to_event(kind, payload)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Malformed {kind.value} payload on {channel} channel: {e}")
                return
            try:
                callback(event)
            except Exception as e:
                logger.error(str(SubscriptionDeliveryError(kind.value, channel, e)))

        def on_log(log: Dict[str, Any]) -> None:
            try:
                payload = self._contract.decode_log(kind, log)
            except (ValueError, DecodingError) as e:
                logger.warning(f"Undecodable {kind.value} log: {e}")
                return
            deliver(PROVIDER_CHANNEL, payload)

        def on_push(data: Any) -> None:
            deliver(SOCKET_CHANNEL, data)

        detach = self._log_watcher.add_listener(
            self._contract.address,
            self._contract.topics_for(kind, flt),
            on_log,
        )
        handle = EventSubscriptionHandle(detach)

        async def attach_socket() -> None:
            try:
                await self._socket.connect()
            except NetworkFailure as e:
                logger.info(f"Socket unavailable, {kind.value} events via provider only: {e}")
                return
            if handle.cancelled:
                return
            handle.bind_socket(self._socket.subscribe(kind.value, on_push))

        handle.bind_socket_task(asyncio.get_running_loop().create_task(attach_socket()))
        logger.debug(f"Subscribed to {kind.value} on {self._contract.address} with {flt}")
        return handle
