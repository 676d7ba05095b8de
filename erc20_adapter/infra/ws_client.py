"""
WebSocket push channel with automatic reconnection

The remote side pushes JSON messages shaped ``{"type": <event>, "data": {...}}``.
Callbacks register per event type; the connection is re-established with
exponential backoff after an unexpected close, and registrations survive the
reconnect because they live in the listener map, not on the connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

from ..errors import NetworkFailure, SubscriptionDeliveryError

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Any], None]


class SocketConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


def _default_connector(url: str) -> Awaitable[Any]:
    return websockets.connect(url)


def _consume_result(task: asyncio.Future) -> None:
    # Awaiting callers still receive the failure
    if not task.cancelled():
        task.exception()


class ReconnectingSocket:
    """
    Push-channel client owning the connection lifecycle

    State machine:
        DISCONNECTED -> CONNECTING -> OPEN -> DISCONNECTED (on close/error)
        -> CONNECTING (scheduled) -> ...

    ``disconnect()`` is terminal for the reconnect cycle: it clears all
    listeners and aborts any pending reconnect.

    Usage:
        socket = ReconnectingSocket("wss://events.example.com")
        await socket.connect()
        unsubscribe = socket.subscribe("Transfer", on_transfer)
        ...
        unsubscribe()
        await socket.disconnect()
    """

    def __init__(
        self,
        url: str,
        connect_timeout: float = 12.0,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        max_reconnect_attempts: int = 5,
        connector: Optional[Callable[[str], Awaitable[Any]]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Args:
            url: WebSocket endpoint
            connect_timeout: Seconds allowed to reach OPEN
            reconnect_base_delay: First reconnect delay in seconds
            reconnect_max_delay: Reconnect delay cap in seconds
            max_reconnect_attempts: Scheduled reconnects before giving up
            connector: Coroutine factory returning an open connection
            sleep: Awaitable sleep used between reconnects
        """
        self._url = url
        self._connect_timeout = connect_timeout
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._max_attempts = max_reconnect_attempts
        self._connector = connector or _default_connector
        self._sleep = sleep or asyncio.sleep

        self._ws: Optional[Any] = None
        self._state = SocketConnectionState.DISCONNECTED
        self._connecting: Optional[asyncio.Future] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reconnect_attempts = 0
        # Bumped by disconnect() so in-flight connects can tell they are stale
        self._generation = 0
        self._listeners: Dict[str, Set[MessageCallback]] = {}

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> SocketConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == SocketConnectionState.OPEN

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, ()))

    def reconnect_delay(self, attempts: int) -> float:
        """Delay before reconnect number ``attempts + 1``"""
        return min(self._base_delay * (2 ** attempts), self._max_delay)

    async def connect(self) -> None:
        """
        Open the connection.

        Returns at once when already OPEN; otherwise awaits the shared
        attempt. The attempt runs in its own task, so a cancelled caller
        leaves it running for everyone else.

        Raises:
            NetworkFailure: Connection could not be established
        """
        if self._state == SocketConnectionState.OPEN:
            return
        if self._connecting is None:
            self._state = SocketConnectionState.CONNECTING
            self._connecting = asyncio.ensure_future(self._open(self._generation))
            self._connecting.add_done_callback(_consume_result)
        await asyncio.shield(self._connecting)

    async def _open(self, generation: int) -> None:
        try:
            try:
                ws = await asyncio.wait_for(self._connector(self._url), timeout=self._connect_timeout)
            except Exception as e:
                if generation == self._generation:
                    self._state = SocketConnectionState.DISCONNECTED
                raise NetworkFailure.socket_failed(self._url, e) from e

            if generation != self._generation:
                # disconnect() ran while we were connecting
                await self._close_quietly(ws)
                raise NetworkFailure.socket_failed(self._url, RuntimeError("disconnected while connecting"))

            self._ws = ws
            self._state = SocketConnectionState.OPEN
            self._reconnect_attempts = 0
            self._reader_task = asyncio.create_task(self._read_loop(ws))
            logger.info(f"WebSocket connected: {self._url}")
        finally:
            if self._connecting is asyncio.current_task():
                self._connecting = None

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self._handle_message(raw)
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as e:
            logger.info(f"WebSocket closed: {e}")
        except Exception as e:
            logger.warning(f"WebSocket read error: {e}")
        self._on_closed(ws)

    def _on_closed(self, ws: Any) -> None:
        if self._ws is not ws:
            return
        self._ws = None
        self._reader_task = None
        if self._state == SocketConnectionState.CLOSING:
            self._state = SocketConnectionState.DISCONNECTED
            return
        self._state = SocketConnectionState.DISCONNECTED
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_attempts >= self._max_attempts:
            logger.error(
                f"Max reconnection attempts reached ({self._max_attempts}), giving up on {self._url}"
            )
            return

        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()

        delay = self.reconnect_delay(self._reconnect_attempts)
        self._reconnect_attempts += 1
        logger.info(
            f"WebSocket reconnect {self._reconnect_attempts}/{self._max_attempts} in {delay:.1f}s"
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay, self._generation))

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await self._sleep(delay)
        if generation != self._generation:
            return
        try:
            await self.connect()
        except NetworkFailure as e:
            if self._reconnect_task is asyncio.current_task():
                self._reconnect_task = None
            if generation != self._generation:
                return
            logger.warning(f"WebSocket reconnect failed: {e}")
            self._schedule_reconnect()
            return
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None

    def _handle_message(self, raw: Any) -> None:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to parse WebSocket message: {e}")
            return

        if not isinstance(message, dict):
            return
        event_type = message.get("type")
        callbacks = self._listeners.get(event_type)
        if not callbacks:
            return

        data = message.get("data")
        for callback in list(callbacks):
            try:
                callback(data)
            except Exception as e:
                logger.error(str(SubscriptionDeliveryError(event_type, "socket", e)))

    def subscribe(self, event_type: str, callback: MessageCallback) -> Callable[[], None]:
        """
        Register ``callback`` for messages of ``event_type``.

        Returns:
            Unsubscribe function (safe to call more than once)
        """
        self._listeners.setdefault(event_type, set()).add(callback)

        if self._state == SocketConnectionState.DISCONNECTED:
            asyncio.get_running_loop().create_task(self._connect_logged())

        def unsubscribe() -> None:
            callbacks = self._listeners.get(event_type)
            if callbacks:
                callbacks.discard(callback)
                if not callbacks:
                    del self._listeners[event_type]

        return unsubscribe

    async def _connect_logged(self) -> None:
        try:
            await self.connect()
        except NetworkFailure as e:
            logger.warning(f"WebSocket connect failed: {e}")

    async def disconnect(self) -> None:
        """Close the connection, drop all listeners and stop reconnecting"""
        self._generation += 1
        self._listeners.clear()
        self._reconnect_attempts = 0

        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None
        # A stale in-flight attempt closes its own connection on arrival
        self._connecting = None

        ws, self._ws = self._ws, None
        if ws is not None:
            self._state = SocketConnectionState.CLOSING
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
        self._reader_task = None
        if ws is not None:
            await self._close_quietly(ws)

        self._state = SocketConnectionState.DISCONNECTED
        logger.info(f"WebSocket disconnected: {self._url}")

    @staticmethod
    async def _close_quietly(ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error closing WebSocket: {e}")

    def __repr__(self) -> str:
        return f"ReconnectingSocket(url={self._url}, state={self._state.value})"
