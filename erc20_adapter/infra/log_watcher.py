"""
Provider-side log subscriptions

Polls ``eth_getLogs`` for each listener, starting from the block after the
chain head at attach time. Reads go through ``ResilientCaller``; a failed poll
is logged and the next one picks up from the same block.
"""

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .retry import ResilientCaller
from .rpc import RpcClient

logger = logging.getLogger(__name__)

LogHandler = Callable[[Dict[str, Any]], None]


class LogWatcher:
    """
    Polling log listener registry

    Usage:
        watcher = LogWatcher(rpc, caller, poll_interval=4.0)
        detach = watcher.add_listener(token_address, topics, on_log)
        ...
        detach()
    """

    def __init__(
        self,
        rpc: RpcClient,
        caller: ResilientCaller,
        poll_interval: float = 4.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self._rpc = rpc
        self._caller = caller
        self._poll_interval = poll_interval
        self._sleep = sleep or asyncio.sleep
        self._tasks: Dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    @property
    def listener_count(self) -> int:
        return len(self._tasks)

    def add_listener(
        self,
        address: str,
        topics: List[Optional[str]],
        handler: LogHandler,
    ) -> Callable[[], None]:
        """
        Start polling logs for ``address`` matching ``topics``.

        Must be called with a running event loop. The returned detach
        function stops the listener; calling it again does nothing.
        """
        key = next(self._ids)
        task = asyncio.get_running_loop().create_task(self._poll(address, list(topics), handler))
        self._tasks[key] = task
        logger.debug(f"Log listener {key} attached for {address}")

        def detach() -> None:
            pending = self._tasks.pop(key, None)
            if pending is not None and not pending.done():
                pending.cancel()
                logger.debug(f"Log listener {key} detached")

        return detach

    async def _head(self) -> int:
        return await self._caller.call(self._rpc.block_number, operation_name="eth_blockNumber")

    async def _poll(self, address: str, topics: List[Optional[str]], handler: LogHandler) -> None:
        next_block: Optional[int]
        try:
            next_block = await self._head() + 1
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Could not read chain head for log listener: {e}")
            next_block = None

        while True:
            await self._sleep(self._poll_interval)

            try:
                latest = await self._head()
                if next_block is None:
                    next_block = latest
                if latest < next_block:
                    continue
                from_block = next_block
                logs = await self._caller.call(
                    lambda: self._rpc.get_logs(address, topics, from_block, latest),
                    operation_name="eth_getLogs",
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Log poll failed for {address}: {e}")
                continue

            next_block = latest + 1
            for log in logs:
                if log.get("removed"):
                    continue
                try:
                    handler(log)
                except Exception as e:
                    logger.error(f"Log handler failed for {address}: {e}")

    async def close(self) -> None:
        """Cancel every listener"""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
