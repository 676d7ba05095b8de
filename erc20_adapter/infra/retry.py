"""
Retry Logic Helper Module

Wraps remote calls with a per-attempt timeout and exponential backoff.
Includes structured logging with correlation IDs for transaction tracing.
"""

import asyncio
import logging
import uuid
import contextvars
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import RetryPolicy
from ..errors import NetworkFailure, is_permanent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Context variable for correlation ID (task-local under asyncio)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for transaction tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("transfer") as cid:
            logger.info(f"[{cid}] Starting operation")
            tx_hash = await builder.build_and_submit(...)
    """

    def __init__(self, prefix: Optional[str] = None):
        """
        Initialize correlation context.

        Args:
            prefix: Optional prefix for the correlation ID (e.g., "transfer", "approve")
        """
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def _log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    attempt: Optional[int] = None,
    max_retries: Optional[int] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        attempt: Current attempt number (1-indexed)
        max_retries: Maximum number of attempts
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if attempt is not None and max_retries is not None:
        parts.append(f"[{attempt}/{max_retries}]")
    parts.append(message)

    log_message = " ".join(parts)

    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "attempt": attempt,
        "max_retries": max_retries,
        **extra
    }

    logger.log(level, log_message, extra=extra_context)


class ResilientCaller:
    """
    Runs remote calls under a timeout and retry policy.

    Idempotent calls race each attempt against ``timeout_seconds`` and back off
    exponentially between failures. Non-idempotent calls (broadcasting a
    signed transaction) run exactly once and surface their failure untouched.

    Usage:
        caller = ResilientCaller(RetryPolicy(), timeout_seconds=12.0)

        balance = await caller.call(lambda: rpc.get_balance(addr), operation_name="getBalance")
        tx_hash = await caller.call(lambda: rpc.send_raw_transaction(raw), idempotent=False)
    """

    def __init__(
        self,
        policy: RetryPolicy,
        timeout_seconds: float,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self._policy = policy
        self._timeout = timeout_seconds
        self._sleep = sleep or asyncio.sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        idempotent: bool = True,
        operation_name: str = "rpc",
    ) -> T:
        """
        Execute ``operation``.

        Args:
            operation: Zero-argument callable returning an awaitable
            idempotent: False for state-mutating sends, which never retry
            operation_name: Name for logging purposes

        Returns:
            The operation's result

        Raises:
            NetworkFailure: Idempotent call still failing after max_attempts
            Exception: Permanent errors and non-idempotent failures, unchanged
        """
        if not idempotent:
            return await operation()

        max_attempts = self._policy.max_attempts
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            try:
                result = await asyncio.wait_for(operation(), timeout=self._timeout)
                if attempt > 1:
                    _log_with_correlation(
                        logging.INFO,
                        f"Succeeded after {attempt} attempts",
                        operation_name,
                        attempt,
                        max_attempts,
                    )
                return result

            except asyncio.TimeoutError:
                last_error = NetworkFailure.timeout(None, self._timeout)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                if is_permanent(e):
                    raise
                last_error = e

            if attempt < max_attempts:
                delay = self._policy.delay_for(attempt)
                _log_with_correlation(
                    logging.WARNING,
                    f"Recoverable error: {last_error}; retrying in {delay:.2f}s",
                    operation_name,
                    attempt,
                    max_attempts,
                    error_type="recoverable",
                )
                await self._sleep(delay)

        _log_with_correlation(
            logging.ERROR,
            f"Max attempts ({max_attempts}) exceeded. Last error: {last_error}",
            operation_name,
            max_attempts,
            max_attempts,
        )
        if isinstance(last_error, NetworkFailure):
            raise last_error
        raise NetworkFailure.retries_exhausted(operation_name, max_attempts, last_error) from last_error
