"""
Configuration management for ERC-20 Adapter

Loads settings from environment variables and .env file.
Includes logging configuration with file output and correlation ID support.

Configuration is a value: build it once with ``load_config()`` (or construct
the dataclasses directly) and pass it to ``TokenClient``. Components receive
the pieces they need at construction time.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv

from .errors import ConfigurationError


def _load_env_file():
    """Load .env file from project root"""
    current = Path(__file__).parent.parent  # erc20_adapter package parent
    env_file = current / ".env"

    if env_file.exists():
        load_dotenv(env_file)


def _get_env(key: str, default: Optional[str] = "") -> Optional[str]:
    """Get environment variable with default"""
    value = os.getenv(key)
    if value is None:
        return default
    return value


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid float value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as int"""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Invalid int value for {key}='{value}', using default={default}"
        )
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as bool"""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff policy for idempotent reads.

    Shared read-only by every ResilientCaller invocation in a session.
    Delays are in seconds.
    """
    kind: str = "exponential"
    base_delay: float = 0.3
    max_delay: float = 3.0
    max_attempts: int = 5

    def __post_init__(self):
        if self.kind != "exponential":
            raise ConfigurationError.invalid("retry.kind", f"unsupported kind {self.kind!r}")
        if self.max_attempts < 1:
            raise ConfigurationError.invalid("retry.max_attempts", "must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError.invalid("retry delays", "must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Backoff before the next try, given the 1-indexed failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            base_delay=_get_env_float("ERC20_RETRY_BASE_DELAY", 0.3),
            max_delay=_get_env_float("ERC20_RETRY_MAX_DELAY", 3.0),
            max_attempts=_get_env_int("ERC20_RETRY_MAX_ATTEMPTS", 5),
        )


@dataclass
class RpcConfig:
    """JSON-RPC endpoint configuration"""
    url: str = field(default_factory=lambda: _get_env("ERC20_RPC_URL", ""))
    chain_id: int = field(default_factory=lambda: _get_env_int("ERC20_CHAIN_ID", 0))
    # Per-call timeout for each attempt of an idempotent read
    timeout_seconds: float = field(default_factory=lambda: _get_env_float("ERC20_TIMEOUT_SECONDS", 12.0))
    retry: RetryPolicy = field(default_factory=RetryPolicy.from_env)


@dataclass
class SocketConfig:
    """Push channel (WebSocket) configuration"""
    url: str = field(default_factory=lambda: _get_env("ERC20_WS_URL", ""))
    connect_timeout: float = field(default_factory=lambda: _get_env_float("ERC20_WS_CONNECT_TIMEOUT", 12.0))
    reconnect_base_delay: float = field(default_factory=lambda: _get_env_float("ERC20_WS_RECONNECT_BASE_DELAY", 1.0))
    reconnect_max_delay: float = field(default_factory=lambda: _get_env_float("ERC20_WS_RECONNECT_MAX_DELAY", 30.0))
    max_reconnect_attempts: int = field(default_factory=lambda: _get_env_int("ERC20_WS_MAX_RECONNECT_ATTEMPTS", 5))


@dataclass
class EventsConfig:
    """Provider-side log polling configuration"""
    poll_interval: float = field(default_factory=lambda: _get_env_float("ERC20_LOG_POLL_INTERVAL", 4.0))


@dataclass
class TxConfig:
    """Transaction pricing configuration"""
    # Floors used when the node suggests no fee (wei)
    max_fee_floor: int = 20_000_000_000
    priority_fee_floor: int = 1_000_000_000
    # Gas estimate buffer, percent of the estimate
    gas_limit_buffer_percent: int = 120
    # Multiplier for replace/cancel; geth requires >= 10% bump
    fee_bump_multiplier: float = field(default_factory=lambda: _get_env_float("ERC20_FEE_BUMP_MULTIPLIER", 1.125))
    receipt_poll_interval: float = field(default_factory=lambda: _get_env_float("ERC20_RECEIPT_POLL_INTERVAL", 1.0))


def _get_default_log_path() -> str:
    """Get default log file path under erc20_adapter/log/ with UTC timestamp"""
    from datetime import datetime, timezone
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(__file__).parent / "log"
    return str(log_dir / f"erc20_adapter_{timestamp}.log")


@dataclass
class LoggingConfig:
    """
    Logging configuration with file output and correlation ID support.

    Environment variables:
        LOG_FILE: Path to log file (overrides default)
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR, CRITICAL (default: INFO)
        LOG_FORMAT: Custom log format string
        LOG_CONSOLE: Enable console output (default: true)
        LOG_MAX_BYTES: Max log file size before rotation (default: 10MB)
        LOG_BACKUP_COUNT: Number of backup files to keep (default: 5)
    """
    log_file: str = field(default_factory=lambda: _get_env("LOG_FILE", _get_default_log_path()))
    log_level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO"))
    log_format: str = field(default_factory=lambda: _get_env(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))
    console_output: bool = field(default_factory=lambda: _get_env_bool("LOG_CONSOLE", True))
    max_bytes: int = field(default_factory=lambda: _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))  # 10MB
    backup_count: int = field(default_factory=lambda: _get_env_int("LOG_BACKUP_COUNT", 5))

    @property
    def level(self) -> int:
        """Get numeric log level"""
        return getattr(logging, self.log_level.upper(), logging.INFO)


@dataclass
class Config:
    """
    Main configuration container

    Usage:
        from erc20_adapter.config import load_config

        config = load_config()
        client = await TokenClient.initialize(config)
    """
    rpc: RpcConfig = field(default_factory=RpcConfig)
    socket: SocketConfig = field(default_factory=SocketConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    tx: TxConfig = field(default_factory=TxConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> "Config":
        """Check required settings, returning self for chaining"""
        if not self.rpc.url:
            raise ConfigurationError.missing("ERC20_RPC_URL")
        if not self.socket.url:
            raise ConfigurationError.missing("ERC20_WS_URL")
        if self.rpc.chain_id <= 0:
            raise ConfigurationError.missing("ERC20_CHAIN_ID")
        if self.rpc.timeout_seconds <= 0:
            raise ConfigurationError.invalid("ERC20_TIMEOUT_SECONDS", "must be positive")
        if self.tx.fee_bump_multiplier <= 1.0:
            raise ConfigurationError.invalid("ERC20_FEE_BUMP_MULTIPLIER", "must be greater than 1.0")
        return self

    @classmethod
    def create(
        cls,
        rpc_url: str,
        ws_url: str,
        chain_id: int,
        timeout_seconds: float = 12.0,
        retry: Optional[RetryPolicy] = None,
    ) -> "Config":
        """Build a config from explicit values, other settings from environment"""
        return cls(
            rpc=RpcConfig(
                url=rpc_url,
                chain_id=chain_id,
                timeout_seconds=timeout_seconds,
                retry=retry or RetryPolicy(),
            ),
            socket=SocketConfig(url=ws_url),
        )


def load_config() -> Config:
    """Load .env and build a fresh configuration from the environment"""
    _load_env_file()
    return Config()


def setup_logging(
    log_config: Optional[LoggingConfig] = None,
    logger_name: str = "erc20_adapter",
) -> logging.Logger:
    """
    Set up logging based on configuration.

    Creates handlers for file and/or console output with optional rotation.
    The log file directory is created automatically if it doesn't exist.

    Args:
        log_config: Logging configuration (read from environment if None)
        logger_name: Name of the logger to configure (default: erc20_adapter)

    Returns:
        Configured logger instance
    """
    if log_config is None:
        log_config = LoggingConfig()

    logger = logging.getLogger(logger_name)
    logger.setLevel(log_config.level)

    # Close before removing to flush buffers and release file handles
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(log_config.log_format)

    handlers: List[logging.Handler] = []

    if log_config.log_file:
        from logging.handlers import RotatingFileHandler

        log_path = Path(log_config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.log_file,
            maxBytes=log_config.max_bytes,
            backupCount=log_config.backup_count,
            encoding='utf-8',
        )
        file_handler.setLevel(log_config.level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_config.level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for handler in handlers:
        logger.addHandler(handler)

    # Child loggers inherit handlers from parent
    for name in [
        f"{logger_name}.infra",
        f"{logger_name}.modules",
    ]:
        logging.getLogger(name).setLevel(log_config.level)

    if log_config.log_file:
        logger.info(f"Logging initialized: file={log_config.log_file}, level={log_config.log_level}")

    return logger
