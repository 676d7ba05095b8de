"""
Test Configuration Module

Tests for erc20_adapter.config (env loading, validation, logging setup).
"""

import sys
import os
import logging
import tempfile
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


class EnvPatch:
    """Temporarily set (or unset, with None) environment variables"""

    def __init__(self, **values):
        self._values = values
        self._saved = {}

    def __enter__(self):
        for key, value in self._values.items():
            self._saved[key] = os.environ.get(key)
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for key, value in self._saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


def test_retry_policy():
    """Test RetryPolicy defaults, delays and validation"""
    from erc20_adapter.config import RetryPolicy
    from erc20_adapter.errors import ConfigurationError

    print("Testing RetryPolicy...")

    policy = RetryPolicy()
    assert policy.base_delay == 0.3
    assert policy.max_delay == 3.0
    assert policy.max_attempts == 5
    assert [policy.delay_for(n) for n in range(1, 6)] == [0.3, 0.6, 1.2, 2.4, 3.0]

    for kwargs in [{"max_attempts": 0}, {"base_delay": -1.0}, {"kind": "linear"}]:
        try:
            RetryPolicy(**kwargs)
            assert False, f"Should reject {kwargs}"
        except ConfigurationError:
            pass

    print("  RetryPolicy: PASSED")


def test_config_from_env():
    """Test environment-driven defaults"""
    from erc20_adapter.config import Config

    print("Testing Config from environment...")

    with EnvPatch(
        ERC20_RPC_URL="https://rpc.example.com",
        ERC20_WS_URL="wss://events.example.com",
        ERC20_CHAIN_ID="56",
        ERC20_RETRY_MAX_ATTEMPTS="7",
        ERC20_TIMEOUT_SECONDS="not-a-number",
    ):
        config = Config()

    assert config.rpc.url == "https://rpc.example.com"
    assert config.socket.url == "wss://events.example.com"
    assert config.rpc.chain_id == 56
    assert config.rpc.retry.max_attempts == 7
    # Invalid values fall back to the default
    assert config.rpc.timeout_seconds == 12.0
    assert config.socket.max_reconnect_attempts == 5
    assert config.socket.reconnect_max_delay == 30.0
    assert config.validate() is config

    print("  Config from environment: PASSED")


def test_config_validation():
    """Test missing and invalid settings"""
    from erc20_adapter.config import Config
    from erc20_adapter.errors import ConfigurationError, ErrorCode

    print("Testing Config validation...")

    try:
        Config.create(rpc_url="", ws_url="wss://x", chain_id=1).validate()
        assert False, "Should reject missing RPC URL"
    except ConfigurationError as e:
        assert e.code == ErrorCode.CONFIG_MISSING

    try:
        Config.create(rpc_url="https://x", ws_url="wss://x", chain_id=0).validate()
        assert False, "Should reject missing chain id"
    except ConfigurationError:
        pass

    config = Config.create(rpc_url="https://x", ws_url="wss://x", chain_id=1)
    config.tx.fee_bump_multiplier = 1.0
    try:
        config.validate()
        assert False, "Should reject a non-increasing bump"
    except ConfigurationError:
        pass

    print("  Config validation: PASSED")


def test_config_create():
    """Test explicit construction"""
    from erc20_adapter.config import Config, RetryPolicy

    print("Testing Config.create...")

    config = Config.create(
        rpc_url="https://rpc.example.com",
        ws_url="wss://events.example.com",
        chain_id=1,
        timeout_seconds=5.0,
        retry=RetryPolicy(max_attempts=2),
    )
    assert config.rpc.chain_id == 1
    assert config.rpc.timeout_seconds == 5.0
    assert config.rpc.retry.max_attempts == 2
    assert config.tx.max_fee_floor == 20 * 10 ** 9
    assert config.tx.priority_fee_floor == 10 ** 9
    assert config.tx.gas_limit_buffer_percent == 120

    print("  Config.create: PASSED")


def test_setup_logging():
    """Test file and console handlers"""
    from erc20_adapter.config import LoggingConfig, setup_logging

    print("Testing setup_logging...")

    with tempfile.TemporaryDirectory() as temp_dir:
        log_file = os.path.join(temp_dir, "nested", "adapter.log")
        log_config = LoggingConfig(
            log_file=log_file,
            log_level="debug",
            console_output=False,
        )

        logger = setup_logging(log_config, logger_name="erc20_adapter_test")
        logger.debug("hello")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert Path(log_file).exists()
        assert "hello" in Path(log_file).read_text(encoding="utf-8")

        # Reconfiguring replaces handlers instead of stacking them
        logger = setup_logging(log_config, logger_name="erc20_adapter_test")
        assert len(logger.handlers) == 1

        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    print("  setup_logging: PASSED")


def main():
    """Run all config tests"""
    print("=" * 60)
    print("Config Tests")
    print("=" * 60)

    tests = [
        test_retry_policy,
        test_config_from_env,
        test_config_validation,
        test_config_create,
        test_setup_logging,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
