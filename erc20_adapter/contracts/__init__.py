"""
Contract ABIs and encoders
"""

from .erc20 import (
    ERC20_ABI,
    Erc20Contract,
    event_topic,
    address_topic,
    topic_address,
)

__all__ = [
    "ERC20_ABI",
    "Erc20Contract",
    "event_topic",
    "address_topic",
    "topic_address",
]
