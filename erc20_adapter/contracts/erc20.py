"""
ERC-20 ABI encoding and log decoding
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import decode as abi_decode, encode as abi_encode
from web3 import Web3

from ..types.events import EventKind, SubscriptionFilter

logger = logging.getLogger(__name__)


# Standard ERC20 ABI
ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"},
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "approve",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "_from", "type": "address"},
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"},
        ],
        "name": "transferFrom",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "owner", "type": "address"},
            {"indexed": True, "name": "spender", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"},
        ],
        "name": "Approval",
        "type": "event",
    },
]

_FUNCTIONS = {item["name"]: item for item in ERC20_ABI if item["type"] == "function"}
_EVENTS = {item["name"]: item for item in ERC20_ABI if item["type"] == "event"}


def _hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def _signature(item: Dict[str, Any]) -> str:
    types = ",".join(arg["type"] for arg in item["inputs"])
    return f"{item['name']}({types})"


def _selector(item: Dict[str, Any]) -> bytes:
    return bytes(Web3.keccak(text=_signature(item)))[:4]


def event_topic(kind: EventKind) -> str:
    """topic0 of an ERC-20 event"""
    return _hex(Web3.keccak(text=_signature(_EVENTS[kind.value])))


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte topic"""
    return "0x" + address.lower().replace("0x", "").rjust(64, "0")


def topic_address(topic: str) -> str:
    return Web3.to_checksum_address("0x" + topic[-40:])


class Erc20Contract:
    """
    Call encoder and log decoder bound to one token address

    Usage:
        contract = Erc20Contract("0xToken...")
        data = contract.encode_call("transfer", ["0xRecipient...", 1000])
        tx = contract.call_tx("balanceOf", ["0xHolder..."])
        balance = contract.decode_output("balanceOf", await rpc.eth_call(tx))
    """

    def __init__(self, address: str):
        self._address = Web3.to_checksum_address(address)

    @property
    def address(self) -> str:
        return self._address

    def encode_call(self, method: str, args: Sequence[Any] = ()) -> str:
        """ABI-encode a function call, returning 0x-prefixed calldata"""
        if method not in _FUNCTIONS:
            raise ValueError(f"Unknown ERC-20 method: {method}")
        item = _FUNCTIONS[method]
        types = [arg["type"] for arg in item["inputs"]]
        values = [
            Web3.to_checksum_address(value) if kind == "address" else value
            for kind, value in zip(types, args)
        ]
        return _hex(_selector(item) + abi_encode(types, values))

    def decode_output(self, method: str, data: str) -> Any:
        """Decode the single return value of ``method``"""
        item = _FUNCTIONS[method]
        types = [arg["type"] for arg in item["outputs"]]
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        decoded = abi_decode(types, raw)
        return decoded[0] if len(decoded) == 1 else decoded

    def call_tx(self, method: str, args: Sequence[Any] = (), from_address: Optional[str] = None) -> Dict[str, str]:
        """Transaction object for eth_call / eth_estimateGas"""
        tx = {"to": self._address, "data": self.encode_call(method, args)}
        if from_address:
            tx["from"] = from_address
        return tx

    def topics_for(self, kind: EventKind, flt: SubscriptionFilter) -> List[Optional[str]]:
        """
        Topic filter for eth_getLogs

        Wildcard fields become None (matches any value in that position).
        """
        topics: List[Optional[str]] = [event_topic(kind)]
        for field in kind.filter_fields:
            value = flt.get(field)
            topics.append(address_topic(value) if value else None)
        return topics

    def decode_log(self, kind: EventKind, log: Dict[str, Any]) -> Dict[str, Any]:
        """
        Decode a raw log into the push-channel payload shape

        Returns:
            {<field0>, <field1>, "value", "blockNumber", "transactionHash"}
        """
        topics = log.get("topics") or []
        if len(topics) < 3 or topics[0].lower() != event_topic(kind).lower():
            raise ValueError(f"Log is not a {kind.value} event")

        first, second = kind.filter_fields
        data = log.get("data") or "0x"
        (value,) = abi_decode(["uint256"], bytes.fromhex(data[2:]))
        block_number = log.get("blockNumber")
        if isinstance(block_number, str):
            block_number = int(block_number, 16)

        return {
            first: topic_address(topics[1]),
            second: topic_address(topics[2]),
            "value": value,
            "blockNumber": block_number,
            "transactionHash": log.get("transactionHash"),
        }
