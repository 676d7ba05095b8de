"""
EVM Transaction Signer using eth-account

Provides local signing for EIP-1559 transactions.
Only supports local key material (private key, mnemonic, keystore).
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Dict, Any, Tuple

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from ..errors import SignerError

logger = logging.getLogger(__name__)

Account.enable_unaudited_hdwallet_features()

# Mnemonic word count by entropy strength in bits
MNEMONIC_WORDS = {128: 12, 160: 15, 192: 18, 224: 21, 256: 24}


class EVMSigner:
    """
    Local EVM signer using eth-account

    A signer must be bound to a chain with ``connect(chain_id)`` before it
    can sign transactions.

    Usage:
        # From private key
        signer = EVMSigner.from_private_key("0x...")

        # From mnemonic
        signer = EVMSigner.from_mnemonic("test test test ...")

        # Bind and sign
        bound = signer.connect(chain_id=1)
        raw_tx, tx_hash = bound.sign_transaction(tx_dict)
    """

    def __init__(
        self,
        account: LocalAccount,
        mnemonic: Optional[str] = None,
        chain_id: Optional[int] = None,
    ):
        """
        Initialize with eth_account LocalAccount

        Args:
            account: LocalAccount from eth_account
            mnemonic: Phrase the account was derived from, if any
            chain_id: Chain the signer is bound to
        """
        self._account = account
        self._mnemonic = mnemonic
        self._chain_id = chain_id

    @property
    def address(self) -> str:
        """Get wallet address (checksummed)"""
        return self._account.address

    @property
    def mnemonic(self) -> Optional[str]:
        return self._mnemonic

    @property
    def chain_id(self) -> Optional[int]:
        return self._chain_id

    @property
    def is_connected(self) -> bool:
        return self._chain_id is not None

    def connect(self, chain_id: int) -> "EVMSigner":
        """Return a copy of this signer bound to ``chain_id``"""
        return EVMSigner(self._account, mnemonic=self._mnemonic, chain_id=chain_id)

    def sign_transaction(self, tx_dict: Dict[str, Any]) -> Tuple[bytes, str]:
        """
        Sign a transaction

        Args:
            tx_dict: EIP-1559 transaction dictionary (to, data, nonce, gas,
                maxFeePerGas, maxPriorityFeePerGas, value)

        Returns:
            (raw_tx_bytes, tx_hash_hex)

        Raises:
            SignerError: Signer not bound, or eth-account rejected the tx
        """
        if self._chain_id is None:
            raise SignerError.not_connected()

        tx = dict(tx_dict)
        tx["chainId"] = self._chain_id
        try:
            signed = self._account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise SignerError.failed(str(e)) from e

        tx_hash = signed.hash.hex()
        if not tx_hash.startswith("0x"):
            tx_hash = "0x" + tx_hash
        return bytes(signed.raw_transaction), tx_hash

    def sign_message(self, message: bytes) -> bytes:
        """
        Sign a raw message (EIP-191)

        Args:
            message: Message bytes to sign

        Returns:
            Signature bytes
        """
        signable = encode_defunct(message)
        signed = self._account.sign_message(signable)
        return signed.signature

    @classmethod
    def from_private_key(cls, private_key: str) -> "EVMSigner":
        """
        Create signer from private key

        Args:
            private_key: Hex-encoded private key (with or without 0x prefix)
        """
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key

        account = Account.from_key(private_key)
        return cls(account)

    @classmethod
    def from_mnemonic(cls, mnemonic: str, passphrase: str = "") -> "EVMSigner":
        """Create signer from a BIP-39 phrase (first account, m/44'/60'/0'/0/0)"""
        account = Account.from_mnemonic(mnemonic, passphrase=passphrase)
        return cls(account, mnemonic=mnemonic)

    @classmethod
    def create(cls, strength: int = 128) -> "EVMSigner":
        """
        Create a new random wallet

        Args:
            strength: Entropy bits (128, 160, 192, 224 or 256)
        """
        if strength not in MNEMONIC_WORDS:
            raise ValueError(f"Unsupported mnemonic strength: {strength}")
        account, mnemonic = Account.create_with_mnemonic(num_words=MNEMONIC_WORDS[strength])
        return cls(account, mnemonic=mnemonic)

    @classmethod
    def from_env(cls, env_var: str = "EVM_PRIVATE_KEY") -> "EVMSigner":
        """
        Create signer from environment variable

        Raises:
            SignerError: If environment variable is not set
        """
        private_key = os.getenv(env_var, "")
        if not private_key:
            raise SignerError.not_configured()

        return cls.from_private_key(private_key)

    @classmethod
    def from_keystore(
        cls,
        keystore_path: str,
        password: str,
    ) -> "EVMSigner":
        """
        Create signer from encrypted keystore file

        Args:
            keystore_path: Path to keystore JSON file
            password: Password to decrypt keystore
        """
        with open(keystore_path, "r") as f:
            keystore = f.read()

        private_key = Account.decrypt(keystore, password)
        account = Account.from_key(private_key)
        return cls(account)

    def __repr__(self) -> str:
        return f"EVMSigner(address={self.address}, chain_id={self._chain_id})"


def create_evm_signer(
    private_key: Optional[str] = None,
    mnemonic: Optional[str] = None,
    keystore_path: Optional[str] = None,
    keystore_password: Optional[str] = None,
) -> EVMSigner:
    """
    Create EVM signer based on configuration

    Priority:
    1. private_key
    2. mnemonic
    3. keystore_path + keystore_password
    4. EVM_PRIVATE_KEY environment variable

    Raises:
        SignerError: If no valid signer configuration found
    """
    if private_key is not None:
        return EVMSigner.from_private_key(private_key)

    if mnemonic is not None:
        return EVMSigner.from_mnemonic(mnemonic)

    if keystore_path is not None and keystore_password is not None:
        return EVMSigner.from_keystore(keystore_path, keystore_password)

    env_key = os.getenv("EVM_PRIVATE_KEY", "")
    if env_key:
        return EVMSigner.from_private_key(env_key)

    raise SignerError.not_configured()
