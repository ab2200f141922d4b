"""
Transaction signing abstractions

Provides unified signing interface for local signing with a custodial keypair.
"""

from __future__ import annotations

import logging
from typing import Tuple, Union

import base58
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message, MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ..errors import SignerError

logger = logging.getLogger(__name__)

AnyMessage = Union[Message, MessageV0]


def replace_blockhash(message: AnyMessage, blockhash: Hash) -> AnyMessage:
    """
    Copy a compiled message onto a different recent blockhash.

    Supports both v0 and legacy messages.
    """
    if isinstance(message, MessageV0):
        return MessageV0(
            message.header,
            message.account_keys,
            blockhash,
            message.instructions,
            message.address_table_lookups,
        )
    header = message.header
    return Message.new_with_compiled_instructions(
        header.num_required_signatures,
        header.num_readonly_signed_accounts,
        header.num_readonly_unsigned_accounts,
        message.account_keys,
        blockhash,
        message.instructions,
    )


def message_bytes_for_signing(message: AnyMessage) -> bytes:
    """
    Bytes covered by the signature.

    For MessageV0 this is the version prefix (0x80) followed by the message.
    """
    raw = bytes(message)
    if isinstance(message, MessageV0):
        return bytes([0x80]) + raw
    return raw


class LocalSigner:
    """
    Local signer using a Solana keypair

    Usage:
        signer = LocalSigner(wallet.keypair)
        signed_tx, sig = signer.sign_transaction(unsigned_tx_bytes, blockhash)
    """

    def __init__(self, keypair: Keypair):
        """
        Initialize with keypair

        Args:
            keypair: solders.keypair.Keypair instance
        """
        self._keypair = keypair

    @property
    def pubkey(self) -> str:
        """Public key as base58 string"""
        return str(self._keypair.pubkey())

    def sign_message(self, message: AnyMessage) -> Tuple[bytes, str]:
        """
        Sign a compiled message and place the signature in our signer slot

        Returns:
            (signed_tx_bytes, signature_base58)

        Raises:
            SignerError: Our key is not among the required signers
        """
        num_required_signatures = message.header.num_required_signatures
        account_keys = list(message.account_keys)
        our_pubkey = self._keypair.pubkey()

        signer_index = None
        for i in range(min(num_required_signatures, len(account_keys))):
            if account_keys[i] == our_pubkey:
                signer_index = i
                break

        if signer_index is None:
            raise SignerError(
                f"Wallet {our_pubkey} is not in the required signers list. "
                f"Expected signers: {[str(k) for k in account_keys[:num_required_signatures]]}"
            )

        signature = self._keypair.sign_message(message_bytes_for_signing(message))

        signatures = [Signature.default()] * num_required_signatures
        signatures[signer_index] = signature
        signed_tx = VersionedTransaction.populate(message, signatures)

        return bytes(signed_tx), str(signature)

    def sign_transaction(self, unsigned_tx: bytes, recent_blockhash: str) -> Tuple[bytes, str]:
        """
        Attach a blockhash to a serialized transaction and sign it

        Args:
            unsigned_tx: Unsigned VersionedTransaction bytes
            recent_blockhash: Blockhash (base58) to anchor the transaction to

        Returns:
            (signed_tx_bytes, signature_base58)
        """
        tx = VersionedTransaction.from_bytes(unsigned_tx)
        message = replace_blockhash(tx.message, Hash.from_string(recent_blockhash))
        return self.sign_message(message)

    @classmethod
    def from_bytes(cls, secret_key: bytes) -> "LocalSigner":
        """Create signer from secret key bytes (64 bytes)"""
        return cls(Keypair.from_bytes(secret_key))

    @classmethod
    def from_base58(cls, secret_key: str) -> "LocalSigner":
        """Create signer from base58 secret key"""
        return cls.from_bytes(base58.b58decode(secret_key))
