"""
Transaction builder

Provides utilities for:
- Building native SOL transfer transactions
- Re-anchoring and signing pre-built swap transactions
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from .signer import LocalSigner
from ..errors import MalformedUpstreamResponse, SignerError, TransactionError
from ..types import SignedTx, Wallet

logger = logging.getLogger(__name__)


def parse_address(address: str) -> Pubkey:
    """
    Parse a base58 address

    Raises:
        TransactionError: The address is not a valid public key
    """
    try:
        return Pubkey.from_string(address)
    except (ValueError, TypeError):
        raise TransactionError.invalid_destination(address)


def is_valid_address(address: str) -> bool:
    """Check whether a string is a valid base58 public key"""
    try:
        parse_address(address)
    except TransactionError:
        return False
    return True


def create_transfer_instructions(
    source: Pubkey,
    transfers: Sequence[Tuple[str, int]],
) -> List[Instruction]:
    """
    One system transfer instruction per (destination, lamports) pair

    Args:
        source: Paying account
        transfers: Destination addresses with integer lamport amounts

    Returns:
        solders Instructions, in the given order
    """
    instructions = []
    for destination, lamports in transfers:
        if not isinstance(lamports, int) or lamports < 0:
            raise TransactionError(f"Transfer amount must be a non-negative integer of lamports, got {lamports!r}")
        instructions.append(
            transfer(
                TransferParams(
                    from_pubkey=source,
                    to_pubkey=parse_address(destination),
                    lamports=lamports,
                )
            )
        )
    return instructions


class TxBuilder:
    """
    Builds signed transactions for one custodial wallet

    Every call takes the blockhash explicitly: a transaction is rebuilt
    for each submission attempt and never reused across a blockhash refresh.

    Usage:
        builder = TxBuilder(wallet)

        # Native transfer
        signed = builder.build_transfer([(destination, lamports)], blockhash)

        # Swap transaction from the quoting service
        signed = builder.build_from_serialized(unsigned_tx_bytes, blockhash)
    """

    def __init__(self, wallet: Wallet):
        self._wallet = wallet
        self._signer = LocalSigner(wallet.keypair)

    @property
    def pubkey(self) -> str:
        """Signer's public key"""
        return self._signer.pubkey

    def build_transfer(
        self,
        transfers: Sequence[Tuple[str, int]],
        recent_blockhash: str,
    ) -> SignedTx:
        """
        Build and sign a transfer transaction from the wallet

        Args:
            transfers: (destination, lamports) pairs batched into one transaction
            recent_blockhash: Blockhash to anchor the transaction to

        Returns:
            SignedTx
        """
        if not transfers:
            raise TransactionError("A transfer transaction needs at least one instruction")

        payer = self._wallet.keypair.pubkey()
        instructions = create_transfer_instructions(payer, transfers)
        message = MessageV0.try_compile(
            payer,
            instructions,
            [],  # Address lookup tables
            Hash.from_string(recent_blockhash),
        )
        raw, signature = self._signer.sign_message(message)
        logger.debug(f"Built transfer {signature[:16]}... with {len(instructions)} instruction(s)")
        return SignedTx(blockhash=recent_blockhash, raw=raw, signature=signature)

    def build_from_serialized(
        self,
        unsigned_tx: bytes,
        recent_blockhash: str,
    ) -> SignedTx:
        """
        Decode an unsigned transaction, attach the blockhash and sign it

        Args:
            unsigned_tx: Serialized VersionedTransaction from the quoting service
            recent_blockhash: Blockhash to anchor the transaction to

        Raises:
            MalformedUpstreamResponse: The bytes are not a transaction
        """
        try:
            raw, signature = self._signer.sign_transaction(unsigned_tx, recent_blockhash)
        except SignerError:
            raise
        except Exception as e:
            raise MalformedUpstreamResponse("trade quoting service", f"undecodable transaction: {e}", e)
        return SignedTx(blockhash=recent_blockhash, raw=raw, signature=signature)
