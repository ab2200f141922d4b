"""
Shared fixtures for unit tests.

Everything here runs offline: the RPC node is replaced by FakeRpc, keypairs
and transactions are real solders objects.
"""

import sys
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import ID as SYSTEM_PROGRAM_ID, TransferParams, transfer
from solders.transaction import VersionedTransaction

from peelybot.config import Config
from peelybot.infra import BlockhashProvider, TxSubmitter
from peelybot.stores import InMemoryReferralStore, InMemoryWalletStore
from peelybot.types import LAMPORTS_PER_SOL, BlockhashInfo, Confirmation

TEAM_WALLET = str(Keypair().pubkey())


class FakeRpc:
    """
    In-memory stand-in for RpcClient

    Attributes:
        balances: lamports per address (default_balance otherwise)
        send_errors: exceptions raised by successive send_transaction calls;
            None entries let the call succeed
        confirm_errors: on-chain error per signature
        sent: raw transactions handed to send_transaction, in order
    """

    endpoint = "https://rpc.test"

    def __init__(self, default_balance: int = 10 * LAMPORTS_PER_SOL):
        self.default_balance = default_balance
        self.balances: Dict[str, int] = {}
        self.balance_errors: List[Exception] = []
        self.send_errors: List[Optional[Exception]] = []
        self.confirm_errors: Dict[str, object] = {}
        self.token_accounts: list = []
        self.sent: List[bytes] = []
        self.blockhashes: List[str] = []

    def get_latest_blockhash(self) -> BlockhashInfo:
        blockhash = str(Hash.new_unique())
        self.blockhashes.append(blockhash)
        return BlockhashInfo(blockhash=blockhash, last_valid_block_height=len(self.blockhashes))

    def get_balance(self, address: str) -> int:
        if self.balance_errors:
            raise self.balance_errors.pop(0)
        return self.balances.get(address, self.default_balance)

    def get_token_accounts_by_owner(self, owner: str, program_id: str = None) -> list:
        return self.token_accounts

    def send_transaction(self, raw: bytes, skip_preflight: bool = True, preflight_commitment=None, max_retries=0) -> str:
        self.sent.append(raw)
        if self.send_errors:
            error = self.send_errors.pop(0)
            if error is not None:
                raise error
        return str(VersionedTransaction.from_bytes(raw).signatures[0])

    def confirm_transaction(self, signature: str, commitment=None, timeout_seconds=None) -> Confirmation:
        return Confirmation(
            signature=signature,
            err=self.confirm_errors.get(signature),
            confirmation_status="confirmed",
        )

    def close(self):
        pass


def decode_transfers(raw: bytes) -> List[tuple]:
    """(destination, lamports) for every system transfer in a serialized transaction"""
    message = VersionedTransaction.from_bytes(raw).message
    keys = list(message.account_keys)
    transfers = []
    for ix in message.instructions:
        if keys[ix.program_id_index] != SYSTEM_PROGRAM_ID:
            continue
        data = bytes(ix.data)
        lamports = int.from_bytes(data[4:12], "little")
        transfers.append((str(keys[ix.accounts[1]]), lamports))
    return transfers


def build_unsigned_swap(payer: Pubkey) -> bytes:
    """Unsigned v0 transaction with the payer as the only signer, like a quote response"""
    ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=Keypair().pubkey(), lamports=1))
    message = MessageV0.try_compile(payer, [ix], [], Hash.default())
    return bytes(VersionedTransaction.populate(message, [Signature.default()]))


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
def settings():
    """Configuration with a valid platform wallet and the standard fee constants"""
    cfg = Config()
    cfg.fees.team_wallet_address = TEAM_WALLET
    cfg.fees.fee_rate = "0.01"
    cfg.fees.referrer_share = "0.35"
    cfg.wallet.min_rent_exempt_balance = "0.00203928"
    cfg.bot.explorer_tx_url = "https://solscan.io/tx/"
    cfg.bot.referral_url = "https://t.me/PeelyOnSOLBOT?start="
    return cfg


@pytest.fixture
def submitter(fake_rpc):
    """Submission loop over FakeRpc with no backoff delay"""
    return TxSubmitter(
        fake_rpc,
        BlockhashProvider(fake_rpc, max_attempts=3, base_delay=0.0),
        max_retries=3,
        base_delay=0.0,
        skip_preflight=True,
        confirmation_timeout=1.0,
    )


@pytest.fixture
def trading_client(fake_rpc, submitter, settings):
    from unittest.mock import MagicMock

    from peelybot.client import TradingClient

    wallet_store = InMemoryWalletStore()
    return TradingClient(
        rpc=fake_rpc,
        submitter=submitter,
        wallet_store=wallet_store,
        referral_store=InMemoryReferralStore(wallet_store),
        quote_api=MagicMock(),
        metadata_api=MagicMock(),
        settings=settings,
    )


@pytest.fixture
def team_wallet():
    return TEAM_WALLET


@pytest.fixture
def sol():
    """Convert SOL to lamports"""
    return lambda amount: int(Decimal(str(amount)) * LAMPORTS_PER_SOL)


@pytest.fixture
def transfers_of():
    return decode_transfers


@pytest.fixture
def unsigned_swap():
    return build_unsigned_swap
