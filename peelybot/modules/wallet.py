"""
Wallet Module

Custodial wallet lifecycle, balances, the rent reserve guard and withdrawals.
"""

import logging
import uuid
from decimal import Decimal
from typing import List, Optional, TYPE_CHECKING

import base58
from solders.keypair import Keypair

from ..errors import (
    InsufficientFunds,
    InsufficientReserve,
    MalformedUpstreamResponse,
    TransactionError,
    WalletNotFound,
)
from ..infra import TxBuilder, parse_address
from ..types import (
    TokenHolding,
    TxResult,
    Wallet,
    WalletRecord,
    lamports_to_sol,
    sol_to_lamports,
    to_decimal,
)

if TYPE_CHECKING:
    from ..client import TradingClient

logger = logging.getLogger(__name__)


def wallet_from_record(record: WalletRecord) -> Wallet:
    """Rebuild the keypair held in a stored record"""
    keypair = Keypair.from_bytes(base58.b58decode(record.secret_key))
    return Wallet(user_id=record.user_id, keypair=keypair)


def _parse_token_account(entry) -> Optional[dict]:
    """
    Extract mint and amounts from a jsonParsed token account entry

    Raises:
        MalformedUpstreamResponse: The entry does not have the parsed layout
    """
    try:
        info = entry["account"]["data"]["parsed"]["info"]
        token_amount = info["tokenAmount"]
        mint = info["mint"]
        ui_amount = token_amount.get("uiAmount")
        ui_amount_string = token_amount.get("uiAmountString", str(ui_amount))
    except (KeyError, TypeError) as e:
        raise MalformedUpstreamResponse("getTokenAccountsByOwner", f"unexpected token account layout: {e}", e)

    if not isinstance(mint, str):
        raise MalformedUpstreamResponse("getTokenAccountsByOwner", "mint is not a string")
    return {
        "mint": mint,
        "ui_amount": to_decimal(ui_amount) if ui_amount is not None else Decimal(0),
        "ui_amount_string": ui_amount_string,
    }


class WalletModule:
    """
    Custodial wallet operations module

    Provides:
    - Wallet creation, lookup and private key export
    - SOL and SPL token balances
    - Rent reserve guard
    - SOL withdrawals

    Usage:
        client = TradingClient(rpc_url)

        wallet = client.wallet.load_or_create_wallet("12345")
        sol = client.wallet.sol_balance(wallet.address)
        result = client.wallet.withdraw(wallet, Decimal("0.5"), destination)
    """

    def __init__(self, client: "TradingClient"):
        """
        Initialize wallet module

        Args:
            client: TradingClient instance
        """
        self._client = client
        self._rpc = client.rpc
        self._store = client.wallet_store

    @property
    def reserve_lamports(self) -> int:
        """Rent-exempt minimum in lamports"""
        return sol_to_lamports(self._client.config.wallet.min_rent_exempt_balance)

    def get_wallet(self, user_id: str) -> Optional[Wallet]:
        """Wallet for a user, or None"""
        record = self._store.load(user_id)
        if record is None or not record.secret_key:
            return None
        return wallet_from_record(record)

    def load_wallet(self, user_id: str) -> Wallet:
        """
        Wallet for a user

        Raises:
            WalletNotFound: The user has no wallet yet
        """
        wallet = self.get_wallet(user_id)
        if wallet is None:
            raise WalletNotFound(user_id)
        return wallet

    def load_or_create_wallet(self, user_id: str) -> Wallet:
        """
        Load the user's wallet, generating and storing a new one on first use

        Secret key material is never replaced once created.
        """
        wallet = self.get_wallet(user_id)
        if wallet is not None:
            return wallet

        keypair = Keypair()
        record = WalletRecord(
            user_id=user_id,
            public_key=str(keypair.pubkey()),
            secret_key=base58.b58encode(bytes(keypair)).decode("ascii"),
            referral_id=str(uuid.uuid4()),
        )
        self._store.upsert(user_id, record)
        logger.info(f"Created wallet {record.public_key} for user {user_id}")
        return Wallet(user_id=user_id, keypair=keypair)

    def export_private_key(self, user_id: str) -> Optional[str]:
        """Base58 secret key, or None if the user has no wallet"""
        record = self._store.load(user_id)
        return record.secret_key if record else None

    def deposit_address(self, user_id: str) -> str:
        """Address the user deposits SOL to"""
        return self.load_or_create_wallet(user_id).address

    def balance_lamports(self, address: str) -> int:
        """SOL balance in lamports"""
        return self._rpc.get_balance(address)

    def sol_balance(self, address: str) -> Decimal:
        """SOL balance"""
        return lamports_to_sol(self.balance_lamports(address))

    def user_balance(self, user_id: str) -> Decimal:
        """SOL balance of the user's wallet, 0 when there is none"""
        wallet = self.get_wallet(user_id)
        if wallet is None:
            return Decimal(0)
        return self.sol_balance(wallet.address)

    def ensure_reserve(self, wallet: Wallet) -> int:
        """
        Check the wallet holds at least the rent-exempt reserve

        Returns:
            Current balance in lamports

        Raises:
            InsufficientReserve: Balance below the reserve
        """
        balance = self.balance_lamports(wallet.address)
        reserve = self.reserve_lamports
        if balance < reserve:
            logger.warning(
                f"Wallet {wallet.address} below rent reserve: {balance} < {reserve} lamports"
            )
            raise InsufficientReserve(balance, reserve)
        return balance

    def token_balances(self, wallet: Wallet) -> List[TokenHolding]:
        """
        Positive SPL token balances, with symbols from the metadata service

        Tokens whose metadata cannot be resolved are listed as "Unknown".
        """
        holdings = []
        for entry in self._rpc.get_token_accounts_by_owner(wallet.address):
            parsed = _parse_token_account(entry)
            if parsed["ui_amount"] <= 0:
                continue

            symbol = "Unknown"
            try:
                metadata = self._client.metadata.get_asset(parsed["mint"])
                symbol = metadata.symbol or "Unknown"
            except MalformedUpstreamResponse as e:
                logger.warning(f"No metadata for {parsed['mint']}: {e}")

            holdings.append(
                TokenHolding(
                    mint=parsed["mint"],
                    symbol=symbol,
                    balance=parsed["ui_amount"],
                    ui_amount_string=parsed["ui_amount_string"],
                )
            )
        return holdings

    def withdraw(self, wallet: Wallet, amount_sol, destination: str) -> TxResult:
        """
        Transfer SOL out of the custodial wallet

        Guards run before any transaction is built: destination format,
        rent reserve, then available balance.

        Args:
            wallet: Source wallet
            amount_sol: Amount in SOL (floored to whole lamports)
            destination: Destination address

        Returns:
            TxResult from the submission loop

        Raises:
            TransactionError: Invalid destination or non-positive amount
            InsufficientReserve: Wallet below the rent reserve
            InsufficientFunds: Amount exceeds the balance
        """
        parse_address(destination)
        amount = to_decimal(amount_sol)
        lamports = sol_to_lamports(amount)
        if lamports <= 0:
            raise TransactionError(f"Withdrawal amount must be positive, got {amount_sol}")

        balance = self.ensure_reserve(wallet)
        if balance < lamports:
            raise InsufficientFunds.sol_balance(amount, lamports_to_sol(balance))

        builder = TxBuilder(wallet)
        logger.info(f"Withdrawing {lamports} lamports from {wallet.address} to {destination}")
        return self._client.submitter.submit(
            lambda blockhash: builder.build_transfer([(destination, lamports)], blockhash),
            "withdraw",
        )
