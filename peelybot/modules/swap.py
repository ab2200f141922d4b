"""
Swap Module

Buys and sells through the trade quoting service, followed by the
service fee transfer.

- Buy: the quote is requested for 99% of the amount, the fee is 1% of it
- Sell: the quote is requested for a percentage of the token balance, the
  fee is 1% of the SOL balance after the sale
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from ..client import TradingClient

from ..errors import BotError, InsufficientFunds
from ..infra import TxBuilder
from ..types import SignedTx, TradeAction, TradeOutcome, TxResult, Wallet, lamports_to_sol, to_decimal
from .fees import split_buy_amount

logger = logging.getLogger(__name__)


class SwapModule:
    """
    Swap operations module

    Each quoting attempt asks the service for a fresh unsigned transaction,
    which is then anchored to that attempt's blockhash and signed. The fee
    transfer only runs after the trade is confirmed (or found already
    processed); a failed fee never rolls the trade back.

    Usage:
        outcome = client.swap.buy(wallet, Decimal("0.5"), mint)
        if outcome.is_success:
            print(outcome.trade.signature)
    """

    def __init__(self, client: "TradingClient"):
        """
        Initialize swap module

        Args:
            client: TradingClient instance
        """
        self._client = client

    def _quoted_build(self, wallet: Wallet, action: TradeAction, mint: str, amount: Decimal) -> Callable[[str], SignedTx]:
        quote_api = self._client.quote_api
        builder = TxBuilder(wallet)
        request = quote_api.request(wallet.address, action, mint, amount)

        def build(blockhash: str) -> SignedTx:
            unsigned_tx = quote_api.get_trade_transaction(request)
            return builder.build_from_serialized(unsigned_tx, blockhash)

        return build

    def _settle_fee(self, wallet: Wallet, trade: TxResult, fee_sol: Decimal) -> TradeOutcome:
        try:
            split, fee = self._client.fees.settle(wallet, fee_sol)
        except BotError as e:
            logger.error(f"Fee settlement failed after trade {trade.signature}: {e}")
            return TradeOutcome(trade=trade, fee_error=e.message)

        if not (fee.is_success or fee.is_skipped):
            logger.error(f"Fee transfer failed after trade {trade.signature}: {fee.error}")
        return TradeOutcome(trade=trade, fee=fee, fee_split=split)

    def buy(self, wallet: Wallet, amount_sol, mint: str) -> TradeOutcome:
        """
        Buy a token with SOL

        Args:
            wallet: Buyer's wallet
            amount_sol: SOL to spend, including the service fee
            mint: Token mint address

        Returns:
            TradeOutcome

        Raises:
            ValueError: Amount not positive or below one lamport after the fee
            InsufficientReserve: Wallet below the rent reserve
            InsufficientFunds: Amount exceeds the balance
            ConfigurationError: Platform fee wallet not configured
        """
        amount = to_decimal(amount_sol)
        if amount <= 0:
            raise ValueError(f"Buy amount must be positive, got {amount_sol}")

        fees = self._client.fees
        quoted, fee_sol = split_buy_amount(amount, fees.fee_rate)
        if quoted <= 0:
            raise ValueError(f"Buy amount {amount:f} SOL is too small to trade")

        fees.team_wallet_address()
        balance = self._client.wallet.ensure_reserve(wallet)
        if lamports_to_sol(balance) < amount:
            raise InsufficientFunds.sol_balance(amount, lamports_to_sol(balance))

        logger.info(f"Buying {mint} for {quoted} SOL (fee {fee_sol} SOL) from {wallet.address}")

        trade = self._client.submitter.submit(
            self._quoted_build(wallet, TradeAction.BUY, mint, quoted),
            "buy",
        )
        if not trade.is_success:
            return TradeOutcome(trade=trade)
        return self._settle_fee(wallet, trade, fee_sol)

    def sell(self, wallet: Wallet, percentage, mint: str) -> TradeOutcome:
        """
        Sell a percentage of a token holding

        Args:
            wallet: Seller's wallet
            percentage: Share of the token balance to sell, in (0, 100]
            mint: Token mint address

        Returns:
            TradeOutcome

        Raises:
            InsufficientReserve: Wallet below the rent reserve
            ConfigurationError: Platform fee wallet not configured
        """
        pct = to_decimal(percentage)
        if pct <= 0 or pct > 100:
            raise ValueError(f"Sell percentage must be in (0, 100], got {percentage}")

        fees = self._client.fees
        fees.team_wallet_address()
        self._client.wallet.ensure_reserve(wallet)
        logger.info(f"Selling {pct}% of {mint} from {wallet.address}")

        trade = self._client.submitter.submit(
            self._quoted_build(wallet, TradeAction.SELL, mint, pct),
            "sell",
        )
        if not trade.is_success:
            return TradeOutcome(trade=trade)

        try:
            post_balance = self._client.wallet.sol_balance(wallet.address)
        except BotError as e:
            logger.error(f"Could not read balance after sale {trade.signature}: {e}")
            return TradeOutcome(trade=trade, fee_error="Failed to retrieve new balance after selling.")

        return self._settle_fee(wallet, trade, post_balance * fees.fee_rate)
