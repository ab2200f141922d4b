"""
Chat command handlers

Every handler returns the text to send back to the user. Structured errors
never cross this boundary.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from .client import TradingClient
from .errors import (
    BotError,
    ConfigurationError,
    ErrorCode,
    InsufficientFunds,
    InsufficientReserve,
    OperationInProgress,
    ReferralAlreadySet,
    WalletNotFound,
)
from .infra import CorrelationContext, is_valid_address
from .session import SessionRegistry
from .types import TradeOutcome, TxResult

logger = logging.getLogger(__name__)

AWAITING_CONTRACT_ADDRESS = "awaiting_contract_address"
AWAITING_SOL_AMOUNT = "awaiting_sol_amount"

BUY_AMOUNTS = (Decimal("0.05"), Decimal("0.1"), Decimal("0.5"), Decimal("1"), Decimal("2"))
SELL_PERCENTAGES = (25, 50, 75, 100)

HELP_MESSAGE = """
Available Commands:
/start - Start the bot and generate your wallet
/deposit - Get your deposit address
/withdraw <amount_in_SOL> <destination_address> - Withdraw SOL to another wallet
/help - Display this help message
/export_private_key - Export your wallet's private key
/refer_friends - Get your referral link to earn rewards
"""

WITHDRAW_USAGE = "Invalid command format. Use /withdraw <amount_in_SOL> <destination_address>."


def _parse_decimal(value) -> Optional[Decimal]:
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


class CommandHandlers:
    """
    Text front end over TradingClient

    Withdraw, buy and sell run under the user's exclusive operation slot and
    a correlation id, so concurrent commands from one user are rejected and
    log lines of one command can be grouped.

    Usage:
        handlers = CommandHandlers(TradingClient())
        reply = handlers.handle_withdraw("12345", "0.5", destination)
    """

    def __init__(self, client: TradingClient, sessions: Optional[SessionRegistry] = None):
        self._client = client
        self._sessions = sessions or SessionRegistry(client.config.bot.session_ttl_seconds)
        self._explorer_url = client.config.bot.explorer_tx_url

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    def _explorer_link(self, signature: Optional[str]) -> str:
        return f"{self._explorer_url}{signature}"

    def _describe_result(self, result: TxResult, noun: str) -> str:
        if result.is_duplicate:
            return f"{noun} already processed: {self._explorer_link(result.signature)}"
        if result.is_success:
            return f"{noun} successful: {self._explorer_link(result.signature)}"
        if result.is_exhausted:
            return f"{noun} failed after multiple attempts due to node lag."
        if result.error_code == ErrorCode.QUOTE_REJECTED.value:
            return result.error
        return f"{noun} failed: {result.error}."

    def _describe_outcome(self, outcome: TradeOutcome) -> str:
        message = self._describe_result(outcome.trade, "Transaction")
        if outcome.is_partial:
            reason = outcome.fee_error or (outcome.fee.error if outcome.fee else None)
            logger.error(f"Trade {outcome.trade.signature} confirmed but fee not settled: {reason}")
            message += f"\nNote: the service fee could not be collected ({reason})."
        return message

    # ------------------------------------------------------------------
    # Money-moving commands
    # ------------------------------------------------------------------

    def handle_withdraw(self, user_id: str, amount_in_sol, destination_address: str) -> str:
        """Withdraw SOL to an external address"""
        amount = _parse_decimal(amount_in_sol)
        if amount is None or amount <= 0 or not destination_address:
            return "Invalid amount or address. Please check your input."

        with CorrelationContext("withdraw"):
            try:
                with self._sessions.operation(user_id, "withdraw"):
                    wallet = self._client.wallet.load_wallet(user_id)
                    result = self._client.wallet.withdraw(wallet, amount, destination_address)
            except OperationInProgress as e:
                return e.message
            except WalletNotFound as e:
                return e.message
            except InsufficientReserve as e:
                return e.message
            except InsufficientFunds:
                return "Insufficient balance for withdrawal."
            except BotError as e:
                logger.error(f"Withdrawal for user {user_id} failed: {e}")
                return f"Withdrawal failed: {e.message}."

        return self._describe_result(result, "Withdrawal")

    def handle_withdraw_command(self, user_id: str, args: str) -> str:
        """Parse '/withdraw <amount_in_SOL> <destination_address>' arguments"""
        params = (args or "").split()
        if len(params) != 2:
            return WITHDRAW_USAGE
        return self.handle_withdraw(user_id, params[0], params[1])

    def _run_trade(self, user_id: str, operation: str, run) -> str:
        with CorrelationContext(operation):
            try:
                with self._sessions.operation(user_id, operation):
                    wallet = self._client.wallet.load_wallet(user_id)
                    outcome = run(wallet)
            except OperationInProgress as e:
                return e.message
            except WalletNotFound as e:
                return e.message
            except InsufficientReserve as e:
                return (
                    f"Transaction failed: Your balance ({e.balance_sol} SOL) is too low to cover rent. "
                    "Please deposit more SOL."
                )
            except InsufficientFunds:
                return "Transaction failed: Insufficient balance."
            except ConfigurationError as e:
                logger.error(f"{operation} unavailable: {e}")
                return "Trading is temporarily unavailable."
            except (BotError, ValueError) as e:
                logger.error(f"{operation} for user {user_id} failed: {e}")
                message = e.message if isinstance(e, BotError) else str(e)
                return f"Transaction failed: {message}."

        return self._describe_outcome(outcome)

    def handle_buy_transaction(self, user_id: str, amount, token_mint: str) -> str:
        """Buy a token for an amount of SOL (fee included)"""
        sol = _parse_decimal(amount)
        if sol is None or sol <= 0:
            return "Invalid amount. Please check your input."
        return self._run_trade(user_id, "buy", lambda wallet: self._client.swap.buy(wallet, sol, token_mint))

    def handle_sell_transaction(self, user_id: str, percentage, token_mint: str) -> str:
        """Sell a percentage of a token holding"""
        pct = _parse_decimal(percentage)
        if pct is None or pct <= 0 or pct > 100:
            return "Invalid percentage. Choose a value between 1 and 100."
        return self._run_trade(user_id, "sell", lambda wallet: self._client.swap.sell(wallet, pct, token_mint))

    # ------------------------------------------------------------------
    # Account commands
    # ------------------------------------------------------------------

    def handle_start(self, user_id: str, referral_code: Optional[str] = None) -> str:
        """Create the wallet on first contact and attribute the referral, if any"""
        is_new = self._client.wallet.get_wallet(user_id) is None
        wallet = self._client.wallet.load_or_create_wallet(user_id)

        if is_new and referral_code:
            try:
                self._client.referral.register_referral(user_id, referral_code)
            except ReferralAlreadySet as e:
                logger.info(f"Referral for user {user_id} ignored: {e}")

        try:
            balance = self._client.wallet.user_balance(user_id)
        except BotError as e:
            logger.warning(f"Balance unavailable for {wallet.address}: {e}")
            balance = Decimal(0)

        link = self._client.referral.referral_link(user_id)
        return (
            "Welcome to PeelyBOT!\n\n"
            f"You currently have a balance of {balance:.4f} SOL.\n\n"
            "To get started trading, you can open a position by buying a token.\n\n"
            "To buy a token just enter a ticker and you will see a Buy dashboard pop up "
            "where you can choose how much you want to buy.\n\n"
            f"Your referral link: {link}\n\n"
            f"Wallet: {wallet.address}"
        )

    def handle_help(self) -> str:
        return HELP_MESSAGE

    def handle_deposit(self, user_id: str) -> str:
        return f"Deposit SOL to this address:\n{self._client.wallet.deposit_address(user_id)}"

    def handle_export_private_key(self, user_id: str) -> str:
        private_key = self._client.wallet.export_private_key(user_id)
        if not private_key:
            return "No wallet found."
        return f"Your private key is: {private_key}"

    def handle_referral_link(self, user_id: str) -> str:
        link = self._client.referral.referral_link(user_id)
        if not link:
            return "No referral ID found."
        return f"Share your referral link: {link}"

    def handle_balances(self, user_id: str) -> str:
        """List the user's token holdings"""
        try:
            wallet = self._client.wallet.load_wallet(user_id)
            holdings = self._client.wallet.token_balances(wallet)
        except WalletNotFound as e:
            return e.message
        except BotError as e:
            logger.error(f"Token balances for user {user_id} failed: {e}")
            return "Failed to fetch token balances."

        if not holdings:
            return "No tokens available to sell."
        return "\n".join(str(holding) for holding in holdings)

    # ------------------------------------------------------------------
    # Buy prompt flow
    # ------------------------------------------------------------------

    def buy_amount_options(self) -> List[Decimal]:
        return list(BUY_AMOUNTS)

    def sell_percentage_options(self) -> List[int]:
        return list(SELL_PERCENTAGES)

    def begin_buy(self, user_id: str) -> str:
        self._sessions.set_stage(user_id, AWAITING_CONTRACT_ADDRESS)
        return "Please send the contract address of the token you want to buy."

    def handle_text(self, user_id: str, text: str) -> Optional[str]:
        """
        Free text from the user, interpreted by the current prompt stage

        Returns:
            Reply text, or None when no prompt is pending
        """
        session = self._sessions.get(user_id)
        if session is None or session.stage != AWAITING_CONTRACT_ADDRESS:
            return None

        mint = (text or "").strip()
        if not is_valid_address(mint):
            return "That does not look like a token contract address. Please try again."

        self._sessions.set_stage(user_id, AWAITING_SOL_AMOUNT, mint=mint)
        options = ", ".join(f"{amount} SOL" for amount in BUY_AMOUNTS)
        return f"How much SOL do you want to spend? ({options})"

    def handle_buy_amount(self, user_id: str, amount) -> str:
        """Complete the buy prompt with the chosen amount"""
        session = self._sessions.get(user_id)
        if session is None or session.stage != AWAITING_SOL_AMOUNT:
            return "Start a purchase first by choosing Buy."
        return self.handle_buy_transaction(user_id, amount, session.data["mint"])
