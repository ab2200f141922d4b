"""
Command handler tests

Handlers always answer with text; these tests pin the user-facing messages.
"""

import threading
from decimal import Decimal

import pytest
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from peelybot.errors import QuotingServiceRejection, RpcError, RpcErrorKind
from peelybot.handlers import CommandHandlers, HELP_MESSAGE
from peelybot.session import SessionRegistry
from peelybot.types import Confirmation

MINT = "So11111111111111111111111111111111111111112"


@pytest.fixture
def handlers(trading_client):
    return CommandHandlers(trading_client, SessionRegistry(ttl_seconds=600))


@pytest.fixture
def user(trading_client, unsigned_swap):
    wallet = trading_client.wallet.load_or_create_wallet("7")
    trading_client.quote_api.get_trade_transaction.side_effect = (
        lambda request: unsigned_swap(wallet.keypair.pubkey())
    )
    return wallet


class TestWithdrawHandler:

    def test_success_message(self, handlers, user, fake_rpc):
        reply = handlers.handle_withdraw("7", "0.25", str(Keypair().pubkey()))

        assert reply.startswith("Withdrawal successful: https://solscan.io/tx/")
        signature = VersionedTransaction.from_bytes(fake_rpc.sent[0]).signatures[0]
        assert reply == f"Withdrawal successful: https://solscan.io/tx/{signature}"

    def test_no_wallet(self, handlers):
        reply = handlers.handle_withdraw("nobody", "0.25", str(Keypair().pubkey()))
        assert reply == "No wallet found. Please start by generating a wallet."

    def test_below_reserve(self, handlers, user, fake_rpc, sol):
        fake_rpc.balances[user.address] = sol("0.001")

        reply = handlers.handle_withdraw("7", "0.0005", str(Keypair().pubkey()))

        assert reply == "Account does not have enough SOL to cover rent exemption."
        assert fake_rpc.sent == []

    def test_insufficient_balance(self, handlers, user, fake_rpc, sol):
        fake_rpc.balances[user.address] = sol("0.5")

        reply = handlers.handle_withdraw("7", "2", str(Keypair().pubkey()))

        assert reply == "Insufficient balance for withdrawal."

    def test_exhausted(self, handlers, user, fake_rpc):
        fake_rpc.send_errors = [RpcError.rate_limited("https://rpc.test")] * 4

        reply = handlers.handle_withdraw("7", "0.25", str(Keypair().pubkey()))

        assert reply == "Withdrawal failed after multiple attempts due to node lag."
        assert len(fake_rpc.sent) == 4

    def test_already_processed(self, handlers, user, fake_rpc):
        fake_rpc.send_errors = [RpcError("already been processed", RpcErrorKind.ALREADY_PROCESSED)]

        reply = handlers.handle_withdraw("7", "0.25", str(Keypair().pubkey()))

        assert reply.startswith("Withdrawal already processed: https://solscan.io/tx/")

    def test_invalid_destination(self, handlers, user):
        reply = handlers.handle_withdraw("7", "0.25", "nope")
        assert reply == "Withdrawal failed: Invalid destination address: nope."

    def test_invalid_amount(self, handlers, user):
        assert handlers.handle_withdraw("7", "abc", str(Keypair().pubkey())) == (
            "Invalid amount or address. Please check your input."
        )

    def test_command_parsing(self, handlers, user):
        assert handlers.handle_withdraw_command("7", "0.25") == (
            "Invalid command format. Use /withdraw <amount_in_SOL> <destination_address>."
        )
        reply = handlers.handle_withdraw_command("7", f"0.25 {Keypair().pubkey()}")
        assert reply.startswith("Withdrawal successful:")


class TestTradeHandlers:

    def test_buy_success(self, handlers, user):
        reply = handlers.handle_buy_transaction("7", Decimal("0.5"), MINT)
        assert reply.startswith("Transaction successful: https://solscan.io/tx/")

    def test_buy_quote_rejected(self, handlers, user, trading_client):
        trading_client.quote_api.get_trade_transaction.side_effect = QuotingServiceRejection(400, "Bad Request")

        reply = handlers.handle_buy_transaction("7", "0.5", MINT)

        assert reply == "Failed to generate transaction: Bad Request"

    def test_buy_below_reserve(self, handlers, user, fake_rpc, sol):
        fake_rpc.balances[user.address] = sol("0.001")

        reply = handlers.handle_buy_transaction("7", "0.5", MINT)

        assert reply == (
            "Transaction failed: Your balance (0.001 SOL) is too low to cover rent. Please deposit more SOL."
        )

    def test_buy_dust_amount(self, handlers, user, fake_rpc):
        reply = handlers.handle_buy_transaction("7", "0.000000001", MINT)

        assert reply == "Transaction failed: Buy amount 0.000000001 SOL is too small to trade."
        assert fake_rpc.sent == []

    def test_buy_onchain_error(self, handlers, user, fake_rpc):
        fake_rpc.confirm_transaction = lambda sig, **kwargs: Confirmation(sig, err={"InstructionError": [0, "Custom"]})

        reply = handlers.handle_buy_transaction("7", "0.5", MINT)

        assert reply == 'Transaction failed: {"InstructionError": [0, "Custom"]}.'

    def test_buy_exhausted(self, handlers, user, fake_rpc):
        fake_rpc.send_errors = [RpcError("send failed", RpcErrorKind.SEND_FAILED)] * 4

        reply = handlers.handle_buy_transaction("7", "0.5", MINT)

        assert reply == "Transaction failed after multiple attempts due to node lag."

    def test_fee_failure_reported(self, handlers, user, fake_rpc):
        fake_rpc.send_errors = [None, RpcError("RPC error: boom", RpcErrorKind.NODE_ERROR)]

        reply = handlers.handle_buy_transaction("7", "0.5", MINT)

        assert reply.startswith("Transaction successful:")
        assert "service fee could not be collected" in reply

    def test_sell_success(self, handlers, user):
        reply = handlers.handle_sell_transaction("7", 50, MINT)
        assert reply.startswith("Transaction successful:")

    def test_sell_invalid_percentage(self, handlers, user):
        assert handlers.handle_sell_transaction("7", 0, MINT).startswith("Invalid percentage")

    def test_trading_unavailable_without_team_wallet(self, handlers, user, settings):
        settings.fees.team_wallet_address = ""
        assert handlers.handle_buy_transaction("7", "0.5", MINT) == "Trading is temporarily unavailable."


class TestOperationGuard:

    def test_second_command_rejected_while_in_flight(self, handlers, user, trading_client, unsigned_swap):
        """A withdrawal arriving while a buy is in flight is rejected, not queued"""
        entered = threading.Event()
        release = threading.Event()
        replies = {}

        def slow_quote(request):
            entered.set()
            release.wait(timeout=5)
            return unsigned_swap(user.keypair.pubkey())

        trading_client.quote_api.get_trade_transaction.side_effect = slow_quote

        worker = threading.Thread(
            target=lambda: replies.setdefault("first", handlers.handle_buy_transaction("7", "0.5", MINT))
        )
        worker.start()
        assert entered.wait(timeout=5)

        second = handlers.handle_withdraw("7", "0.1", str(Keypair().pubkey()))
        release.set()
        worker.join(timeout=5)

        assert second == "Another operation is already in progress. Please wait for it to finish."
        assert replies["first"].startswith("Transaction successful:")

    def test_slot_released_after_command(self, handlers, user):
        handlers.handle_withdraw("7", "0.1", str(Keypair().pubkey()))
        assert handlers.sessions.in_flight("7") is None


class TestAccountHandlers:

    def test_start_creates_wallet(self, handlers, trading_client):
        reply = handlers.handle_start("100")

        wallet = trading_client.wallet.load_wallet("100")
        assert reply.startswith("Welcome to PeelyBOT!")
        assert f"Wallet: {wallet.address}" in reply
        assert "balance of 10.0000 SOL" in reply
        code = trading_client.referral_store.get_referral_id("100")
        assert f"https://t.me/PeelyOnSOLBOT?start={code}" in reply

    def test_start_with_referral_code(self, handlers, trading_client):
        handlers.handle_start("100")
        code = trading_client.referral_store.get_referral_id("100")

        handlers.handle_start("200", referral_code=code)

        assert trading_client.referral_store.get_referrer_id("200") == "100"

    def test_referral_only_on_first_start(self, handlers, trading_client):
        handlers.handle_start("100")
        handlers.handle_start("200")
        code = trading_client.referral_store.get_referral_id("100")

        handlers.handle_start("200", referral_code=code)

        assert trading_client.referral_store.get_referrer_id("200") is None

    def test_deposit(self, handlers, trading_client):
        reply = handlers.handle_deposit("100")
        assert reply == f"Deposit SOL to this address:\n{trading_client.wallet.load_wallet('100').address}"

    def test_export_private_key(self, handlers, trading_client):
        assert handlers.handle_export_private_key("100") == "No wallet found."
        handlers.handle_start("100")
        assert handlers.handle_export_private_key("100").startswith("Your private key is: ")

    def test_referral_link(self, handlers):
        assert handlers.handle_referral_link("100") == "No referral ID found."
        handlers.handle_start("100")
        assert handlers.handle_referral_link("100").startswith("Share your referral link: https://t.me/")

    def test_help(self, handlers):
        assert handlers.handle_help() == HELP_MESSAGE

    def test_balances_empty(self, handlers, user):
        assert handlers.handle_balances("7") == "No tokens available to sell."


class TestBuyPrompt:

    def test_prompt_flow(self, handlers, user):
        assert handlers.begin_buy("7") == "Please send the contract address of the token you want to buy."

        reply = handlers.handle_text("7", MINT)
        assert reply.startswith("How much SOL do you want to spend?")
        assert handlers.sessions.get_stage("7") == "awaiting_sol_amount"

        reply = handlers.handle_buy_amount("7", "0.1")
        assert reply.startswith("Transaction successful:")
        assert handlers.sessions.get_stage("7") is None

    def test_text_without_prompt_ignored(self, handlers):
        assert handlers.handle_text("7", MINT) is None

    def test_invalid_contract_address(self, handlers):
        handlers.begin_buy("7")
        assert handlers.handle_text("7", "hello").startswith("That does not look like")
        assert handlers.sessions.get_stage("7") == "awaiting_contract_address"

    def test_options(self, handlers):
        assert handlers.buy_amount_options() == [
            Decimal("0.05"), Decimal("0.1"), Decimal("0.5"), Decimal("1"), Decimal("2"),
        ]
        assert handlers.sell_percentage_options() == [25, 50, 75, 100]
