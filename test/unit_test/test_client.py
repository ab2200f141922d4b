"""
TradingClient wiring and configuration tests
"""

import logging
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from solders.keypair import Keypair

from peelybot.client import TradingClient
from peelybot.config import Config, LoggingConfig, setup_logging
from peelybot.errors import ConfigurationError, ErrorCode, WalletNotFound
from peelybot.types import TradeAction, TradeIntent, TradeOutcome, TxResult

MINT = "So11111111111111111111111111111111111111112"


class TestTradingClient:

    def test_missing_endpoint(self, settings):
        settings.rpc.url = ""

        with pytest.raises(ConfigurationError) as exc_info:
            TradingClient(settings=settings)

        assert exc_info.value.code == ErrorCode.CONFIG_MISSING

    def test_builds_submitter_from_config(self, settings, fake_rpc):
        settings.tx.max_retries = 5

        client = TradingClient(rpc=fake_rpc, settings=settings)

        assert client.submitter.max_attempts == 6

    def test_modules_are_cached(self, trading_client):
        assert trading_client.wallet is trading_client.wallet
        assert trading_client.swap is trading_client.swap
        assert trading_client.fees is trading_client.fees
        assert trading_client.referral is trading_client.referral

    def test_execute_withdraw(self, trading_client, fake_rpc):
        trading_client.wallet.load_or_create_wallet("1")

        result = trading_client.execute(TradeIntent.withdraw("1", "0.1", str(Keypair().pubkey())))

        assert isinstance(result, TxResult)
        assert result.is_success
        assert len(fake_rpc.sent) == 1

    def test_execute_buy(self, trading_client, unsigned_swap):
        wallet = trading_client.wallet.load_or_create_wallet("1")
        trading_client.quote_api.get_trade_transaction.side_effect = (
            lambda request: unsigned_swap(wallet.keypair.pubkey())
        )

        outcome = trading_client.execute(TradeIntent.buy("1", "0.5", MINT))

        assert isinstance(outcome, TradeOutcome)
        assert outcome.is_success

    def test_execute_sell_routes_percentage(self, trading_client):
        trading_client.wallet.load_or_create_wallet("1")
        trading_client._swap = MagicMock()

        trading_client.execute(TradeIntent.sell("1", 25, MINT))

        wallet, percentage, mint = trading_client.swap.sell.call_args[0]
        assert wallet.user_id == "1"
        assert percentage == Decimal("25")
        assert mint == MINT

    def test_execute_without_wallet(self, trading_client):
        with pytest.raises(WalletNotFound):
            trading_client.execute(TradeIntent.buy("nobody", "0.5", MINT))

    def test_user_balance(self, trading_client, fake_rpc, sol):
        assert trading_client.wallet.user_balance("nobody") == Decimal(0)
        wallet = trading_client.wallet.load_or_create_wallet("1")
        fake_rpc.balances[wallet.address] = sol("0.25")

        assert trading_client.wallet.user_balance("1") == Decimal("0.25")

    def test_intent_action(self):
        assert TradeIntent.sell("1", 50, MINT).is_percentage
        assert TradeIntent.withdraw("1", "1", "dest").action == TradeAction.TRANSFER


class TestConfig:

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TX_MAX_RETRIES", "5")
        monkeypatch.setenv("TX_SKIP_PREFLIGHT", "no")
        monkeypatch.setenv("TEAM_WALLET_ADDRESS", "Team111")

        cfg = Config()

        assert cfg.tx.max_retries == 5
        assert cfg.tx.skip_preflight is False
        assert cfg.fees.team_wallet_address == "Team111"

    def test_invalid_number_falls_back(self, monkeypatch):
        monkeypatch.setenv("TX_MAX_RETRIES", "many")
        monkeypatch.setenv("TX_RETRY_BASE_DELAY", "slow")

        cfg = Config()

        assert cfg.tx.max_retries == 3
        assert cfg.tx.retry_base_delay == 1.0

    def test_defaults(self, monkeypatch):
        for key in ("FEE_RATE", "REFERRER_SHARE", "MIN_RENT_EXEMPT_BALANCE", "BLOCKHASH_MAX_ATTEMPTS"):
            monkeypatch.delenv(key, raising=False)

        cfg = Config()

        assert cfg.fees.fee_rate == "0.01"
        assert cfg.fees.referrer_share == "0.35"
        assert cfg.wallet.min_rent_exempt_balance == "0.00203928"
        assert cfg.tx.blockhash_max_attempts == 3

    def test_setup_logging_writes_file(self, tmp_path):
        log_file = tmp_path / "logs" / "bot.log"
        log_config = LoggingConfig(log_file=str(log_file), log_level="DEBUG", console_output=False)

        logger = setup_logging(log_config, logger_name="peelybot.test_setup")
        try:
            logger.debug("hello")
            for handler in logger.handlers:
                handler.flush()

            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
            assert "hello" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in logger.handlers[:]:
                handler.close()
                logger.removeHandler(handler)
