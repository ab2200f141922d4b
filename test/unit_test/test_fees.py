"""
Fee split and settlement tests
"""

from decimal import Decimal

import pytest
from solders.keypair import Keypair

from peelybot.errors import ConfigurationError
from peelybot.modules.fees import compute_fee_split, split_buy_amount
from peelybot.types import TxStatus


class TestComputeFeeSplit:
    """Gross fee split between platform and referrer"""

    def test_split_with_referrer(self):
        """0.01 SOL fee with a referrer: 0.0065 platform, 0.0035 referrer"""
        split = compute_fee_split(Decimal("0.01"), Decimal("0.35"), "Referrer111")

        assert split.gross_lamports == 10_000_000
        assert split.gross_sol == Decimal("0.01")
        assert split.platform_lamports == 6_500_000
        assert split.referrer_lamports == 3_500_000
        assert split.platform_sol == Decimal("0.0065")
        assert split.referrer_sol == Decimal("0.0035")
        assert split.has_referrer

    def test_split_without_referrer(self):
        """No referrer: the platform receives the whole fee"""
        split = compute_fee_split(Decimal("0.01"), Decimal("0.35"))

        assert split.platform_lamports == 10_000_000
        assert split.referrer_lamports == 0
        assert not split.has_referrer

    def test_parts_sum_to_gross(self):
        """Odd lamport amounts: floored referrer share, remainder to platform"""
        for fee in ("0.000000001", "0.000000007", "0.123456789", "1.999999999"):
            split = compute_fee_split(Decimal(fee), Decimal("0.35"), "Referrer111")
            assert split.platform_lamports + split.referrer_lamports == split.gross_lamports
            assert split.referrer_lamports == split.gross_lamports * 35 // 100

    def test_gross_is_floored(self):
        split = compute_fee_split(Decimal("0.0000000019"), Decimal("0.35"))
        assert split.gross_lamports == 1

    def test_negative_fee_rejected(self):
        with pytest.raises(ValueError):
            compute_fee_split(Decimal("-0.01"), Decimal("0.35"))


class TestSplitBuyAmount:

    def test_one_sol(self):
        quoted, fee = split_buy_amount(Decimal("1"), Decimal("0.01"))

        assert quoted == Decimal("0.99")
        assert fee == Decimal("0.01")

    def test_quoted_is_lamport_precise(self):
        """Quoted amount has at most 9 decimals and quoted + fee stays within one lamport of A"""
        for amount in ("0.05", "0.1", "0.123456789", "2", "0.000000003"):
            a = Decimal(amount)
            quoted, fee = split_buy_amount(a, Decimal("0.01"))
            assert quoted == quoted.quantize(Decimal("0.000000001"))
            assert a - Decimal("0.000000001") <= quoted + fee <= a


class TestFeeSettlement:
    """FeeModule.settle through the submission loop"""

    def test_settle_with_referrer(self, trading_client, fake_rpc, team_wallet, transfers_of):
        referrer = trading_client.wallet.load_or_create_wallet("referrer")
        trading_client.wallet.load_or_create_wallet("user")
        code = trading_client.referral_store.get_referral_id("referrer")
        trading_client.referral.register_referral("user", code)
        wallet = trading_client.wallet.load_wallet("user")

        split, result = trading_client.fees.settle(wallet, Decimal("0.01"))

        assert result.is_success
        assert len(fake_rpc.sent) == 1
        assert transfers_of(fake_rpc.sent[0]) == [
            (team_wallet, 6_500_000),
            (referrer.address, 3_500_000),
        ]
        assert split.referrer_address == referrer.address

    def test_settle_without_referrer(self, trading_client, fake_rpc, team_wallet, transfers_of):
        wallet = trading_client.wallet.load_or_create_wallet("user")

        split, result = trading_client.fees.settle(wallet, Decimal("0.01"))

        assert result.is_success
        assert transfers_of(fake_rpc.sent[0]) == [(team_wallet, 10_000_000)]

    def test_referrer_without_wallet_pays_platform(self, trading_client, fake_rpc, team_wallet, transfers_of):
        """A referrer id with no wallet on file falls back to platform-only"""
        wallet = trading_client.wallet.load_or_create_wallet("user")
        trading_client.referral_store.set_referrer("user", "ghost")

        split, result = trading_client.fees.settle(wallet, Decimal("0.01"))

        assert not split.has_referrer
        assert transfers_of(fake_rpc.sent[0]) == [(team_wallet, 10_000_000)]

    def test_zero_fee_skipped(self, trading_client, fake_rpc):
        wallet = trading_client.wallet.load_or_create_wallet("user")

        split, result = trading_client.fees.settle(wallet, Decimal("0.0000000001"))

        assert result.status == TxStatus.SKIPPED
        assert fake_rpc.sent == []

    def test_missing_team_wallet(self, trading_client, settings):
        settings.fees.team_wallet_address = ""
        wallet = trading_client.wallet.load_or_create_wallet("user")

        with pytest.raises(ConfigurationError):
            trading_client.fees.settle(wallet, Decimal("0.01"))

    def test_invalid_team_wallet(self, trading_client, settings):
        settings.fees.team_wallet_address = "not-a-wallet"

        with pytest.raises(ConfigurationError):
            trading_client.fees.team_wallet_address()

    def test_team_wallet_valid(self, trading_client, team_wallet):
        assert trading_client.fees.team_wallet_address() == team_wallet
        assert team_wallet != str(Keypair().pubkey())
