"""
Fee Module

Service fee computation and settlement.

Every confirmed buy or sell pays a fee of FEE_RATE (1%) of the relevant
amount. With a referrer attached, REFERRER_SHARE (35%) of the fee goes to
the referrer and the remainder to the platform wallet, both in a single
transaction.
"""

import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Tuple, TYPE_CHECKING

from ..errors import ConfigurationError, TransactionError
from ..infra import TxBuilder, parse_address
from ..types import (
    FeeSplit,
    TxResult,
    Wallet,
    floor_to_lamport,
    sol_to_lamports,
    to_decimal,
)

if TYPE_CHECKING:
    from ..client import TradingClient

logger = logging.getLogger(__name__)


def split_buy_amount(amount_sol, fee_rate) -> Tuple[Decimal, Decimal]:
    """
    Split a buy amount into the quoted trade amount and the fee

    The quoted amount is floored to whole lamports, so quoted + fee never
    exceeds the requested amount.

    Returns:
        (quoted_amount, fee_amount) in SOL
    """
    amount = to_decimal(amount_sol)
    rate = to_decimal(fee_rate)
    quoted = floor_to_lamport(amount * (Decimal(1) - rate))
    return quoted, amount * rate


def compute_fee_split(
    fee_sol,
    referrer_share,
    referrer_address: Optional[str] = None,
) -> FeeSplit:
    """
    Split a gross fee between platform and referrer

    Gross lamports are floored; the referrer share is floored and the
    platform receives the remainder, so the parts always sum to the gross.

    Args:
        fee_sol: Gross fee in SOL
        referrer_share: Fraction of the fee paid to the referrer
        referrer_address: Referrer wallet, or None for platform-only

    Returns:
        FeeSplit
    """
    gross = sol_to_lamports(fee_sol)
    if gross < 0:
        raise ValueError(f"Fee cannot be negative: {fee_sol}")

    if referrer_address is None:
        return FeeSplit(gross_lamports=gross, platform_lamports=gross)

    referrer = int((Decimal(gross) * to_decimal(referrer_share)).to_integral_value(rounding=ROUND_FLOOR))
    return FeeSplit(
        gross_lamports=gross,
        platform_lamports=gross - referrer,
        referrer_lamports=referrer,
        referrer_address=referrer_address,
    )


class FeeModule:
    """
    Fee settlement module

    Usage:
        split, result = client.fees.settle(wallet, Decimal("0.01"))
    """

    def __init__(self, client: "TradingClient"):
        self._client = client
        self._fee_config = client.config.fees

    @property
    def fee_rate(self) -> Decimal:
        return to_decimal(self._fee_config.fee_rate)

    @property
    def referrer_share(self) -> Decimal:
        return to_decimal(self._fee_config.referrer_share)

    def team_wallet_address(self) -> str:
        """
        Validated platform fee wallet

        Raises:
            ConfigurationError: Not configured or not a valid address
        """
        address = self._fee_config.team_wallet_address
        if not address:
            raise ConfigurationError.missing("TEAM_WALLET_ADDRESS")
        try:
            parse_address(address)
        except TransactionError as e:
            raise ConfigurationError.invalid("TEAM_WALLET_ADDRESS", str(e))
        return address

    def referrer_address(self, user_id: str) -> Optional[str]:
        """Wallet address of the user's referrer, if the referrer has a wallet"""
        return self._client.referral.referrer_wallet_address(user_id)

    def split_for(self, user_id: str, fee_sol) -> FeeSplit:
        """Fee split for a user, honouring their referrer"""
        return compute_fee_split(fee_sol, self.referrer_share, self.referrer_address(user_id))

    def settle(self, wallet: Wallet, fee_sol) -> Tuple[FeeSplit, TxResult]:
        """
        Transfer the service fee out of the user's wallet

        A fee that rounds to zero lamports is skipped.

        Args:
            wallet: Wallet paying the fee
            fee_sol: Gross fee in SOL

        Returns:
            (FeeSplit, TxResult)
        """
        team_wallet = self.team_wallet_address()
        split = self.split_for(wallet.user_id, fee_sol)
        if split.gross_lamports == 0:
            logger.info(f"Fee for {wallet.address} rounds to zero, skipping")
            return split, TxResult.skipped("Fee rounds to zero lamports")

        transfers = [(team_wallet, split.platform_lamports)]
        if split.has_referrer and split.referrer_lamports > 0:
            transfers.append((split.referrer_address, split.referrer_lamports))

        logger.info(
            f"Settling fee of {split.gross_sol} SOL for {wallet.address} "
            f"(platform={split.platform_lamports}, referrer={split.referrer_lamports})"
        )
        builder = TxBuilder(wallet)
        result = self._client.submitter.submit(
            lambda blockhash: builder.build_transfer(transfers, blockhash),
            "fee",
        )
        return split, result
