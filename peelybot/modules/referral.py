"""
Referral Module

Referral links and referrer attribution.
"""

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..client import TradingClient

logger = logging.getLogger(__name__)


class ReferralModule:
    """
    Referral operations module

    A referral code is the referral id stored with the referrer's wallet.
    Attribution is first-write-wins; see InMemoryReferralStore.

    Usage:
        link = client.referral.referral_link(user_id)
        client.referral.register_referral(new_user_id, code)
    """

    def __init__(self, client: "TradingClient"):
        self._client = client
        self._wallets = client.wallet_store
        self._referrals = client.referral_store

    def referral_link(self, user_id: str) -> Optional[str]:
        """Deep link carrying the user's referral code, None without a wallet"""
        referral_id = self._referrals.get_referral_id(user_id)
        if not referral_id:
            return None
        return f"{self._client.config.bot.referral_url}{referral_id}"

    def register_referral(self, user_id: str, referral_code: str) -> Optional[str]:
        """
        Attribute a user to the owner of a referral code

        Unknown codes and self-referrals are ignored.

        Returns:
            Referrer user id, or None when nothing was recorded

        Raises:
            ReferralAlreadySet: The user already has a different referrer
        """
        if not referral_code:
            return None

        referrer_id = self._wallets.find_user_by_referral_id(referral_code)
        if referrer_id is None:
            logger.warning(f"Unknown referral code {referral_code} for user {user_id}")
            return None
        if referrer_id == user_id:
            logger.info(f"Ignoring self-referral by user {user_id}")
            return None

        self._referrals.set_referrer(user_id, referrer_id)
        logger.info(f"User {user_id} referred by {referrer_id}")
        return referrer_id

    def referrer_wallet_address(self, user_id: str) -> Optional[str]:
        """Wallet address of the user's referrer, if any"""
        referrer_id = self._referrals.get_referrer_id(user_id)
        if referrer_id is None:
            return None
        record = self._wallets.load(referrer_id)
        if record is None:
            logger.warning(f"Referrer {referrer_id} of user {user_id} has no wallet")
            return None
        return record.public_key
