"""
Functional modules for TradingClient

Provides high-level operations:
- WalletModule: Wallet lifecycle, balances, rent reserve guard, withdrawals
- SwapModule: Buys and sells through the trade quoting service
- FeeModule: Service fee split and settlement
- ReferralModule: Referral links and attribution
"""

from .wallet import WalletModule, wallet_from_record
from .swap import SwapModule
from .fees import FeeModule, compute_fee_split, split_buy_amount
from .referral import ReferralModule

__all__ = [
    "WalletModule",
    "SwapModule",
    "FeeModule",
    "ReferralModule",
    "wallet_from_record",
    "compute_fee_split",
    "split_buy_amount",
]
