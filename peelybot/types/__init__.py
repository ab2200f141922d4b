"""
Type definitions for PeelyBot
"""

from .common import (
    LAMPORTS_PER_SOL,
    TOKEN_PROGRAM_ID,
    to_decimal,
    sol_to_lamports,
    lamports_to_sol,
    floor_to_lamport,
    TradeAction,
    WalletRecord,
    Wallet,
    TradeIntent,
    TokenHolding,
)
from .result import (
    TxStatus,
    TxResult,
    BlockhashInfo,
    SignedTx,
    Confirmation,
    FeeSplit,
    TradeOutcome,
)

__all__ = [
    "LAMPORTS_PER_SOL",
    "TOKEN_PROGRAM_ID",
    "to_decimal",
    "sol_to_lamports",
    "lamports_to_sol",
    "floor_to_lamport",
    "TradeAction",
    "WalletRecord",
    "Wallet",
    "TradeIntent",
    "TokenHolding",
    "TxStatus",
    "TxResult",
    "BlockhashInfo",
    "SignedTx",
    "Confirmation",
    "FeeSplit",
    "TradeOutcome",
]
