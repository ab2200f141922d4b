"""
PeelyBot - Custodial Solana trading engine for a chat bot

Provides:
- Custodial wallets with a rent reserve guard
- SOL withdrawals
- Token buys and sells through the PumpPortal trade API
- Service fee settlement with a referrer split
- Bounded, jittered retries with duplicate detection
"""

from .client import TradingClient
from .handlers import CommandHandlers
from .session import SessionRegistry
from .stores import InMemoryReferralStore, InMemoryWalletStore, ReferralStore, WalletStore
from .types import (
    TradeAction,
    TradeIntent,
    TradeOutcome,
    TxResult,
    TxStatus,
    FeeSplit,
    Wallet,
    WalletRecord,
)
from .errors import (
    BotError,
    ErrorCode,
    RpcError,
    RpcErrorKind,
    TransactionError,
    InsufficientFunds,
    InsufficientReserve,
    QuotingServiceRejection,
    MalformedUpstreamResponse,
    RetriesExhausted,
    OperationInProgress,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "TradingClient",
    "CommandHandlers",
    "SessionRegistry",
    # Stores
    "WalletStore",
    "ReferralStore",
    "InMemoryWalletStore",
    "InMemoryReferralStore",
    # Types
    "TradeAction",
    "TradeIntent",
    "TradeOutcome",
    "TxResult",
    "TxStatus",
    "FeeSplit",
    "Wallet",
    "WalletRecord",
    # Errors
    "BotError",
    "ErrorCode",
    "RpcError",
    "RpcErrorKind",
    "TransactionError",
    "InsufficientFunds",
    "InsufficientReserve",
    "QuotingServiceRejection",
    "MalformedUpstreamResponse",
    "RetriesExhausted",
    "OperationInProgress",
]
