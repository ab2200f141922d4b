"""
Error definitions for PeelyBot
"""

from .exceptions import (
    ErrorCode,
    BotError,
    RpcErrorKind,
    RpcError,
    TransactionError,
    InsufficientFunds,
    InsufficientReserve,
    QuotingServiceRejection,
    MalformedUpstreamResponse,
    RetriesExhausted,
    BlockhashUnavailable,
    SignerError,
    WalletNotFound,
    ReferralAlreadySet,
    OperationInProgress,
    ConfigurationError,
)

__all__ = [
    "ErrorCode",
    "BotError",
    "RpcErrorKind",
    "RpcError",
    "TransactionError",
    "InsufficientFunds",
    "InsufficientReserve",
    "QuotingServiceRejection",
    "MalformedUpstreamResponse",
    "RetriesExhausted",
    "BlockhashUnavailable",
    "SignerError",
    "WalletNotFound",
    "ReferralAlreadySet",
    "OperationInProgress",
    "ConfigurationError",
]
