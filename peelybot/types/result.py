"""
Result type definitions for transactions and fee settlement
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from .common import lamports_to_sol


class TxStatus(Enum):
    """Transaction status"""
    SUCCESS = "success"
    DUPLICATE = "duplicate"  # Node reported an earlier attempt already landed
    FAILED = "failed"
    EXHAUSTED = "exhausted"  # Transient failures on every attempt
    SKIPPED = "skipped"  # No transaction was needed (e.g. zero fee)


@dataclass
class TxResult:
    """
    Transaction execution result

    Attributes:
        status: Transaction status
        signature: Transaction signature (base58)
        error: Error message if failed
        error_code: Error code value for programmatic handling
        attempts: Number of submission attempts made
    """
    status: TxStatus
    signature: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0

    @property
    def is_success(self) -> bool:
        """Landed on-chain, including a reconciled duplicate"""
        return self.status in (TxStatus.SUCCESS, TxStatus.DUPLICATE)

    @property
    def is_duplicate(self) -> bool:
        return self.status == TxStatus.DUPLICATE

    @property
    def is_exhausted(self) -> bool:
        return self.status == TxStatus.EXHAUSTED

    @property
    def is_skipped(self) -> bool:
        return self.status == TxStatus.SKIPPED

    @classmethod
    def success(cls, signature: str, **kwargs) -> "TxResult":
        return cls(status=TxStatus.SUCCESS, signature=signature, **kwargs)

    @classmethod
    def duplicate(cls, signature: Optional[str], **kwargs) -> "TxResult":
        return cls(status=TxStatus.DUPLICATE, signature=signature, **kwargs)

    @classmethod
    def failed(cls, error: str, signature: str = None, **kwargs) -> "TxResult":
        return cls(status=TxStatus.FAILED, signature=signature, error=error, **kwargs)

    @classmethod
    def exhausted(cls, error: str, **kwargs) -> "TxResult":
        return cls(status=TxStatus.EXHAUSTED, error=error, **kwargs)

    @classmethod
    def skipped(cls, reason: str = "No action needed", **kwargs) -> "TxResult":
        return cls(status=TxStatus.SKIPPED, error=reason, **kwargs)

    def __str__(self) -> str:
        if self.is_success:
            sig_display = f"{self.signature[:16]}..." if self.signature else "no signature"
            return f"TxResult({self.status.value.upper()}, {sig_display})"
        return f"TxResult({self.status.value}, error={self.error})"


@dataclass(frozen=True)
class BlockhashInfo:
    """Latest blockhash and the last block height at which it is valid"""
    blockhash: str
    last_valid_block_height: Optional[int] = None


@dataclass(frozen=True)
class SignedTx:
    """Signed transaction built for one submission attempt"""
    blockhash: str
    raw: bytes
    signature: str


@dataclass(frozen=True)
class Confirmation:
    """Confirmation outcome; err holds the on-chain error, if any"""
    signature: str
    err: Optional[object] = None
    confirmation_status: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.err is not None


@dataclass(frozen=True)
class FeeSplit:
    """
    Service fee split for one swap

    Attributes:
        gross_lamports: Total fee
        platform_lamports: Platform share
        referrer_lamports: Referrer share (0 when no referrer)
        referrer_address: Referrer wallet address, if any
    """
    gross_lamports: int
    platform_lamports: int
    referrer_lamports: int = 0
    referrer_address: Optional[str] = None

    @property
    def has_referrer(self) -> bool:
        return self.referrer_address is not None

    @property
    def gross_sol(self) -> Decimal:
        return lamports_to_sol(self.gross_lamports)

    @property
    def platform_sol(self) -> Decimal:
        return lamports_to_sol(self.platform_lamports)

    @property
    def referrer_sol(self) -> Decimal:
        return lamports_to_sol(self.referrer_lamports)


@dataclass
class TradeOutcome:
    """
    Result of a buy or sell including the dependent fee transfer

    A confirmed trade with a failed fee transfer is a partial success:
    the trade is not rolled back.
    """
    trade: TxResult
    fee: Optional[TxResult] = None
    fee_split: Optional[FeeSplit] = None
    fee_error: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.trade.is_success

    @property
    def is_partial(self) -> bool:
        """Trade landed but the fee was not settled"""
        if not self.trade.is_success:
            return False
        if self.fee_error is not None:
            return True
        return self.fee is not None and not (self.fee.is_success or self.fee.is_skipped)
