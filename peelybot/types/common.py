"""
Common type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from enum import Enum
from typing import Optional, Union

from solders.keypair import Keypair


LAMPORTS_PER_SOL = 10 ** 9

# SPL Token program, owner filter for token account listing
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"


def to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    """Convert a numeric value to Decimal without float artifacts"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def sol_to_lamports(sol: Union[Decimal, float, int, str]) -> int:
    """
    Convert a SOL amount to lamports, truncating any fractional lamport.

    Truncation never spends more than requested.
    """
    lamports = to_decimal(sol) * LAMPORTS_PER_SOL
    return int(lamports.to_integral_value(rounding=ROUND_FLOOR))


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to SOL"""
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


def floor_to_lamport(sol: Union[Decimal, float, int, str]) -> Decimal:
    """Truncate a SOL amount to whole-lamport precision"""
    return lamports_to_sol(sol_to_lamports(sol))


class TradeAction(Enum):
    """User-initiated actions"""
    TRANSFER = "transfer"
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class WalletRecord:
    """
    Persisted custodial wallet

    Attributes:
        user_id: Chat user identifier
        public_key: Wallet address (base58)
        secret_key: 64-byte secret key (base58)
        referral_id: Code used in the user's referral link
    """
    user_id: str
    public_key: str
    secret_key: str
    referral_id: Optional[str] = None


@dataclass(frozen=True)
class Wallet:
    """
    Custodial wallet handed to the engine for a single operation

    The keypair is never written back by the engine.
    """
    user_id: str
    keypair: Keypair = field(repr=False)

    @property
    def address(self) -> str:
        """Public address as base58 string"""
        return str(self.keypair.pubkey())

    def __repr__(self) -> str:
        return f"Wallet({self.user_id}, {self.address[:8]}...)"


@dataclass(frozen=True)
class TradeIntent:
    """
    One user command, consumed once

    Attributes:
        action: transfer, buy or sell
        user_id: Source wallet owner
        amount: SOL amount (transfer/buy) or percentage of holdings (sell)
        mint: Token mint for buy/sell
        destination: Destination address for transfer
    """
    action: TradeAction
    user_id: str
    amount: Decimal
    mint: Optional[str] = None
    destination: Optional[str] = None

    @property
    def is_percentage(self) -> bool:
        return self.action == TradeAction.SELL

    @classmethod
    def withdraw(cls, user_id: str, amount_sol, destination: str) -> "TradeIntent":
        return cls(TradeAction.TRANSFER, user_id, to_decimal(amount_sol), destination=destination)

    @classmethod
    def buy(cls, user_id: str, amount_sol, mint: str) -> "TradeIntent":
        return cls(TradeAction.BUY, user_id, to_decimal(amount_sol), mint=mint)

    @classmethod
    def sell(cls, user_id: str, percentage, mint: str) -> "TradeIntent":
        return cls(TradeAction.SELL, user_id, to_decimal(percentage), mint=mint)


@dataclass(frozen=True)
class TokenHolding:
    """Positive SPL token balance held by a wallet"""
    mint: str
    symbol: str
    balance: Decimal
    ui_amount_string: str

    def __str__(self) -> str:
        return f"Token: {self.symbol}, Balance: {self.ui_amount_string}"
