"""
PumpPortal Local Trade API Client

REST client for the trade quoting service that returns ready-to-sign
swap transactions.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import httpx

from ...config import config as global_config
from ...errors import MalformedUpstreamResponse, QuotingServiceRejection
from ...types import TradeAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TradeRequest:
    """
    Parameters of one quote request

    Attributes:
        public_key: Trading wallet address
        action: BUY or SELL
        mint: Token mint address
        amount: SOL amount (buy) or percentage of holdings (sell)
        slippage: Slippage tolerance in percent
        priority_fee: Priority fee in SOL
        pool: Liquidity venue
    """
    public_key: str
    action: TradeAction
    mint: str
    amount: Decimal
    slippage: float
    priority_fee: float
    pool: str

    @property
    def denominated_in_sol(self) -> bool:
        return self.action == TradeAction.BUY

    def to_payload(self) -> Dict[str, Any]:
        """JSON body expected by the service"""
        amount: Union[float, str]
        if self.action == TradeAction.SELL:
            amount = f"{self.amount.normalize():f}%"
        else:
            amount = float(self.amount)
        return {
            "publicKey": self.public_key,
            "action": self.action.value,
            "mint": self.mint,
            "amount": amount,
            "denominatedInSol": "true" if self.denominated_in_sol else "false",
            "slippage": self.slippage,
            "priorityFee": self.priority_fee,
            "pool": self.pool,
        }


class TradeQuoteAPI:
    """
    PumpPortal trade-local API client

    A non-200 answer is terminal for the whole operation and is never
    retried here or by the caller.

    Usage:
        api = TradeQuoteAPI()
        unsigned_tx = api.get_trade_transaction(api.request(pubkey, TradeAction.BUY, mint, Decimal("0.99")))
    """

    def __init__(
        self,
        api_url: str = None,
        timeout: float = None,
        slippage: float = None,
        priority_fee: float = None,
        pool: str = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize the quoting API client

        Args:
            api_url: Trade endpoint (default from config)
            timeout: Request timeout in seconds (default from config)
            slippage: Slippage tolerance in percent (default from config)
            priority_fee: Priority fee in SOL (default from config)
            pool: Liquidity venue (default from config)
            http_client: Optional preconfigured httpx client
        """
        self._api_url = api_url if api_url is not None else global_config.trade.api_url
        self._timeout = timeout if timeout is not None else global_config.trade.timeout
        self._slippage = slippage if slippage is not None else global_config.trade.slippage
        self._priority_fee = priority_fee if priority_fee is not None else global_config.trade.priority_fee
        self._pool = pool if pool is not None else global_config.trade.pool
        self._client: Optional[httpx.Client] = http_client

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client"""
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout)
        return self._client

    def request(self, public_key: str, action: TradeAction, mint: str, amount: Decimal) -> TradeRequest:
        """Build a TradeRequest with the configured slippage, priority fee and pool"""
        return TradeRequest(
            public_key=public_key,
            action=action,
            mint=mint,
            amount=amount,
            slippage=self._slippage,
            priority_fee=self._priority_fee,
            pool=self._pool,
        )

    def get_trade_transaction(self, trade: TradeRequest) -> bytes:
        """
        Request an unsigned serialized swap transaction

        Args:
            trade: Quote parameters

        Returns:
            Serialized unsigned VersionedTransaction bytes

        Raises:
            QuotingServiceRejection: Non-200 status or the request failed
            MalformedUpstreamResponse: Empty body
        """
        client = self._get_client()
        payload = trade.to_payload()

        try:
            response = client.post(
                self._api_url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error(f"Trade quote request failed: {e}")
            raise QuotingServiceRejection(0, f"request failed: {e}")

        if response.status_code != 200:
            logger.warning(
                f"Trade quote rejected ({trade.action.value} {trade.mint}): "
                f"{response.status_code} {response.reason_phrase}"
            )
            raise QuotingServiceRejection(response.status_code, response.reason_phrase)

        data = response.content
        if not data:
            raise MalformedUpstreamResponse("trade quoting service", "empty transaction body")

        logger.debug(f"Received {len(data)} byte {trade.action.value} transaction for {trade.mint}")
        return data

    def close(self):
        """Close HTTP client"""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
