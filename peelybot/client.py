"""
TradingClient - Entry point for custodial wallet operations

Wires the RPC client, submission loop, external services and stores
together and exposes them through functional modules (wallet, swap,
fees, referral).
"""

from __future__ import annotations

from typing import List, Optional, Union, TYPE_CHECKING

from .config import Config, config as global_config
from .errors import ConfigurationError
from .infra import BlockhashProvider, RpcClient, RpcClientConfig, TxSubmitter
from .protocols import TokenMetadataAPI, TradeQuoteAPI
from .stores import InMemoryReferralStore, InMemoryWalletStore, ReferralStore, WalletStore
from .types import TradeAction, TradeIntent, TradeOutcome, TxResult


class TradingClient:
    """
    Custodial trading client

    Provides access to operations through functional modules:
    - wallet: Wallet lifecycle, balances, withdrawals
    - swap: Buys and sells
    - fees: Fee split and settlement
    - referral: Referral links and attribution

    Usage:
        client = TradingClient(rpc_url="https://api.mainnet-beta.solana.com")

        wallet = client.wallet.load_or_create_wallet("12345")
        result = client.execute(TradeIntent.withdraw("12345", "0.5", destination))
    """

    def __init__(
        self,
        rpc_url: Union[str, List[str], None] = None,
        wallet_store: Optional[WalletStore] = None,
        referral_store: Optional[ReferralStore] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        rpc: Optional[RpcClient] = None,
        submitter: Optional[TxSubmitter] = None,
        quote_api: Optional[TradeQuoteAPI] = None,
        metadata_api: Optional[TokenMetadataAPI] = None,
        settings: Optional[Config] = None,
    ):
        """
        Initialize TradingClient

        Args:
            rpc_url: RPC endpoint URL or list of URLs for fallback (default from config)
            wallet_store: Wallet persistence (in-memory if omitted)
            referral_store: Referral persistence (in-memory if omitted)
            rpc_config: Optional RPC configuration
            rpc: Preconfigured RPC client, overrides rpc_url
            submitter: Preconfigured submission loop
            quote_api: Preconfigured trade quoting client
            metadata_api: Preconfigured token metadata client
            settings: Configuration (global config if omitted)
        """
        self._config = settings or global_config

        if rpc is None:
            endpoint = rpc_url or self._config.rpc.url
            if not endpoint:
                raise ConfigurationError.missing("RPC_ENDPOINT")
            rpc = RpcClient(endpoint, config=rpc_config)
        self._rpc = rpc

        self._wallet_store = wallet_store or InMemoryWalletStore()
        self._referral_store = referral_store or InMemoryReferralStore(self._wallet_store)

        if submitter is None:
            tx = self._config.tx
            submitter = TxSubmitter(
                self._rpc,
                BlockhashProvider(
                    self._rpc,
                    max_attempts=tx.blockhash_max_attempts,
                    base_delay=tx.retry_base_delay,
                ),
                max_retries=tx.max_retries,
                base_delay=tx.retry_base_delay,
                skip_preflight=tx.skip_preflight,
                confirmation_timeout=tx.confirmation_timeout,
            )
        self._submitter = submitter

        self._quote_api = quote_api
        self._metadata_api = metadata_api

        # Lazy-loaded modules
        self._wallet: Optional["WalletModule"] = None
        self._swap: Optional["SwapModule"] = None
        self._fees: Optional["FeeModule"] = None
        self._referral: Optional["ReferralModule"] = None

    @property
    def config(self) -> Config:
        return self._config

    @property
    def rpc(self) -> RpcClient:
        """Access to RPC client"""
        return self._rpc

    @property
    def submitter(self) -> TxSubmitter:
        """Access to the submission loop"""
        return self._submitter

    @property
    def wallet_store(self) -> WalletStore:
        return self._wallet_store

    @property
    def referral_store(self) -> ReferralStore:
        return self._referral_store

    @property
    def quote_api(self) -> TradeQuoteAPI:
        """Trade quoting service client (created on first use)"""
        if self._quote_api is None:
            trade = self._config.trade
            self._quote_api = TradeQuoteAPI(
                api_url=trade.api_url,
                timeout=trade.timeout,
                slippage=trade.slippage,
                priority_fee=trade.priority_fee,
                pool=trade.pool,
            )
        return self._quote_api

    @property
    def metadata(self) -> TokenMetadataAPI:
        """Token metadata client (created on first use)"""
        if self._metadata_api is None:
            self._metadata_api = TokenMetadataAPI(
                url=self._config.metadata.url or self._config.rpc.url,
                timeout=self._config.metadata.timeout,
            )
        return self._metadata_api

    @property
    def wallet(self) -> "WalletModule":
        """
        Wallet module

        Provides:
        - load_or_create_wallet(user_id), load_wallet(user_id)
        - sol_balance(address), token_balances(wallet)
        - ensure_reserve(wallet)
        - withdraw(wallet, amount, destination)
        """
        if self._wallet is None:
            from .modules.wallet import WalletModule
            self._wallet = WalletModule(self)
        return self._wallet

    @property
    def swap(self) -> "SwapModule":
        """
        Swap module

        Provides:
        - buy(wallet, amount_sol, mint)
        - sell(wallet, percentage, mint)
        """
        if self._swap is None:
            from .modules.swap import SwapModule
            self._swap = SwapModule(self)
        return self._swap

    @property
    def fees(self) -> "FeeModule":
        """Fee module"""
        if self._fees is None:
            from .modules.fees import FeeModule
            self._fees = FeeModule(self)
        return self._fees

    @property
    def referral(self) -> "ReferralModule":
        """Referral module"""
        if self._referral is None:
            from .modules.referral import ReferralModule
            self._referral = ReferralModule(self)
        return self._referral

    def execute(self, intent: TradeIntent) -> Union[TxResult, TradeOutcome]:
        """
        Run a user intent against the user's wallet

        Returns:
            TxResult for transfers, TradeOutcome for buys and sells

        Raises:
            WalletNotFound: The user has no wallet
        """
        wallet = self.wallet.load_wallet(intent.user_id)
        if intent.action == TradeAction.TRANSFER:
            return self.wallet.withdraw(wallet, intent.amount, intent.destination)
        if intent.action == TradeAction.BUY:
            return self.swap.buy(wallet, intent.amount, intent.mint)
        return self.swap.sell(wallet, intent.amount, intent.mint)

    def close(self):
        """Close client connections and release resources"""
        if self._quote_api is not None:
            self._quote_api.close()
        if self._metadata_api is not None:
            self._metadata_api.close()
        self._rpc.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self) -> str:
        return f"TradingClient(endpoint={self._rpc.endpoint})"


# Type hints for modules (resolved at runtime)
if TYPE_CHECKING:
    from .modules.wallet import WalletModule
    from .modules.swap import SwapModule
    from .modules.fees import FeeModule
    from .modules.referral import ReferralModule
