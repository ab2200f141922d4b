"""
RPC Client for Solana

Provides unified JSON-RPC interface with:
- Multiple endpoint fallback
- Failure classification into RpcErrorKind
- Request timeout management
- Signature status polling for confirmation
"""

from __future__ import annotations

import base64
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from ..errors import RpcError, RpcErrorKind, ConfigurationError, TransactionError
from ..config import config as global_config
from ..types import BlockhashInfo, Confirmation, TOKEN_PROGRAM_ID

logger = logging.getLogger(__name__)

# JSON-RPC error code some providers use for throttling
RATE_LIMIT_RPC_CODES = (-32429, 429)

# Node-side error text for a transaction whose signature was already seen
ALREADY_PROCESSED_MARKERS = ("already been processed", "alreadyprocessed", "already processed")

COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

# Poll failures that say nothing about the transaction itself
UNKNOWN_STATUS_KINDS = frozenset({RpcErrorKind.RATE_LIMITED, RpcErrorKind.TIMEOUT, RpcErrorKind.CONNECTION})


def classify_rpc_failure(method: str, message: str, rpc_code: Optional[int]) -> RpcErrorKind:
    """
    Map a JSON-RPC error response to its RpcErrorKind.

    This is the only place error text is inspected.
    """
    lowered = message.lower()
    if rpc_code in RATE_LIMIT_RPC_CODES or "too many requests" in lowered or "rate limit" in lowered:
        return RpcErrorKind.RATE_LIMITED
    if method == "sendTransaction":
        if any(marker in lowered for marker in ALREADY_PROCESSED_MARKERS):
            return RpcErrorKind.ALREADY_PROCESSED
        return RpcErrorKind.SEND_FAILED
    return RpcErrorKind.NODE_ERROR


@dataclass
class RpcClientConfig:
    """
    RPC client runtime configuration

    Allows per-client overrides while pulling defaults from the global config.

    Usage:
        config = RpcClientConfig(timeout_seconds=60, commitment="finalized")
        client = RpcClient(endpoint, config=config)
    """
    timeout_seconds: float = None
    commitment: str = None
    confirmation_timeout: float = None
    poll_interval: float = None

    def __post_init__(self):
        """Apply defaults from global config for any unset values"""
        if self.timeout_seconds is None:
            self.timeout_seconds = global_config.rpc.timeout_seconds
        if self.commitment is None:
            self.commitment = global_config.rpc.commitment
        if self.confirmation_timeout is None:
            self.confirmation_timeout = global_config.tx.confirmation_timeout
        if self.poll_interval is None:
            self.poll_interval = global_config.tx.confirmation_poll_interval


class RpcClient:
    """
    Unified Solana RPC client

    Every call is a single request; retry policy belongs to the caller.
    Connection failures rotate to the next endpoint before the error is raised.

    Usage:
        rpc = RpcClient("https://api.mainnet-beta.solana.com")
        lamports = rpc.get_balance("Address...")

        # Multiple endpoints with fallback
        rpc = RpcClient([
            "https://primary-rpc.example.com",
            "https://backup-rpc.example.com",
        ])
    """

    def __init__(
        self,
        endpoint: Union[str, List[str]],
        config: Optional[RpcClientConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        """
        Initialize RPC client

        Args:
            endpoint: RPC endpoint URL or list of URLs (for fallback)
            config: RPC configuration options
            http_client: Optional preconfigured httpx client
        """
        self._endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint)
        self._endpoints = [e for e in self._endpoints if e]
        if not self._endpoints:
            raise ConfigurationError.missing("RPC endpoint")

        self._config = config or RpcClientConfig()
        self._current_endpoint_idx = 0
        self._client: Optional[httpx.Client] = http_client
        self._client_lock = threading.Lock()

    @property
    def endpoint(self) -> str:
        """Current active endpoint"""
        return self._endpoints[self._current_endpoint_idx]

    @property
    def commitment(self) -> str:
        """Default commitment level"""
        return self._config.commitment

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (thread-safe)"""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(
                        timeout=self._config.timeout_seconds,
                        headers={"Content-Type": "application/json"},
                    )
        return self._client

    def _rotate_endpoint(self):
        """Rotate to next endpoint on failure"""
        if len(self._endpoints) > 1:
            self._current_endpoint_idx = (self._current_endpoint_idx + 1) % len(self._endpoints)
            logger.info(f"Rotating to RPC endpoint: {self.endpoint}")

    def call(
        self,
        method: str,
        params: List[Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Make JSON-RPC call

        Args:
            method: RPC method name
            params: RPC parameters
            timeout: Optional timeout override

        Returns:
            RPC result

        Raises:
            RpcError: On RPC failure, tagged with its RpcErrorKind
        """
        client = self._get_client()
        body = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": method,
            "params": params,
        }
        endpoint = self.endpoint
        timeout_val = timeout or self._config.timeout_seconds

        try:
            response = client.post(endpoint, json=body, timeout=timeout_val)
        except httpx.TimeoutException as e:
            self._rotate_endpoint()
            raise RpcError.timeout(endpoint, timeout_val, e)
        except httpx.RequestError as e:
            self._rotate_endpoint()
            raise RpcError.connection_failed(endpoint, e)

        if response.status_code == 429:
            logger.warning(f"Rate limited by {endpoint}")
            raise RpcError.rate_limited(endpoint)

        if response.status_code != 200:
            raise RpcError(
                f"HTTP error {response.status_code}",
                RpcErrorKind.NODE_ERROR,
                endpoint=endpoint,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise RpcError(
                "Invalid RPC response: body is not JSON",
                RpcErrorKind.INVALID_RESPONSE,
                original_error=e,
                endpoint=endpoint,
            )

        if not isinstance(result, dict):
            raise RpcError.invalid_response(endpoint, "expected a JSON object")

        if "error" in result:
            error = result["error"] or {}
            error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            error_code = error.get("code") if isinstance(error, dict) else None
            kind = classify_rpc_failure(method, error_msg, error_code)
            raise RpcError(
                f"RPC error: {error_msg}",
                kind,
                endpoint=endpoint,
                rpc_code=error_code,
            )

        return result.get("result")

    def _value(self, method: str, result: Any) -> Any:
        """Unwrap the {"context", "value"} envelope"""
        if not isinstance(result, dict) or "value" not in result:
            raise RpcError.invalid_response(self.endpoint, f"{method} result has no value")
        return result["value"]

    def get_latest_blockhash(
        self,
        commitment: Optional[str] = None,
    ) -> BlockhashInfo:
        """
        Get latest blockhash

        Returns:
            BlockhashInfo with blockhash and lastValidBlockHeight
        """
        params = [{"commitment": commitment or self.commitment}]
        value = self._value("getLatestBlockhash", self.call("getLatestBlockhash", params))
        if not isinstance(value, dict) or not value.get("blockhash"):
            raise RpcError.invalid_response(self.endpoint, "getLatestBlockhash returned no blockhash")
        return BlockhashInfo(
            blockhash=value["blockhash"],
            last_valid_block_height=value.get("lastValidBlockHeight"),
        )

    def get_balance(
        self,
        address: str,
        commitment: Optional[str] = None,
    ) -> int:
        """
        Get SOL balance in lamports

        Args:
            address: Account address

        Returns:
            Balance in lamports
        """
        params = [address, {"commitment": commitment or self.commitment}]
        value = self._value("getBalance", self.call("getBalance", params))
        if not isinstance(value, int):
            raise RpcError.invalid_response(self.endpoint, "getBalance value is not an integer")
        return value

    def get_token_accounts_by_owner(
        self,
        owner: str,
        program_id: str = TOKEN_PROGRAM_ID,
        commitment: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Get parsed token accounts owned by address

        Args:
            owner: Owner address
            program_id: Token program filter

        Returns:
            List of {"pubkey", "account"} entries (jsonParsed encoding)
        """
        params = [
            owner,
            {"programId": program_id},
            {
                "encoding": "jsonParsed",
                "commitment": commitment or self.commitment,
            },
        ]
        value = self._value("getTokenAccountsByOwner", self.call("getTokenAccountsByOwner", params))
        if not isinstance(value, list):
            raise RpcError.invalid_response(self.endpoint, "getTokenAccountsByOwner value is not a list")
        return value

    def send_transaction(
        self,
        transaction: bytes,
        skip_preflight: bool = True,
        preflight_commitment: Optional[str] = None,
        max_retries: Optional[int] = 0,
    ) -> str:
        """
        Send signed transaction

        Args:
            transaction: Signed transaction bytes
            skip_preflight: Skip preflight simulation
            preflight_commitment: Preflight commitment level
            max_retries: Node-side rebroadcast count (0 disables it)

        Returns:
            Transaction signature (base58)
        """
        tx_data = base64.b64encode(transaction).decode("ascii")

        params = [
            tx_data,
            {
                "skipPreflight": skip_preflight,
                "preflightCommitment": preflight_commitment or self.commitment,
                "encoding": "base64",
            },
        ]
        if max_retries is not None:
            params[1]["maxRetries"] = max_retries

        signature = self.call("sendTransaction", params)
        if not isinstance(signature, str):
            raise RpcError.invalid_response(self.endpoint, "sendTransaction returned no signature")
        return signature

    def get_signature_status(self, signature: str) -> Optional[Dict[str, Any]]:
        """Status of one signature, or None if the node has not seen it"""
        result = self.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = self._value("getSignatureStatuses", result)
        if not isinstance(statuses, list) or not statuses:
            return None
        return statuses[0]

    def confirm_transaction(
        self,
        signature: str,
        commitment: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Confirmation:
        """
        Block until the transaction is included or reports an error

        Args:
            signature: Transaction signature
            commitment: Commitment level to wait for
            timeout_seconds: Max wait time

        Returns:
            Confirmation; ``err`` is set when the transaction failed on-chain

        Raises:
            RpcError: Status polling failed for a reason other than throttling or connectivity
            TransactionError: Not confirmed before the timeout
        """
        target = commitment or self.commitment
        if target in COMMITMENT_LEVELS:
            accepted = COMMITMENT_LEVELS[COMMITMENT_LEVELS.index(target):]
        else:
            accepted = COMMITMENT_LEVELS[1:]
        timeout_val = timeout_seconds if timeout_seconds is not None else self._config.confirmation_timeout
        deadline = time.monotonic() + timeout_val

        while True:
            try:
                status = self.get_signature_status(signature)
            except RpcError as e:
                if e.kind not in UNKNOWN_STATUS_KINDS:
                    raise
                # The transaction may still land; keep polling until the deadline
                logger.warning(f"Status poll for {signature} failed, polling again: {e}")
                status = None
            if status:
                if status.get("err"):
                    logger.warning(f"Transaction {signature} failed on-chain: {status.get('err')}")
                    return Confirmation(signature, err=status["err"],
                                        confirmation_status=status.get("confirmationStatus"))
                conf = status.get("confirmationStatus")
                if conf in accepted:
                    return Confirmation(signature, confirmation_status=conf)

            if time.monotonic() >= deadline:
                logger.warning(f"Transaction {signature} not confirmed within {timeout_val}s")
                raise TransactionError.confirmation_timeout(signature, timeout_val)

            time.sleep(self._config.poll_interval)

    def close(self):
        """Close HTTP client"""
        if self._client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
