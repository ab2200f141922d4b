"""
Transaction submission and confirmation loop

Each attempt fetches a fresh blockhash, rebuilds and signs the transaction,
sends it without preflight or node-side retries and waits for confirmation.

Outcome per attempt:
- included without error           -> SUCCESS
- included with an on-chain error  -> FAILED (terminal)
- RATE_LIMITED / SEND_FAILED       -> backoff, next attempt
- ALREADY_PROCESSED                -> DUPLICATE with the earliest signature
- confirmation wait fails          -> FAILED (a sent transaction is never resent)
- anything else                    -> FAILED (terminal)
"""

import json
import logging
from typing import Callable, List, Optional

from .blockhash import BlockhashProvider
from .retry import execute_with_backoff, log_with_correlation
from .rpc import RpcClient
from ..config import config as global_config
from ..errors import BotError, ErrorCode, RetriesExhausted, RpcError, RpcErrorKind
from ..types import SignedTx, TxResult

logger = logging.getLogger(__name__)

# RPC failure kinds that justify another attempt with a fresh blockhash
TRANSIENT_KINDS = frozenset({RpcErrorKind.RATE_LIMITED, RpcErrorKind.SEND_FAILED})

BuildFn = Callable[[str], SignedTx]


def is_transient_submission_error(error: Exception) -> bool:
    """True for the RPC failure kinds retried by the submission loop"""
    return isinstance(error, RpcError) and error.kind in TRANSIENT_KINDS


def _format_onchain_error(err: object) -> str:
    try:
        return json.dumps(err)
    except (TypeError, ValueError):
        return str(err)


class _AttemptLog:
    """Signatures handed to the node, oldest first"""

    def __init__(self):
        self.signatures: List[str] = []
        self.attempts = 0

    def earliest(self) -> Optional[str]:
        return self.signatures[0] if self.signatures else None


class TxSubmitter:
    """
    Drives a transaction to a terminal outcome

    Usage:
        submitter = TxSubmitter(rpc)
        result = submitter.submit(
            lambda blockhash: builder.build_transfer(transfers, blockhash),
            "withdraw",
        )
    """

    def __init__(
        self,
        rpc: RpcClient,
        blockhash_provider: Optional[BlockhashProvider] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        skip_preflight: Optional[bool] = None,
        confirmation_timeout: Optional[float] = None,
    ):
        """
        Args:
            rpc: RPC client
            blockhash_provider: Blockhash source (defaults to one over ``rpc``)
            max_retries: Retries after the first attempt
            base_delay: Backoff base delay in seconds
            skip_preflight: Skip node simulation before broadcast
            confirmation_timeout: Max wait for confirmation per attempt
        """
        self._rpc = rpc
        self._blockhash = blockhash_provider or BlockhashProvider(rpc)
        self._max_retries = max_retries if max_retries is not None else global_config.tx.max_retries
        self._base_delay = base_delay if base_delay is not None else global_config.tx.retry_base_delay
        self._skip_preflight = skip_preflight if skip_preflight is not None else global_config.tx.skip_preflight
        self._confirmation_timeout = (
            confirmation_timeout if confirmation_timeout is not None
            else global_config.tx.confirmation_timeout
        )

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    def _attempt(self, build: BuildFn, log: _AttemptLog, operation_name: str) -> TxResult:
        log.attempts += 1
        blockhash = self._blockhash.fetch_blockhash().blockhash
        signed = build(blockhash)

        # Recorded before broadcast: a send that errors may still have reached the node
        log.signatures.append(signed.signature)
        try:
            signature = self._rpc.send_transaction(
                signed.raw,
                skip_preflight=self._skip_preflight,
                max_retries=0,
            )
        except RpcError as e:
            if e.kind == RpcErrorKind.ALREADY_PROCESSED:
                earlier = log.earliest()
                log_with_correlation(
                    logging.INFO,
                    f"Transaction already processed, skipping retry ({earlier})",
                    operation_name,
                    log.attempts,
                    self.max_attempts,
                )
                return TxResult.duplicate(earlier, attempts=log.attempts)
            raise

        log_with_correlation(
            logging.INFO,
            f"Transaction sent: {signature}",
            operation_name,
            log.attempts,
            self.max_attempts,
        )

        # Once the node accepted the transaction it is never broadcast again
        try:
            confirmation = self._rpc.confirm_transaction(
                signature,
                timeout_seconds=self._confirmation_timeout,
            )
        except BotError as e:
            log_with_correlation(
                logging.ERROR,
                f"Confirmation failed: {e}",
                operation_name,
                log.attempts,
                self.max_attempts,
                signature=signature,
            )
            return TxResult.failed(
                e.message,
                signature=signature,
                error_code=ErrorCode.TX_CONFIRMATION_FAILED.value,
                attempts=log.attempts,
            )

        if confirmation.is_error:
            error = _format_onchain_error(confirmation.err)
            log_with_correlation(
                logging.ERROR,
                f"Transaction failed on-chain: {error}",
                operation_name,
                log.attempts,
                self.max_attempts,
                signature=signature,
            )
            return TxResult.failed(
                error,
                signature=signature,
                error_code=ErrorCode.TX_ONCHAIN_REJECTED.value,
                attempts=log.attempts,
            )

        return TxResult.success(signature, attempts=log.attempts)

    def submit(self, build: BuildFn, operation_name: str) -> TxResult:
        """
        Submit until a terminal outcome is reached

        Args:
            build: Builds a signed transaction for the given blockhash.
                Called once per attempt.
            operation_name: Name for logging purposes

        Returns:
            TxResult with status SUCCESS, DUPLICATE, FAILED or EXHAUSTED
        """
        log = _AttemptLog()

        try:
            return execute_with_backoff(
                lambda attempt: self._attempt(build, log, operation_name),
                operation_name,
                max_attempts=self.max_attempts,
                base_delay=self._base_delay,
                is_transient=is_transient_submission_error,
            )
        except RetriesExhausted as e:
            if e.code != ErrorCode.TX_RETRIES_EXHAUSTED:
                # Blockhash exhaustion ends the operation without further submission attempts
                return TxResult.failed(e.message, error_code=e.code.value, attempts=log.attempts)
            return TxResult.exhausted(
                str(e.last_error) if e.last_error else e.message,
                error_code=e.code.value,
                attempts=log.attempts,
            )
        except BotError as e:
            return TxResult.failed(e.message, error_code=e.code.value, attempts=log.attempts)
        except Exception as e:
            logger.exception(f"[{operation_name}] Unexpected error sending transaction")
            return TxResult.failed(str(e), error_code=ErrorCode.OPERATION_FAILED.value, attempts=log.attempts)
