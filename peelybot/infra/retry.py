"""
Retry Logic Helper Module

Provides exponential backoff with jitter for network operations.
Includes structured logging with correlation IDs for transaction tracing.
"""

import logging
import random
import time
import uuid
import contextvars
from typing import Callable, Optional, TypeVar

from ..errors import RetriesExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Context variable for correlation ID (thread-safe)
_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for transaction tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("buy") as cid:
            logger.info(f"[{cid}] Starting operation")
            result = submitter.submit(...)
    """

    def __init__(self, prefix: Optional[str] = None):
        """
        Initialize correlation context.

        Args:
            prefix: Optional prefix for the correlation ID (e.g., "buy", "withdraw")
        """
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    attempt: Optional[int] = None,
    max_attempts: Optional[int] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        attempt: Current attempt number (1-indexed)
        max_attempts: Maximum number of attempts
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if attempt is not None and max_attempts is not None:
        parts.append(f"[{attempt}/{max_attempts}]")
    parts.append(message)

    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "attempt": attempt,
        "max_attempts": max_attempts,
        **extra
    }

    logger.log(level, " ".join(parts), extra=extra_context)


def backoff_delay(attempt: int, base_delay: float) -> float:
    """
    Delay before the retry that follows a failed attempt.

    Args:
        attempt: 0-indexed number of the attempt that just failed
        base_delay: Base delay D in seconds

    Returns:
        D * 2**attempt + uniform(0, D), in seconds
    """
    return base_delay * (2 ** attempt) + random.uniform(0, base_delay)


def execute_with_backoff(
    operation: Callable[[int], T],
    operation_name: str,
    max_attempts: int,
    base_delay: float,
    is_transient: Callable[[Exception], bool],
) -> T:
    """
    Execute an operation, retrying transient failures with exponential backoff.

    Attempts run strictly one after another. Classification is left to the
    caller through ``is_transient``.

    Args:
        operation: Callable receiving the 0-indexed attempt number
        operation_name: Name for logging purposes
        max_attempts: Total number of attempts (at least 1)
        base_delay: Base delay D in seconds
        is_transient: Returns True when an exception may succeed on retry

    Returns:
        The operation's return value

    Raises:
        RetriesExhausted: Every attempt failed with a transient error
        Exception: The first terminal error, unchanged

    Example:
        def fetch(attempt: int) -> str:
            return rpc.get_latest_blockhash()["blockhash"]

        blockhash = execute_with_backoff(fetch, "get_latest_blockhash", 3, 1.0, lambda e: True)
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    last_error: Optional[Exception] = None

    for attempt in range(max_attempts):
        try:
            result = operation(attempt)
            if attempt > 0:
                log_with_correlation(
                    logging.INFO,
                    f"Succeeded after {attempt + 1} attempts",
                    operation_name,
                    attempt + 1,
                    max_attempts,
                )
            return result

        except Exception as e:
            if not is_transient(e):
                log_with_correlation(
                    logging.ERROR,
                    f"Failed: {e}",
                    operation_name,
                    attempt + 1,
                    max_attempts,
                    error_type="terminal",
                )
                raise

            last_error = e
            if attempt < max_attempts - 1:
                delay = backoff_delay(attempt, base_delay)
                log_with_correlation(
                    logging.WARNING,
                    f"Transient error: {e}. Retrying after {delay:.3f}s",
                    operation_name,
                    attempt + 1,
                    max_attempts,
                    error_type="transient",
                )
                time.sleep(delay)

    log_with_correlation(
        logging.ERROR,
        f"Max attempts ({max_attempts}) exceeded. Last error: {last_error}",
        operation_name,
        max_attempts,
        max_attempts,
    )
    raise RetriesExhausted(operation_name, max_attempts, last_error=last_error)
