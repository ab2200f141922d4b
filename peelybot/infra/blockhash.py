"""
Latest blockhash access with backoff retry
"""

import logging
from typing import Optional

from .retry import execute_with_backoff
from .rpc import RpcClient
from ..config import config as global_config
from ..errors import BlockhashUnavailable, RetriesExhausted
from ..types import BlockhashInfo

logger = logging.getLogger(__name__)


class BlockhashProvider:
    """
    Fetches the blockhash every new transaction is anchored to.

    Any failure of the underlying call counts as transient. Once all
    attempts are spent ``BlockhashUnavailable`` is raised, which is fatal
    to the enclosing operation.

    Usage:
        provider = BlockhashProvider(rpc)
        info = provider.fetch_blockhash()
    """

    def __init__(
        self,
        rpc: RpcClient,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ):
        self._rpc = rpc
        self._max_attempts = max_attempts if max_attempts is not None else global_config.tx.blockhash_max_attempts
        self._base_delay = base_delay if base_delay is not None else global_config.tx.retry_base_delay

    def fetch_blockhash(self) -> BlockhashInfo:
        """
        Fetch the latest blockhash

        Raises:
            BlockhashUnavailable: All attempts failed
        """
        try:
            return execute_with_backoff(
                lambda attempt: self._rpc.get_latest_blockhash(),
                "get_latest_blockhash",
                max_attempts=self._max_attempts,
                base_delay=self._base_delay,
                is_transient=lambda e: True,
            )
        except RetriesExhausted as e:
            raise BlockhashUnavailable(e.attempts, last_error=e.last_error) from e
