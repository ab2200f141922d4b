"""
Infrastructure layer for PeelyBot

Provides:
- RpcClient: HTTP JSON-RPC wrapper with failure classification
- BlockhashProvider: Latest blockhash with backoff retry
- LocalSigner: Transaction signing with a custodial keypair
- TxBuilder: Transfer and swap transaction assembly
- TxSubmitter: Submission and confirmation loop
"""

from .rpc import RpcClient, RpcClientConfig
from .retry import (
    CorrelationContext,
    backoff_delay,
    execute_with_backoff,
    get_correlation_id,
)
from .blockhash import BlockhashProvider
from .signer import LocalSigner
from .tx_builder import TxBuilder, create_transfer_instructions, is_valid_address, parse_address
from .submitter import TxSubmitter, is_transient_submission_error

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "CorrelationContext",
    "backoff_delay",
    "execute_with_backoff",
    "get_correlation_id",
    "BlockhashProvider",
    "LocalSigner",
    "TxBuilder",
    "create_transfer_instructions",
    "is_valid_address",
    "parse_address",
    "TxSubmitter",
    "is_transient_submission_error",
]
