"""
Exception definitions for PeelyBot
"""

from enum import Enum
from typing import Optional
from decimal import Decimal


class ErrorCode(Enum):
    """
    Unified error codes for bot operations

    1xxx - RPC errors
    2xxx - Transaction errors
    3xxx - Upstream service errors
    4xxx - Wallet errors
    6xxx - Signer errors
    7xxx - Operation errors
    9xxx - Configuration errors
    """
    # RPC errors
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"
    RPC_NODE_ERROR = "1005"

    # Transaction errors
    TX_SEND_FAILED = "2002"
    TX_CONFIRMATION_FAILED = "2003"
    TX_INSUFFICIENT_FUNDS = "2004"
    TX_BLOCKHASH_UNAVAILABLE = "2005"
    TX_ALREADY_PROCESSED = "2006"
    TX_ONCHAIN_REJECTED = "2007"
    TX_RETRIES_EXHAUSTED = "2008"
    TX_INSUFFICIENT_RESERVE = "2009"

    # Upstream service errors
    QUOTE_REJECTED = "3001"
    UPSTREAM_MALFORMED = "3002"

    # Wallet errors
    WALLET_NOT_FOUND = "4001"
    REFERRAL_ALREADY_SET = "4002"

    # Signer errors
    SIGNER_FAILED = "6002"

    # Operation errors
    OPERATION_IN_PROGRESS = "7001"
    OPERATION_FAILED = "7002"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class BotError(Exception):
    """
    Base exception for all bot errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the operation should be retried"""
        return self.recoverable


class RpcErrorKind(Enum):
    """
    Closed set of RPC failure variants.

    Produced once at the RPC boundary so callers match on the kind
    instead of inspecting error text.
    """
    CONNECTION = "connection"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    SEND_FAILED = "send_failed"
    ALREADY_PROCESSED = "already_processed"
    NODE_ERROR = "node_error"
    INVALID_RESPONSE = "invalid_response"


_KIND_CODES = {
    RpcErrorKind.CONNECTION: ErrorCode.RPC_CONNECTION_FAILED,
    RpcErrorKind.TIMEOUT: ErrorCode.RPC_TIMEOUT,
    RpcErrorKind.RATE_LIMITED: ErrorCode.RPC_RATE_LIMITED,
    RpcErrorKind.SEND_FAILED: ErrorCode.TX_SEND_FAILED,
    RpcErrorKind.ALREADY_PROCESSED: ErrorCode.TX_ALREADY_PROCESSED,
    RpcErrorKind.NODE_ERROR: ErrorCode.RPC_NODE_ERROR,
    RpcErrorKind.INVALID_RESPONSE: ErrorCode.RPC_INVALID_RESPONSE,
}


class RpcError(BotError):
    """
    RPC-related errors

    Raised when:
    - Connection to RPC endpoint fails
    - Request times out
    - Rate limit is hit
    - The node rejects a submitted transaction
    """

    def __init__(
        self,
        message: str,
        kind: RpcErrorKind = RpcErrorKind.CONNECTION,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
        rpc_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            _KIND_CODES[kind],
            recoverable=kind in (RpcErrorKind.RATE_LIMITED, RpcErrorKind.SEND_FAILED),
            original_error=original_error,
            details={"endpoint": endpoint, "rpc_error_code": rpc_code},
        )
        self.kind = kind
        self.endpoint = endpoint
        self.rpc_code = rpc_code

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            RpcErrorKind.CONNECTION,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float, error: Exception = None) -> "RpcError":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            RpcErrorKind.TIMEOUT,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(
            "429 Too Many Requests",
            RpcErrorKind.RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def invalid_response(cls, endpoint: str, reason: str) -> "RpcError":
        return cls(
            f"Invalid RPC response: {reason}",
            RpcErrorKind.INVALID_RESPONSE,
            endpoint=endpoint,
        )


class TransactionError(BotError):
    """
    Transaction execution errors

    Raised when:
    - A transaction cannot be built or signed
    - Confirmation does not arrive in time
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SEND_FAILED,
        signature: Optional[str] = None,
        recoverable: bool = False,
    ):
        super().__init__(
            message,
            code,
            recoverable=recoverable,
            details={"signature": signature},
        )
        self.signature = signature

    @classmethod
    def confirmation_timeout(cls, signature: str, timeout_seconds: float) -> "TransactionError":
        return cls(
            f"Transaction {signature} was not confirmed within {timeout_seconds}s",
            ErrorCode.TX_CONFIRMATION_FAILED,
            signature=signature,
        )

    @classmethod
    def invalid_destination(cls, address: str) -> "TransactionError":
        return cls(f"Invalid destination address: {address}", ErrorCode.OPERATION_FAILED)


class InsufficientFunds(BotError):
    """
    Insufficient balance for the requested amount - not recoverable without deposit
    """

    def __init__(
        self,
        message: str,
        required: Optional[Decimal] = None,
        available: Optional[Decimal] = None,
    ):
        super().__init__(
            message,
            ErrorCode.TX_INSUFFICIENT_FUNDS,
            recoverable=False,
            details={
                "required": str(required) if required is not None else None,
                "available": str(available) if available is not None else None,
            },
        )
        self.required = required
        self.available = available

    @classmethod
    def sol_balance(cls, required: Decimal, available: Decimal) -> "InsufficientFunds":
        return cls(
            f"Insufficient SOL balance: need {required}, have {available}",
            required=required,
            available=available,
        )


class InsufficientReserve(BotError):
    """
    Wallet balance is below the rent-exempt reserve

    Always raised before any transaction is built.
    """

    def __init__(self, balance_lamports: int, reserve_lamports: int):
        super().__init__(
            "Account does not have enough SOL to cover rent exemption.",
            ErrorCode.TX_INSUFFICIENT_RESERVE,
            recoverable=False,
            details={"balance_lamports": balance_lamports, "reserve_lamports": reserve_lamports},
        )
        self.balance_lamports = balance_lamports
        self.reserve_lamports = reserve_lamports

    @property
    def balance_sol(self) -> Decimal:
        return Decimal(self.balance_lamports) / Decimal(10 ** 9)


class QuotingServiceRejection(BotError):
    """
    Trade quoting service answered with a non-200 status - terminal, never retried
    """

    def __init__(self, status_code: int, reason: str = ""):
        super().__init__(
            f"Failed to generate transaction: {reason or status_code}",
            ErrorCode.QUOTE_REJECTED,
            recoverable=False,
            details={"status_code": status_code, "reason": reason},
        )
        self.status_code = status_code
        self.reason = reason


class MalformedUpstreamResponse(BotError):
    """
    An upstream payload did not match the expected shape
    """

    def __init__(self, source: str, reason: str, original_error: Optional[Exception] = None):
        super().__init__(
            f"Malformed response from {source}: {reason}",
            ErrorCode.UPSTREAM_MALFORMED,
            recoverable=False,
            original_error=original_error,
            details={"source": source},
        )
        self.source = source
        self.reason = reason


class RetriesExhausted(BotError):
    """
    All attempts failed with transient errors

    Distinct from a terminal failure, which propagates the original exception.
    """

    def __init__(
        self,
        operation: str,
        attempts: int,
        last_error: Optional[Exception] = None,
        code: ErrorCode = ErrorCode.TX_RETRIES_EXHAUSTED,
    ):
        message = f"{operation} failed after {attempts} attempts"
        if last_error is not None:
            message += f". Last error: {last_error}"
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=last_error,
            details={"operation": operation, "attempts": attempts},
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class BlockhashUnavailable(RetriesExhausted):
    """
    The latest blockhash could not be fetched after all attempts
    """

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        super().__init__(
            "get_latest_blockhash",
            attempts,
            last_error=last_error,
            code=ErrorCode.TX_BLOCKHASH_UNAVAILABLE,
        )
        self.message = "Failed to fetch the latest blockhash: All retry attempts failed."


class SignerError(BotError):
    """
    Signing-related errors
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.SIGNER_FAILED):
        super().__init__(message, code, recoverable=False)


class WalletNotFound(BotError):
    """No custodial wallet exists for the user"""

    def __init__(self, user_id: str):
        super().__init__(
            "No wallet found. Please start by generating a wallet.",
            ErrorCode.WALLET_NOT_FOUND,
            details={"user_id": user_id},
        )
        self.user_id = user_id


class ReferralAlreadySet(BotError):
    """A referrer was already attributed to the user (first write wins)"""

    def __init__(self, user_id: str, existing_referrer_id: str):
        super().__init__(
            f"User {user_id} already has referrer {existing_referrer_id}",
            ErrorCode.REFERRAL_ALREADY_SET,
            details={"user_id": user_id, "referrer_id": existing_referrer_id},
        )
        self.user_id = user_id
        self.existing_referrer_id = existing_referrer_id


class OperationInProgress(BotError):
    """Another operation for the same user is still in flight"""

    def __init__(self, user_id: str, operation: Optional[str] = None):
        super().__init__(
            "Another operation is already in progress. Please wait for it to finish.",
            ErrorCode.OPERATION_IN_PROGRESS,
            details={"user_id": user_id, "operation": operation},
        )
        self.user_id = user_id
        self.operation = operation


class ConfigurationError(BotError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)
