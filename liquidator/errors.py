"""Error taxonomy.

Every error raised by the client layer derives from ``LiquidatorError`` and
carries a ``retryable`` flag:

- Transient (retryable): unreachable or rate-limited endpoints, expired
  quotes or blockhashes, congestion, signer timeouts and disconnects.
- Permanent (non-retryable): invalid addresses, invalid swap amounts, an
  explicitly declined signature, cancellation, a broadcast transaction
  whose outcome could not be determined.

Errors local to one item (a token, a balance record) are absorbed into that
item's result; errors affecting a whole operation propagate to its caller.
"""
from __future__ import annotations

# HTTP statuses that mean "this endpoint won't serve us right now".
AUTH_OR_RATE_LIMIT_STATUSES = frozenset({401, 403, 429})


class LiquidatorError(Exception):
    """Base class for all client-layer errors."""

    retryable = True
    kind = "error"


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class HttpStatusError(LiquidatorError):
    """Non-2xx HTTP response."""

    kind = "http"

    def __init__(self, status: int, message: str = "") -> None:
        self.status = status
        super().__init__(f"HTTP {status}" + (f": {message}" if message else ""))

    @property
    def is_auth_or_rate_limit(self) -> bool:
        return self.status in AUTH_OR_RATE_LIMIT_STATUSES


class RpcError(LiquidatorError):
    """JSON-RPC error object returned by a node."""

    kind = "rpc"

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        super().__init__(f"RPC error {code}: {message}")


class MalformedResponseError(LiquidatorError):
    kind = "malformed_response"


class EndpointsExhaustedError(LiquidatorError):
    """Every failover attempt failed."""

    kind = "endpoints_exhausted"

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"All RPC endpoints failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )


class InvalidAddressError(LiquidatorError):
    retryable = False
    kind = "invalid_address"


# ---------------------------------------------------------------------------
# Quotes and swaps
# ---------------------------------------------------------------------------


class QuoteUnavailableError(LiquidatorError):
    """The aggregator has no route for the pair (HTTP 400)."""

    kind = "no_route"


class QuoteExpiredError(LiquidatorError):
    kind = "quote_expired"


class InvalidSwapAmountError(LiquidatorError):
    """Computed raw swap amount is not positive; never retried."""

    retryable = False
    kind = "invalid_amount"


class SwapCancelledError(LiquidatorError):
    retryable = False
    kind = "cancelled"


class TransactionFailedError(LiquidatorError):
    """Broadcast succeeded but the transaction failed on chain."""

    kind = "transaction_failed"


class BlockhashExpiredError(LiquidatorError):
    kind = "blockhash_expired"


class ConfirmationTimeoutError(LiquidatorError):
    kind = "confirmation_timeout"


class ConfirmationUnknownError(LiquidatorError):
    """A broadcast transaction could not be confirmed or ruled out.

    Its blockhash may still be valid, so a fresh swap could land alongside
    it. Never retried; the signature is kept so the operator can look it up.
    """

    retryable = False
    kind = "unknown_outcome"

    def __init__(self, signature: str, cause: BaseException) -> None:
        self.signature = signature
        self.cause = cause
        super().__init__(
            f"outcome of transaction {signature} is unknown: {cause}. "
            f"check it on an explorer before retrying"
        )


# ---------------------------------------------------------------------------
# Signing
# ---------------------------------------------------------------------------


class SignerError(LiquidatorError):
    kind = "signer_failed"


class SignerRejectedError(SignerError):
    """The user declined the signature request."""

    retryable = False
    kind = "signer_rejected"


class SignerTimeoutError(SignerError):
    kind = "signer_timeout"


class SignerUnavailableError(SignerError):
    """Device disconnected or signer otherwise unreachable."""

    kind = "signer_unavailable"


def is_retryable(error: BaseException) -> bool:
    """Unknown exceptions are treated as transient."""
    return getattr(error, "retryable", True)


def error_kind(error: BaseException) -> str:
    return getattr(error, "kind", type(error).__name__)


def user_message(error: BaseException, hardware: bool = False) -> str:
    """Human-facing wording; only signer errors depend on the device type."""
    if isinstance(error, SignerRejectedError):
        if hardware:
            return "transaction was rejected on your ledger device."
        return "you declined the signature request."
    if isinstance(error, SignerTimeoutError):
        if hardware:
            return "ledger signing timeout. please try again."
        return "signature request timed out. please try again."
    if isinstance(error, SignerUnavailableError):
        if hardware:
            return (
                "ledger device not found. please ensure your device is "
                "connected and the solana app is open."
            )
        return f"signer unavailable: {error}"
    if isinstance(error, InvalidSwapAmountError):
        return f"invalid swap amount: {error}"
    if isinstance(error, HttpStatusError) and error.status == 429:
        return "rate limited. please wait a moment and try again."
    return str(error) or type(error).__name__
