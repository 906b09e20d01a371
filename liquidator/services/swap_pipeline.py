"""Sequential per-token swap execution: quote → build → sign → broadcast → confirm.

Each token runs through an explicit state machine. ``transition`` is pure
and decides the next state from the current attempt and the outcome of
its stage; ``SwapPipeline`` performs the I/O for each stage, sleeps the
backoff between attempts and reports events as it goes.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import AsyncIterator, Callable, Sequence, Union

from solders.transaction import VersionedTransaction

from ..chains.solana.transactions import decode_transaction, encode_transaction, restamp_blockhash
from ..config import OutputToken, SwapConfig
from ..errors import (
    BlockhashExpiredError,
    ConfirmationUnknownError,
    InvalidSwapAmountError,
    LiquidatorError,
    MalformedResponseError,
    QuoteExpiredError,
    SignerError,
    SwapCancelledError,
    TransactionFailedError,
    error_kind,
    is_retryable,
    user_message,
)
from ..interfaces.chain import ChainClient
from ..interfaces.signer import TransactionSigner
from ..interfaces.swap_aggregator import SwapAggregator
from ..models import AllocatedToken, Quote, SwapBatchResult, SwapResult

logger = logging.getLogger(__name__)


class SwapState(str, Enum):
    QUOTING = "quoting"
    BUILDING = "building"
    AWAITING_SIGNATURE = "awaiting_signature"
    BROADCASTING = "broadcasting"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SwapState.SUCCEEDED, SwapState.FAILED})

_NEXT_STAGE: dict[SwapState, SwapState] = {
    SwapState.QUOTING: SwapState.BUILDING,
    SwapState.BUILDING: SwapState.AWAITING_SIGNATURE,
    SwapState.AWAITING_SIGNATURE: SwapState.BROADCASTING,
    SwapState.BROADCASTING: SwapState.CONFIRMING,
    SwapState.CONFIRMING: SwapState.SUCCEEDED,
}


@dataclass(frozen=True)
class SwapAttempt:
    """Everything known about one token's swap at a given moment."""

    token: AllocatedToken
    state: SwapState = SwapState.QUOTING
    retry_count: int = 0
    quote: Quote | None = None
    unsigned_tx: VersionedTransaction | None = None
    last_valid_block_height: int | None = None
    signed_tx: VersionedTransaction | None = None
    signature: str | None = None
    error: BaseException | None = None

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class SwapEvent:
    """Observer notification: ``symbol`` entered ``state``."""

    symbol: str
    mint: str
    state: SwapState
    retry_count: int = 0
    detail: str = ""


def transition(
    attempt: SwapAttempt, error: BaseException | None, max_retries: int
) -> SwapAttempt:
    """Next attempt state given the outcome of the current stage.

    Success advances one stage. A retryable error restarts from QUOTING
    with a fresh record (the old quote and transactions are dropped, never
    replayed) until ``max_retries`` is used up; anything else is FAILED.
    """
    if attempt.terminal:
        raise ValueError(f"{attempt.token.symbol} is already {attempt.state.value}")

    if error is None:
        return replace(attempt, state=_NEXT_STAGE[attempt.state], error=None)

    if is_retryable(error) and attempt.retry_count < max_retries:
        return SwapAttempt(
            token=attempt.token,
            state=SwapState.QUOTING,
            retry_count=attempt.retry_count + 1,
            error=error,
        )

    return replace(attempt, state=SwapState.FAILED, error=error)


def backoff_delay(retry: int, base: float, cap: float) -> float:
    """Exponential backoff for the ``retry``-th retry (1-based), capped."""
    if retry <= 0:
        return 0.0
    return min(base * 2 ** (retry - 1), cap)


SwapUpdate = Union[SwapEvent, SwapResult]


class SwapPipeline:
    """Drive allocated tokens through the swap state machine, one at a time."""

    def __init__(
        self,
        chain: ChainClient,
        aggregator: SwapAggregator,
        signer: TransactionSigner,
        output: OutputToken,
        config: SwapConfig,
    ) -> None:
        self._chain = chain
        self._aggregator = aggregator
        self._signer = signer
        self._output = output
        self._config = config
        self._cancelled = False

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop before the next attempt; an in-flight broadcast still completes."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _quote(self, attempt: SwapAttempt) -> SwapAttempt:
        token = attempt.token
        raw_amount = token.raw_swap_amount
        if raw_amount <= 0:
            raise InvalidSwapAmountError(f"invalid amount for {token.symbol}: {raw_amount}")

        quote = await self._aggregator.get_quote(
            token.mint, self._output.mint, raw_amount, self._config.slippage_bps
        )
        logger.debug(
            "Quote for %s: %d -> %d %s",
            token.symbol, quote.in_amount, quote.out_amount, self._output.symbol,
        )
        return replace(attempt, quote=quote)

    async def _build(self, attempt: SwapAttempt) -> SwapAttempt:
        quote = attempt.quote
        if quote is None or time.monotonic() - quote.fetched_at > self._config.quote_ttl:
            raise QuoteExpiredError(f"quote for {attempt.token.symbol} expired")

        blockhash, last_valid_block_height = await self._chain.get_latest_blockhash()
        blob = await self._aggregator.build_swap_transaction(quote, self._signer.public_key)
        tx = restamp_blockhash(decode_transaction(blob), blockhash)
        return replace(
            attempt, unsigned_tx=tx, last_valid_block_height=last_valid_block_height
        )

    async def _sign(self, attempt: SwapAttempt) -> SwapAttempt:
        try:
            signed = await self._signer.sign_transaction(attempt.unsigned_tx)
        except SignerError:
            raise
        except Exception as e:
            raise SignerError(f"transaction signing failed: {e}") from e
        return replace(attempt, signed_tx=signed)

    async def _broadcast(self, attempt: SwapAttempt) -> SwapAttempt:
        signature = await self._chain.send_raw_transaction(
            encode_transaction(attempt.signed_tx)
        )
        if not signature:
            raise MalformedResponseError("failed to send transaction - no signature returned")
        return replace(attempt, signature=signature)

    async def _confirm(self, attempt: SwapAttempt) -> SwapAttempt:
        # Only an expired blockhash or an on-chain error proves the
        # transaction can no longer land; anything else must not re-broadcast.
        try:
            await self._chain.confirm_transaction(
                attempt.signature,
                attempt.last_valid_block_height,
                timeout=self._config.confirm_timeout,
                poll_interval=self._config.confirm_poll_interval,
            )
        except (BlockhashExpiredError, TransactionFailedError):
            raise
        except Exception as e:
            raise ConfirmationUnknownError(attempt.signature, e) from e
        return attempt

    async def _run_stage(self, attempt: SwapAttempt) -> SwapAttempt:
        handlers = {
            SwapState.QUOTING: self._quote,
            SwapState.BUILDING: self._build,
            SwapState.AWAITING_SIGNATURE: self._sign,
            SwapState.BROADCASTING: self._broadcast,
            SwapState.CONFIRMING: self._confirm,
        }
        return await handlers[attempt.state](attempt)

    # ------------------------------------------------------------------
    # Per-token driver
    # ------------------------------------------------------------------

    def _result(self, attempt: SwapAttempt) -> SwapResult:
        token = attempt.token
        if attempt.state is SwapState.SUCCEEDED:
            amount_out = None
            if attempt.quote is not None:
                amount_out = attempt.quote.out_amount / 10**self._output.decimals
            return SwapResult(
                symbol=token.symbol,
                mint=token.mint,
                amount_in=token.swap_amount,
                liquidation_value=token.liquidation_value,
                retry_count=attempt.retry_count,
                amount_out=amount_out,
                signature=attempt.signature,
            )

        error = attempt.error or LiquidatorError("unknown error")
        return SwapResult(
            symbol=token.symbol,
            mint=token.mint,
            amount_in=token.swap_amount,
            liquidation_value=token.liquidation_value,
            retry_count=attempt.retry_count,
            error=user_message(error, self._signer.is_hardware),
            error_kind=error_kind(error),
        )

    async def _run_token(self, token: AllocatedToken) -> AsyncIterator[SwapUpdate]:
        cfg = self._config
        attempt = SwapAttempt(token=token)
        yield SwapEvent(token.symbol, token.mint, attempt.state)

        while not attempt.terminal:
            error: BaseException | None = None

            if attempt.state is SwapState.QUOTING and self._cancelled:
                error = SwapCancelledError(f"swap of {token.symbol} cancelled")
            else:
                if attempt.state is SwapState.QUOTING:
                    logger.info(
                        "Processing %s (attempt %d): %.6f of %.6f",
                        token.symbol, attempt.retry_count + 1,
                        token.swap_amount, token.original_amount,
                    )
                try:
                    attempt = await self._run_stage(attempt)
                except Exception as e:
                    error = e
                    logger.warning(
                        "%s failed while %s: %s", token.symbol, attempt.state.value, e
                    )

            attempt = transition(attempt, error, cfg.max_retries)
            yield SwapEvent(
                token.symbol, token.mint, attempt.state, attempt.retry_count,
                detail=str(error) if error else "",
            )

            if error is not None and attempt.state is SwapState.QUOTING:
                delay = backoff_delay(attempt.retry_count, cfg.backoff_base, cfg.backoff_max)
                logger.info(
                    "Retrying %s (retry %d) in %.1fs", token.symbol, attempt.retry_count, delay
                )
                await asyncio.sleep(delay)

        result = self._result(attempt)
        if result.succeeded:
            logger.info("Swapped %s: %s", token.symbol, result.signature)
        else:
            logger.error(
                "Failed to swap %s after %d retries: %s",
                token.symbol, attempt.retry_count, result.error,
            )
        yield result

    # ------------------------------------------------------------------
    # Batch API
    # ------------------------------------------------------------------

    async def stream(self, tokens: Sequence[AllocatedToken]) -> AsyncIterator[SwapUpdate]:
        """Yield state events and one SwapResult per token, in input order."""
        for index, token in enumerate(tokens):
            async for update in self._run_token(token):
                yield update
            if index < len(tokens) - 1 and not self._cancelled:
                await asyncio.sleep(self._config.inter_token_delay)

    async def execute(
        self,
        tokens: Sequence[AllocatedToken],
        on_event: Callable[[SwapEvent], None] | None = None,
        on_result: Callable[[SwapResult], None] | None = None,
    ) -> SwapBatchResult:
        results: list[SwapResult] = []
        async for update in self.stream(tokens):
            if isinstance(update, SwapResult):
                results.append(update)
                if on_result:
                    on_result(update)
            elif on_event:
                on_event(update)

        batch = SwapBatchResult(tuple(results))
        logger.info(
            "Liquidation finished: %d succeeded, %d failed",
            len(batch.succeeded), len(batch.failed),
        )
        return batch
