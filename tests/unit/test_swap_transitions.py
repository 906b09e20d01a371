"""Unit tests for the swap state machine: pure transitions and backoff."""
from __future__ import annotations

import pytest

from conftest import JUP_MINT, make_holding
from liquidator.errors import (
    ConfirmationUnknownError,
    HttpStatusError,
    InvalidSwapAmountError,
    QuoteExpiredError,
    SignerRejectedError,
    SignerTimeoutError,
    SwapCancelledError,
    TransactionFailedError,
)
from liquidator.services.allocation import allocate
from liquidator.services.swap_pipeline import (
    SwapAttempt,
    SwapState,
    backoff_delay,
    transition,
)


@pytest.fixture()
def attempt() -> SwapAttempt:
    token = allocate([make_holding("JUP", JUP_MINT, 100.0, price=1.0)], 100.0, 0.5)[0]
    return SwapAttempt(token=token)


# ---------------------------------------------------------------------------
# transition
# ---------------------------------------------------------------------------


class TestTransition:
    def test_happy_path_visits_every_stage(self, attempt: SwapAttempt) -> None:
        states = []
        while not attempt.terminal:
            attempt = transition(attempt, None, max_retries=2)
            states.append(attempt.state)
        assert states == [
            SwapState.BUILDING,
            SwapState.AWAITING_SIGNATURE,
            SwapState.BROADCASTING,
            SwapState.CONFIRMING,
            SwapState.SUCCEEDED,
        ]

    def test_retryable_error_restarts_from_quoting(self, attempt: SwapAttempt) -> None:
        building = transition(attempt, None, 2)
        retried = transition(building, QuoteExpiredError("stale"), 2)

        assert retried.state is SwapState.QUOTING
        assert retried.retry_count == 1
        assert retried.quote is None
        assert isinstance(retried.error, QuoteExpiredError)

    def test_retries_exhausted_fails(self, attempt: SwapAttempt) -> None:
        error = HttpStatusError(500)
        for expected in (1, 2):
            attempt = transition(attempt, error, max_retries=2)
            assert attempt.state is SwapState.QUOTING
            assert attempt.retry_count == expected

        attempt = transition(attempt, error, max_retries=2)
        assert attempt.state is SwapState.FAILED
        assert attempt.retry_count == 2

    def test_zero_retries_fails_immediately(self, attempt: SwapAttempt) -> None:
        result = transition(attempt, TransactionFailedError("boom"), max_retries=0)
        assert result.state is SwapState.FAILED
        assert result.retry_count == 0

    @pytest.mark.parametrize(
        "error",
        [
            SignerRejectedError("no"),
            InvalidSwapAmountError("0"),
            SwapCancelledError("stop"),
            ConfirmationUnknownError("sig", TimeoutError("slow")),
        ],
    )
    def test_permanent_errors_never_retry(self, attempt: SwapAttempt, error) -> None:
        result = transition(attempt, error, max_retries=5)
        assert result.state is SwapState.FAILED
        assert result.retry_count == 0
        assert result.error is error

    def test_signer_timeout_is_retried(self, attempt: SwapAttempt) -> None:
        result = transition(attempt, SignerTimeoutError("slow"), max_retries=1)
        assert result.state is SwapState.QUOTING

    def test_unknown_exception_is_retried(self, attempt: SwapAttempt) -> None:
        result = transition(attempt, RuntimeError("?"), max_retries=1)
        assert result.state is SwapState.QUOTING

    def test_terminal_attempt_rejects_transition(self, attempt: SwapAttempt) -> None:
        failed = transition(attempt, SignerRejectedError("no"), 2)
        with pytest.raises(ValueError, match="already failed"):
            transition(failed, None, 2)

    def test_does_not_mutate_input(self, attempt: SwapAttempt) -> None:
        transition(attempt, None, 2)
        assert attempt.state is SwapState.QUOTING


# ---------------------------------------------------------------------------
# backoff_delay
# ---------------------------------------------------------------------------


class TestBackoffDelay:
    def test_exponential(self) -> None:
        assert [backoff_delay(r, 1.0, 100.0) for r in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self) -> None:
        assert backoff_delay(10, 1.0, 8.0) == 8.0

    def test_no_delay_before_first_retry(self) -> None:
        assert backoff_delay(0, 1.0, 8.0) == 0.0
