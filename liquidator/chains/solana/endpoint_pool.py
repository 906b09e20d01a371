"""Round-robin RPC endpoint pool with per-endpoint rate limiting and failover."""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence, TypeVar

from ...config import FALLBACK_RPC_ENDPOINTS
from ...errors import EndpointsExhaustedError, HttpStatusError
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")


def endpoint_name(endpoint: str) -> str:
    """Short provider label for log lines (never logs API keys)."""
    if "quiknode" in endpoint:
        return "quicknode"
    if "helius" in endpoint:
        return "helius"
    if "alchemy" in endpoint:
        return "alchemy"
    if "serum" in endpoint:
        return "serum"
    if "mainnet-beta" in endpoint:
        return "solana mainnet"
    return "custom rpc"


class EndpointPool:
    """Interchangeable RPC endpoints, each owning its own RateLimiter."""

    def __init__(self, endpoints: Sequence[str], min_interval: float = 1.1) -> None:
        if not endpoints:
            logger.warning(
                "No RPC endpoints configured, using public fallback endpoints. "
                "Configure rpc.endpoints for better performance."
            )
            endpoints = FALLBACK_RPC_ENDPOINTS
        self.endpoints: tuple[str, ...] = tuple(endpoints)
        self._limiters = {e: RateLimiter(min_interval) for e in self.endpoints}
        self._index = 0
        logger.info("Endpoint pool initialized with %d endpoints", len(self.endpoints))

    def limiter_for(self, endpoint: str) -> RateLimiter:
        return self._limiters[endpoint]

    async def next_endpoint(self) -> str:
        """Rotate to the next endpoint and wait on its limiter."""
        endpoint = self.endpoints[self._index]
        self._index = (self._index + 1) % len(self.endpoints)
        await self._limiters[endpoint].wait()
        return endpoint

    async def execute_with_failover(
        self,
        operation: Callable[[str], Awaitable[T]],
        max_attempts: int = 3,
    ) -> T:
        """Run ``operation(endpoint)`` until it succeeds or attempts run out.

        Auth / rate-limit failures (401, 403, 429) rotate to the next
        endpoint without consuming an attempt, at most once per endpoint
        per call; anything beyond that counts as a regular failure.
        """
        attempts = 0
        skipped: set[str] = set()
        last_error: Exception | None = None

        while attempts < max_attempts:
            endpoint = await self.next_endpoint()
            name = endpoint_name(endpoint)
            try:
                logger.debug("Attempt %d with %s", attempts + 1, name)
                result = await operation(endpoint)
            except Exception as e:
                last_error = e
                if (
                    isinstance(e, HttpStatusError)
                    and e.is_auth_or_rate_limit
                    and endpoint not in skipped
                ):
                    skipped.add(endpoint)
                    logger.warning("Skipping %s due to auth/rate limit: %s", name, e)
                    continue
                attempts += 1
                logger.warning("Attempt %d failed with %s: %s", attempts, name, e)
                continue
            logger.debug("Success with %s", name)
            return result

        raise EndpointsExhaustedError(attempts, last_error) from last_error
