"""Sequential USD pricing through same-amount quotes into the stable asset."""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable

from ..chains.solana.rate_limiter import RateLimiter
from ..config import PricingConfig
from ..errors import HttpStatusError, QuoteUnavailableError
from ..interfaces.swap_aggregator import SwapAggregator
from ..models import PriceProgress, PriceStatus, TokenHolding

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PriceProgress], None]


class PriceService:
    """Price holdings one at a time against the quote service.

    Tokens are never priced concurrently: every quote shares one rate
    limiter, and progress must advance monotonically.
    """

    def __init__(
        self,
        aggregator: SwapAggregator,
        config: PricingConfig,
        limiter: RateLimiter,
    ) -> None:
        self._aggregator = aggregator
        self._config = config
        self._limiter = limiter

    async def _price_one(self, holding: TokenHolding) -> None:
        cfg = self._config

        if holding.mint == cfg.stable_mint:
            holding.price = 1.0
            holding.value = holding.ui_amount
            holding.price_status = PriceStatus.FIXED
            return

        await self._limiter.wait()
        amount = max(holding.raw_balance or holding.raw_amount(), cfg.min_quote_amount)
        logger.debug("Getting quote for %s: %s (raw: %d)", holding.symbol, holding.ui_amount, amount)

        try:
            quote = await self._aggregator.get_quote(holding.mint, cfg.stable_mint, amount)
        except QuoteUnavailableError:
            logger.info("%s is not tradable", holding.symbol)
            self._zero(holding, PriceStatus.NOT_TRADABLE)
            return
        except Exception as e:
            logger.error("Failed to get price for %s: %s", holding.symbol, e)
            self._zero(holding, PriceStatus.FAILED)
            if isinstance(e, HttpStatusError) and e.status == 429:
                logger.info("Rate limited, waiting %.1fs", cfg.rate_limit_cooldown)
                await asyncio.sleep(cfg.rate_limit_cooldown)
            return

        value = quote.out_amount / 10**cfg.stable_decimals
        holding.value = value
        holding.price = value / holding.ui_amount if holding.ui_amount > 0 else 0.0
        holding.price_status = PriceStatus.PRICED
        logger.info(
            "%s: %s -> $%.6f ($%.6f/token)",
            holding.symbol, holding.ui_amount, holding.value, holding.price,
        )

    @staticmethod
    def _zero(holding: TokenHolding, status: PriceStatus) -> None:
        holding.price = 0.0
        holding.value = 0.0
        holding.price_status = status

    async def stream_prices(
        self, holdings: list[TokenHolding]
    ) -> AsyncIterator[PriceProgress]:
        """Price ``holdings`` in order, yielding one progress event per token."""
        total = len(holdings)
        for index, holding in enumerate(holdings):
            await self._price_one(holding)
            yield PriceProgress(
                current=index + 1,
                total=total,
                current_item=holding.symbol,
                holding=holding,
            )
            if index < total - 1:
                await asyncio.sleep(self._config.inter_token_delay)

    async def price_tokens(
        self,
        holdings: list[TokenHolding],
        on_progress: ProgressCallback | None = None,
    ) -> list[TokenHolding]:
        """Populate price/value on every holding in place and return the list."""
        logger.info("Fetching prices for %d tokens", len(holdings))
        async for progress in self.stream_prices(holdings):
            if on_progress:
                on_progress(progress)

        priced = sum(1 for h in holdings if h.value > 0)
        logger.info(
            "Final results: %d priced, %d failed", priced, len(holdings) - priced
        )
        return holdings

    async def retry_failed(
        self,
        holdings: list[TokenHolding],
        on_progress: ProgressCallback | None = None,
    ) -> list[TokenHolding]:
        """Re-price only the holdings that ended up without a price."""
        failed = [h for h in holdings if h.price <= 0]
        if not failed:
            return []
        logger.info("Retrying %d failed tokens", len(failed))
        return await self.price_tokens(failed, on_progress)
