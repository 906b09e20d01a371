"""Swap aggregator protocol — quote and transaction-build service."""
from typing import Protocol

from ..models import Quote


class SwapAggregator(Protocol):
    """Abstract interface for a swap-aggregation service."""

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
    ) -> Quote: ...

    async def build_swap_transaction(self, quote: Quote, signer_address: str) -> str: ...
