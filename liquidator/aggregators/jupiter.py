"""Jupiter swap API client — quotes and swap-transaction building."""
from __future__ import annotations

import logging
import ssl
import time
from typing import Any

import aiohttp
import certifi

from ..config import JupiterConfig, SwapConfig
from ..errors import HttpStatusError, MalformedResponseError, QuoteUnavailableError
from ..models import Quote

logger = logging.getLogger(__name__)


class JupiterClient:
    """Thin async client for the Jupiter ``/swap/v1`` endpoints."""

    def __init__(self, config: JupiterConfig, swap: SwapConfig | None = None) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self._swap = swap or SwapConfig()

    def _session(self) -> aiohttp.ClientSession:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        return aiohttp.ClientSession(
            connector=connector, timeout=aiohttp.ClientTimeout(total=self.timeout)
        )

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        try:
            data = await response.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return response.reason or ""
        if isinstance(data, dict):
            return str(data.get("error") or data.get("message") or "")
        return ""

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int | None = None,
    ) -> Quote:
        """Request an ExactIn quote.

        Raises:
            QuoteUnavailableError: HTTP 400, no route / token not tradable.
            HttpStatusError: any other non-2xx status (429 included).
            MalformedResponseError: payload without ``outAmount``.
        """
        params: dict[str, str] = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": str(amount),
            "swapMode": "ExactIn",
        }
        if slippage_bps is not None:
            params["slippageBps"] = str(slippage_bps)

        async with self._session() as session:
            async with session.get(f"{self.base_url}/swap/v1/quote", params=params) as response:
                if response.status == 400:
                    detail = await self._error_detail(response)
                    raise QuoteUnavailableError(f"no route for {input_mint}: {detail}")
                if response.status != 200:
                    raise HttpStatusError(response.status, "quote")
                data = await response.json()

        if not isinstance(data, dict) or not data.get("outAmount"):
            raise MalformedResponseError(f"invalid quote response for {input_mint}")

        try:
            return Quote(
                input_mint=input_mint,
                output_mint=output_mint,
                in_amount=int(data.get("inAmount", amount)),
                out_amount=int(data["outAmount"]),
                slippage_bps=int(data.get("slippageBps", slippage_bps or 0)),
                price_impact_pct=float(data.get("priceImpactPct") or 0.0),
                fetched_at=time.monotonic(),
                raw=data,
            )
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"invalid quote response for {input_mint}: {e}") from e

    def _swap_body(self, quote: Quote, signer_address: str) -> dict[str, Any]:
        return {
            "quoteResponse": quote.raw,
            "userPublicKey": signer_address,
            "dynamicComputeUnitLimit": True,
            "dynamicSlippage": True,
            "prioritizationFeeLamports": {
                "priorityLevelWithMaxLamports": {
                    "maxLamports": self._swap.max_priority_lamports,
                    "priorityLevel": self._swap.priority_level,
                }
            },
            "wrapAndUnwrapSol": True,
            "asLegacyTransaction": False,
            "useSharedAccounts": True,
        }

    async def build_swap_transaction(self, quote: Quote, signer_address: str) -> str:
        """Return the base64 unsigned swap transaction for ``quote``."""
        async with self._session() as session:
            async with session.post(
                f"{self.base_url}/swap/v1/swap", json=self._swap_body(quote, signer_address)
            ) as response:
                if response.status != 200:
                    detail = await self._error_detail(response)
                    raise HttpStatusError(response.status, f"swap build failed: {detail}")
                data = await response.json()

        blob = data.get("swapTransaction") if isinstance(data, dict) else None
        if not blob:
            raise MalformedResponseError("no swap transaction returned from jupiter")
        return blob
