"""GoPlus token security lookups with an in-memory TTL cache."""
from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any

import aiohttp
import certifi

from ..config import SafetyConfig
from ..errors import HttpStatusError
from ..models import SafetyLevel, TokenSafety
from .token_list import FALLBACK_TOKENS

logger = logging.getLogger(__name__)

# Native SOL and the major stablecoins are trusted without a lookup.
VERIFIED_MINTS = frozenset(t.address for t in FALLBACK_TOKENS)


def unknown_safety() -> TokenSafety:
    return TokenSafety(
        level=SafetyLevel.UNKNOWN,
        source="unknown",
        risks=("Unable to verify token safety",),
        checked_at=time.time(),
    )


def parse_goplus_response(data: dict[str, Any], mint: str) -> TokenSafety:
    token_data = (data.get("result") or {}).get(mint)
    if not token_data:
        return unknown_safety()

    mintable = str(token_data.get("is_mintable")) == "1"
    freezable = str(token_data.get("is_freezable")) == "1"

    risks: list[str] = []
    if mintable:
        risks.append("Mint authority active")
    if freezable:
        risks.append("Freeze authority active")

    if not risks:
        level = SafetyLevel.GOOD
    elif len(risks) == 1:
        level = SafetyLevel.WARNING
    else:
        level = SafetyLevel.DANGER

    try:
        holders = int(token_data.get("holder_count") or 0)
    except (TypeError, ValueError):
        holders = 0

    return TokenSafety(
        level=level,
        source="goplus",
        risks=tuple(risks),
        mint_authority=mintable,
        freeze_authority=freezable,
        holder_count=holders,
        checked_at=time.time(),
    )


class GoPlusSafetyService:
    """Optional token-risk annotations; failures degrade to UNKNOWN."""

    def __init__(self, config: SafetyConfig) -> None:
        self.enabled = config.enabled
        self.url = config.goplus_url
        self.ttl = config.cache_ttl_hours * 3600
        self.batch_size = max(1, config.batch_size)
        self.batch_delay = config.batch_delay
        self._cache: dict[str, TokenSafety] = {}

    def _cached(self, mint: str) -> TokenSafety | None:
        entry = self._cache.get(mint)
        if entry and time.time() - entry.checked_at < self.ttl:
            return entry
        self._cache.pop(mint, None)
        return None

    async def _fetch(self, mint: str) -> TokenSafety:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.get(self.url, params={"contract_addresses": mint}) as response:
                if response.status != 200:
                    raise HttpStatusError(response.status, "goplus")
                data = await response.json()
        return parse_goplus_response(data, mint)

    async def fetch_safety(self, mint: str) -> TokenSafety:
        if not self.enabled:
            return unknown_safety()
        if mint in VERIFIED_MINTS:
            return TokenSafety(
                level=SafetyLevel.VERIFIED, source="token_list", checked_at=time.time()
            )

        cached = self._cached(mint)
        if cached:
            return cached

        try:
            safety = await self._fetch(mint)
        except Exception as e:
            logger.debug("GoPlus lookup failed for %s: %s", mint, e)
            return unknown_safety()

        self._cache[mint] = safety
        return safety

    async def fetch_batch(self, mints: list[str]) -> dict[str, TokenSafety]:
        """Look up ``mints`` in concurrent batches with a pause between batches."""
        results: dict[str, TokenSafety] = {}
        for start in range(0, len(mints), self.batch_size):
            batch = mints[start:start + self.batch_size]
            outcomes = await asyncio.gather(
                *(self.fetch_safety(m) for m in batch), return_exceptions=True
            )
            for mint, outcome in zip(batch, outcomes):
                results[mint] = outcome if isinstance(outcome, TokenSafety) else unknown_safety()

            if start + self.batch_size < len(mints):
                await asyncio.sleep(self.batch_delay)
        return results
