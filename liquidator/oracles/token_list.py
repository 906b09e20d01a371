"""Jupiter token list: mint → symbol/name/logo metadata."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import SOL_MINT, USDC_MINT, USDT_MINT, JupiterConfig
from ..models import TokenInfo

logger = logging.getLogger(__name__)

_LOGO_BASE = "https://raw.githubusercontent.com/solana-labs/token-list/main/assets/mainnet"

FALLBACK_TOKENS: tuple[TokenInfo, ...] = (
    TokenInfo(SOL_MINT, "SOL", "Wrapped Solana", 9, f"{_LOGO_BASE}/{SOL_MINT}/logo.png"),
    TokenInfo(USDC_MINT, "USDC", "USD Coin", 6, f"{_LOGO_BASE}/{USDC_MINT}/logo.png"),
    TokenInfo(USDT_MINT, "USDT", "USDT", 6, f"{_LOGO_BASE}/{USDT_MINT}/logo.png"),
)


class TokenRegistry:
    """Token metadata, loaded once per process and passed to whoever needs it."""

    def __init__(self, config: JupiterConfig) -> None:
        self.token_list_url = config.token_list_url
        self.timeout = config.timeout
        self._tokens: dict[str, TokenInfo] = {}
        self.loaded = False

    def __len__(self) -> int:
        return len(self._tokens)

    def get(self, mint: str) -> TokenInfo | None:
        return self._tokens.get(mint)

    def add(self, token: TokenInfo) -> None:
        self._tokens[token.address] = token

    async def load(self) -> None:
        """Fetch the token list; fall back to SOL/USDC/USDT on any failure."""
        if self.loaded:
            return

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    self.token_list_url,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 200:
                        data = await response.json()
                        for item in data:
                            address = item.get("address")
                            if not address:
                                continue
                            self.add(
                                TokenInfo(
                                    address=address,
                                    symbol=item.get("symbol", ""),
                                    name=item.get("name", ""),
                                    decimals=int(item.get("decimals", 0)),
                                    logo_uri=item.get("logoURI"),
                                )
                            )
                        logger.info("Loaded %d tokens", len(self._tokens))
                        self.loaded = True
                        return
                    logger.warning("Token list request failed: HTTP %s", response.status)
        except Exception as e:
            logger.warning("Failed to load token list: %s", e)

        for token in FALLBACK_TOKENS:
            self.add(token)
        self.loaded = True
        logger.info("Using fallback token list")
