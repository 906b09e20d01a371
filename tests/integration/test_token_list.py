"""Integration tests for the token registry loader."""
from __future__ import annotations

from unittest.mock import patch

import pytest

from conftest import JUP_MINT, mock_response, mock_session
from liquidator.config import SOL_MINT, USDC_MINT, JupiterConfig
from liquidator.oracles import TokenRegistry

SESSION = "liquidator.oracles.token_list.aiohttp.ClientSession"
CONNECTOR = "liquidator.oracles.token_list.aiohttp.TCPConnector"


@pytest.fixture()
def registry() -> TokenRegistry:
    return TokenRegistry(JupiterConfig(token_list_url="https://tokens.example.com"))


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_list_once(self, registry: TokenRegistry) -> None:
        tokens = [
            {"address": JUP_MINT, "symbol": "JUP", "name": "Jupiter", "decimals": 6,
             "logoURI": "https://logo/jup.png"},
            {"symbol": "NOADDR"},
        ]
        session = mock_session(get=mock_response(data=tokens))

        with patch(SESSION, return_value=session), patch(CONNECTOR):
            await registry.load()
            await registry.load()

        assert session.get.call_count == 1
        assert len(registry) == 1
        assert registry.get(JUP_MINT).logo_uri == "https://logo/jup.png"

    @pytest.mark.asyncio
    async def test_network_failure_uses_fallback(self, registry: TokenRegistry) -> None:
        session = mock_session(get=ConnectionError("offline"))

        with patch(SESSION, return_value=session), patch(CONNECTOR):
            await registry.load()

        assert registry.loaded
        assert registry.get(SOL_MINT).symbol == "SOL"
        assert registry.get(USDC_MINT).decimals == 6

    @pytest.mark.asyncio
    async def test_http_error_uses_fallback(self, registry: TokenRegistry) -> None:
        session = mock_session(get=mock_response(status=503))

        with patch(SESSION, return_value=session), patch(CONNECTOR):
            await registry.load()

        assert len(registry) == 3
        assert registry.get(JUP_MINT) is None
