"""Wallet balance fetching: native SOL plus every SPL token account."""
from __future__ import annotations

import logging
from typing import Any

from ..chains.solana.client import validate_address
from ..config import SOL_DECIMALS, SOL_MINT
from ..interfaces.chain import ChainClient
from ..models import TokenHolding
from ..oracles.token_list import FALLBACK_TOKENS, TokenRegistry

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"
UNKNOWN_NAME = "Unknown Token"

_SOL_LOGO = FALLBACK_TOKENS[0].logo_uri


def parse_token_account(account: dict[str, Any]) -> tuple[str, int, int, float]:
    """Extract (mint, raw amount, decimals, ui amount) from a jsonParsed account.

    Raises KeyError / TypeError / ValueError on malformed records.
    """
    info = account["account"]["data"]["parsed"]["info"]
    mint = info["mint"]
    token_amount = info["tokenAmount"]
    raw = int(token_amount["amount"])
    decimals = int(token_amount["decimals"])
    ui_amount = token_amount.get("uiAmount")
    if ui_amount is None:
        ui_amount = raw / 10**decimals
    return mint, raw, decimals, float(ui_amount)


class BalanceService:
    """Fetch all fungible holdings for one address."""

    def __init__(self, client: ChainClient, registry: TokenRegistry) -> None:
        self._client = client
        self._registry = registry

    async def fetch_balances(self, address: str) -> list[TokenHolding]:
        validate_address(address)
        await self._registry.load()

        logger.info("Fetching token balances for %s", address)
        lamports, accounts = await self._client.get_wallet_accounts(address)
        logger.info(
            "Found %d token accounts and %d lamports SOL", len(accounts), lamports
        )

        holdings: list[TokenHolding] = []

        if lamports > 0:
            holdings.append(
                TokenHolding(
                    mint=SOL_MINT,
                    symbol="SOL",
                    name="Solana",
                    raw_balance=lamports,
                    decimals=SOL_DECIMALS,
                    ui_amount=lamports / 10**SOL_DECIMALS,
                    logo_uri=_SOL_LOGO,
                    source_wallet=address,
                )
            )

        for account in accounts:
            try:
                mint, raw, decimals, ui_amount = parse_token_account(account)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed token account: %s", e)
                continue

            if ui_amount <= 0:
                continue

            info = self._registry.get(mint)
            holdings.append(
                TokenHolding(
                    mint=mint,
                    symbol=info.symbol if info and info.symbol else UNKNOWN_SYMBOL,
                    name=info.name if info and info.name else UNKNOWN_NAME,
                    raw_balance=raw,
                    decimals=decimals,
                    ui_amount=ui_amount,
                    logo_uri=info.logo_uri if info else None,
                    source_wallet=address,
                )
            )

        logger.info("Processed %d tokens with balance", len(holdings))
        return holdings
