"""Data models.

``TokenHolding`` is created by the balance service and filled in place by
the price service; everything derived from it afterwards is frozen.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PriceStatus(str, Enum):
    PENDING = "pending"
    PRICED = "priced"
    FIXED = "fixed"
    NOT_TRADABLE = "not_tradable"
    FAILED = "failed"


class SafetyLevel(str, Enum):
    VERIFIED = "verified"
    GOOD = "good"
    UNKNOWN = "unknown"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class TokenInfo:
    """Token-list metadata for one mint."""

    address: str
    symbol: str
    name: str
    decimals: int
    logo_uri: str | None = None


@dataclass(frozen=True)
class TokenSafety:
    level: SafetyLevel
    source: str
    risks: tuple[str, ...] = ()
    mint_authority: bool | None = None
    freeze_authority: bool | None = None
    holder_count: int | None = None
    checked_at: float = 0.0


@dataclass
class TokenHolding:
    """One asset balance at one address."""

    mint: str
    symbol: str
    name: str
    raw_balance: int
    decimals: int
    ui_amount: float
    price: float = 0.0
    value: float = 0.0
    logo_uri: str | None = None
    price_status: PriceStatus = PriceStatus.PENDING
    source_wallet: str = ""
    safety: TokenSafety | None = None

    @property
    def is_priced(self) -> bool:
        return self.price_status in (PriceStatus.PRICED, PriceStatus.FIXED)

    def raw_amount(self, amount: float | None = None) -> int:
        """Convert a human amount (default: the full balance) to raw units."""
        if amount is None:
            amount = self.ui_amount
        return math.floor(amount * 10**self.decimals)


@dataclass(frozen=True)
class AllocatedToken:
    """A holding together with its pro-rata share of a liquidation."""

    mint: str
    symbol: str
    name: str
    decimals: int
    price: float
    value: float
    swap_amount: float
    percentage: float
    liquidation_value: float
    original_amount: float
    source_wallet: str = ""

    @property
    def raw_swap_amount(self) -> int:
        return math.floor(self.swap_amount * 10**self.decimals)


@dataclass(frozen=True)
class Quote:
    """Exchange-rate snapshot for one (input, output, amount) triple."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    slippage_bps: int
    price_impact_pct: float = 0.0
    fetched_at: float = 0.0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class PriceProgress:
    current: int
    total: int
    current_item: str
    holding: TokenHolding | None = None


@dataclass(frozen=True)
class SwapResult:
    """Terminal outcome for one token: exactly one of signature / error is set."""

    symbol: str
    mint: str
    amount_in: float
    liquidation_value: float
    retry_count: int = 0
    amount_out: float | None = None
    signature: str | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.signature is not None and self.error is None


@dataclass(frozen=True)
class SwapBatchResult:
    results: tuple[SwapResult, ...] = ()

    @property
    def succeeded(self) -> tuple[SwapResult, ...]:
        return tuple(r for r in self.results if r.succeeded)

    @property
    def failed(self) -> tuple[SwapResult, ...]:
        return tuple(r for r in self.results if not r.succeeded)

    @property
    def failed_mints(self) -> tuple[str, ...]:
        return tuple(r.mint for r in self.failed)

    @property
    def status(self) -> str:
        if not self.failed:
            return "success"
        if self.succeeded:
            return "partial"
        return "failed"

    @property
    def value_in(self) -> float:
        return sum(r.liquidation_value for r in self.succeeded)

    @property
    def amount_out(self) -> float:
        return sum(r.amount_out or 0.0 for r in self.succeeded)


@dataclass(frozen=True)
class WalletAnalysis:
    """Priced holdings worth keeping, plus the ones that ended up without a price.

    ``unpriced`` holds NOT_TRADABLE and FAILED holdings so a report can tell
    an illiquid token from a pricing failure; they never count toward
    ``total_value``.
    """

    address: str
    holdings: tuple[TokenHolding, ...]
    total_value: float
    analyzed_at: datetime
    label: str = ""
    unpriced: tuple[TokenHolding, ...] = ()


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Valuation summary handed to the snapshot store after a full run."""

    timestamp: datetime
    total_value: float
    wallet_count: int
    token_count: int


@dataclass(frozen=True)
class PortfolioReport:
    analyses: tuple[WalletAnalysis, ...]
    failed_wallets: tuple[str, ...] = ()

    @property
    def total_value(self) -> float:
        return sum(a.total_value for a in self.analyses)

    @property
    def holdings(self) -> tuple[TokenHolding, ...]:
        return tuple(h for a in self.analyses for h in a.holdings)

    def snapshot(self, timestamp: datetime) -> PortfolioSnapshot:
        return PortfolioSnapshot(
            timestamp=timestamp,
            total_value=self.total_value,
            wallet_count=len(self.analyses),
            token_count=len(self.holdings),
        )
