"""Portfolio analysis and liquidation orchestration across configured wallets."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Collection, Sequence

from ..aggregators.jupiter import JupiterClient
from ..chains.solana.client import SolanaClient
from ..chains.solana.rate_limiter import RateLimiter
from ..config import SOL_MINT, AppConfig, OutputToken, WalletConfig
from ..interfaces.notifier import Notifier
from ..interfaces.signer import TransactionSigner
from ..interfaces.snapshot_store import SnapshotStore
from ..models import (
    AllocatedToken,
    PortfolioReport,
    PriceProgress,
    PriceStatus,
    SwapBatchResult,
    SwapResult,
    TokenHolding,
    WalletAnalysis,
)
from ..notifications import TelegramNotifier
from ..oracles import GoPlusSafetyService, TokenRegistry
from .allocation import allocate, executable, sort_by_value
from .balance_service import BalanceService
from .price_service import PriceService
from .swap_pipeline import SwapEvent, SwapPipeline

logger = logging.getLogger(__name__)

_UNPRICED = frozenset({PriceStatus.NOT_TRADABLE, PriceStatus.FAILED})


class PortfolioAnalyzer:
    """Wires the client layer together for one process.

    Every service is constructed here once and handed to its consumers;
    nothing is shared through module-level state.
    """

    def __init__(
        self,
        config: AppConfig,
        client: SolanaClient | None = None,
        jupiter: JupiterClient | None = None,
        registry: TokenRegistry | None = None,
        safety: GoPlusSafetyService | None = None,
        store: SnapshotStore | None = None,
    ) -> None:
        self._config = config
        self._client = client or SolanaClient(config.rpc)
        self._jupiter = jupiter or JupiterClient(config.jupiter, config.swap)
        self._registry = registry or TokenRegistry(config.jupiter)
        self._safety = safety or GoPlusSafetyService(config.safety)
        self._store = store

        self._balances = BalanceService(self._client, self._registry)
        self._prices = PriceService(
            self._jupiter, config.pricing, RateLimiter(config.jupiter.min_interval)
        )
        self._pipeline: SwapPipeline | None = None

        self._notifiers: list[Notifier] = []
        if config.notifications.telegram.enabled:
            self._notifiers.append(TelegramNotifier(config.notifications.telegram))

    @property
    def prices(self) -> PriceService:
        return self._prices

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_wallet(address: str) -> str:
        if len(address) > 16:
            return f"{address[:8]}...{address[-6:]}"
        return address

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    def _build_report(self, report: PortfolioReport) -> str:
        lines = [
            "📋 Portfolio Report",
            "",
            f"Total value: ${report.total_value:,.2f}",
            f"Wallets analyzed: {len(report.analyses)}",
        ]
        for analysis in report.analyses:
            name = analysis.label or self._format_wallet(analysis.address)
            unpriced = f", {len(analysis.unpriced)} unpriced" if analysis.unpriced else ""
            lines.append(
                f"• {name}: ${analysis.total_value:,.2f} "
                f"({len(analysis.holdings)} tokens{unpriced})"
            )
        if report.failed_wallets:
            lines.append("")
            lines.append(f"Failed: {', '.join(map(self._format_wallet, report.failed_wallets))}")
        lines += ["", f"{self._now():%Y-%m-%d %H:%M:%S} UTC"]
        return "\n".join(lines)

    def _build_swap_summary(self, batch: SwapBatchResult, output: OutputToken) -> str:
        lines = [
            f"{len(batch.succeeded)} succeeded, {len(batch.failed)} failed ({batch.status})",
            f"Liquidated ${batch.value_in:,.2f} → {batch.amount_out:,.6f} {output.symbol}",
        ]
        for r in batch.results:
            if r.succeeded:
                lines.append(f"✅ {r.symbol}: {r.amount_in:.6f} ({r.signature})")
            else:
                lines.append(
                    f"❌ {r.symbol}: {r.error} [{r.error_kind}, retries: {r.retry_count}]"
                )
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str, silent: bool = True) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=silent)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def _is_valuable(self, holding: TokenHolding) -> bool:
        if holding.ui_amount <= 0:
            return False
        if holding.mint == SOL_MINT:
            return True
        return holding.value > self._config.pricing.min_token_value

    async def _annotate_safety(self, holdings: list[TokenHolding]) -> None:
        if not self._safety.enabled:
            return
        mints = [h.mint for h in holdings if h.mint != SOL_MINT]
        safety = await self._safety.fetch_batch(mints)
        for holding in holdings:
            holding.safety = safety.get(holding.mint)

    async def _build_analysis(
        self, address: str, label: str, holdings: Sequence[TokenHolding]
    ) -> WalletAnalysis:
        valuable = sort_by_value(h for h in holdings if self._is_valuable(h))
        unpriced = [
            h for h in holdings
            if h.price_status in _UNPRICED and not self._is_valuable(h)
        ]
        await self._annotate_safety(valuable)

        analysis = WalletAnalysis(
            address=address,
            label=label,
            holdings=tuple(valuable),
            total_value=sum(h.value for h in valuable),
            analyzed_at=self._now(),
            unpriced=tuple(unpriced),
        )
        logger.info(
            "Analysis complete: %s, %d tokens, %d unpriced, $%.2f",
            self._format_wallet(address), len(valuable), len(unpriced),
            analysis.total_value,
        )
        return analysis

    async def analyze_wallet(
        self,
        address: str,
        label: str = "",
        on_progress: Callable[[PriceProgress], None] | None = None,
    ) -> WalletAnalysis:
        """Fetch, price and filter one wallet's holdings."""
        logger.info("Analyzing wallet %s", address)
        holdings = await self._balances.fetch_balances(address)
        if holdings:
            await self._prices.price_tokens(holdings, on_progress)
        return await self._build_analysis(address, label, holdings)

    async def retry_failed_prices(
        self,
        analysis: WalletAnalysis,
        on_progress: Callable[[PriceProgress], None] | None = None,
    ) -> WalletAnalysis:
        """Re-price every holding left at zero and rebuild the analysis."""
        holdings = list(analysis.holdings) + list(analysis.unpriced)
        retried = await self._prices.retry_failed(holdings, on_progress)
        if not retried:
            return analysis
        return await self._build_analysis(analysis.address, analysis.label, holdings)

    async def analyze_all(
        self,
        wallets: Sequence[WalletConfig] | None = None,
        on_progress: Callable[[PriceProgress], None] | None = None,
        retry_failed: bool = False,
    ) -> PortfolioReport:
        """Analyze wallets one after another; a failed wallet never stops the rest."""
        wallets = list(wallets if wallets is not None else self._config.wallets)
        analyses: list[WalletAnalysis] = []
        failed: list[str] = []

        for index, wallet in enumerate(wallets):
            logger.info("Analyzing wallet %d/%d", index + 1, len(wallets))
            try:
                analysis = await self.analyze_wallet(wallet.address, wallet.label, on_progress)
                if retry_failed:
                    analysis = await self.retry_failed_prices(analysis, on_progress)
                analyses.append(analysis)
            except Exception as e:
                logger.error("Failed to analyze wallet %s: %s", wallet.address, e)
                failed.append(wallet.address)

            if index < len(wallets) - 1:
                await asyncio.sleep(self._config.wallet_delay)

        report = PortfolioReport(tuple(analyses), tuple(failed))

        if self._store is not None and analyses:
            try:
                await self._store.save_snapshot(report.snapshot(self._now()))
            except Exception as e:
                logger.error("Failed to save portfolio snapshot: %s", e)

        await self._send_log(self._build_report(report))
        return report

    # ------------------------------------------------------------------
    # Liquidation
    # ------------------------------------------------------------------

    def plan_liquidation(
        self,
        holdings: Sequence[TokenHolding],
        fraction: float,
        output: OutputToken,
        selected_mints: Collection[str] | None = None,
    ) -> list[AllocatedToken]:
        """Pro-rata allocations for the selection, dust removed, largest first."""
        selected = [
            h for h in holdings if selected_mints is None or h.mint in selected_mints
        ]
        total = sum(h.value for h in selected)
        allocations = allocate(selected, total, fraction, output.mint)
        swap = self._config.swap
        return sort_by_value(
            executable(allocations, swap.min_swap_amount, swap.min_swap_value)
        )

    async def liquidate(
        self,
        holdings: Sequence[TokenHolding],
        signer: TransactionSigner,
        fraction: float,
        output: OutputToken,
        selected_mints: Collection[str] | None = None,
        on_event: Callable[[SwapEvent], None] | None = None,
        on_result: Callable[[SwapResult], None] | None = None,
    ) -> SwapBatchResult:
        """Swap the signer's own selected holdings into ``output``."""
        owned = [h for h in holdings if h.source_wallet == signer.public_key]
        if not owned:
            raise ValueError(f"signer {signer.public_key} holds none of the analyzed tokens")

        tokens = self.plan_liquidation(owned, fraction, output, selected_mints)
        if not tokens:
            raise ValueError("no valid tokens with sufficient balance to liquidate")

        self._pipeline = SwapPipeline(
            self._client, self._jupiter, signer, output, self._config.swap
        )
        try:
            batch = await self._pipeline.execute(tokens, on_event, on_result)
        finally:
            self._pipeline = None

        await self._send_alert(
            self._build_swap_summary(batch, output),
            subject=f"Liquidation {batch.status}",
        )
        return batch

    def cancel(self) -> None:
        """Cancel the running liquidation before its next attempt."""
        if self._pipeline is not None:
            self._pipeline.cancel()
