"""Command-line interface for the pro-rata liquidator."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Sequence

from .config import AppConfig, WalletConfig, load_config, resolve_output_token
from .logging_setup import configure_logging
from .models import (
    AllocatedToken,
    PortfolioReport,
    PriceProgress,
    SwapResult,
    TokenHolding,
)
from .services import PortfolioAnalyzer
from .services.allocation import fraction_for_usd_amount
from .services.swap_pipeline import SwapEvent
from .signers import ConfirmingSigner, KeypairSigner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="solana-liquidator",
        description="Inspect Solana wallet holdings and liquidate them pro-rata via Jupiter",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser("analyze", help="Fetch and price wallet holdings")
    analyze.add_argument(
        "addresses", nargs="*", help="Wallet addresses (default: wallets from config)"
    )
    analyze.add_argument(
        "--retry-failed", action="store_true",
        help="Re-price tokens whose first price lookup failed",
    )

    for name, help_text in (
        ("plan", "Show the pro-rata swap amounts without executing"),
        ("liquidate", "Execute the pro-rata liquidation with the configured keypair"),
    ):
        p = sub.add_parser(name, help=help_text)
        amount = p.add_mutually_exclusive_group()
        amount.add_argument(
            "--percent", type=float, default=100.0,
            help="Percentage of the selected value to liquidate (default: 100)",
        )
        amount.add_argument("--usd", type=float, help="Fixed USD amount to liquidate")
        p.add_argument("--output", default=None, help="Output token: SOL, USDC or USDT")
        p.add_argument(
            "--retry-failed", action="store_true",
            help="Re-price tokens whose first price lookup failed",
        )
        p.add_argument(
            "--select", nargs="+", default=None, metavar="MINT",
            help="Only liquidate these mints (default: all priced holdings)",
        )
        if name == "plan":
            p.add_argument(
                "addresses", nargs="*", help="Wallet addresses (default: wallets from config)"
            )
        else:
            p.add_argument(
                "--yes", action="store_true", help="Do not ask before signing each swap"
            )

    return parser


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_progress(progress: PriceProgress) -> None:
    print(
        f"\r  pricing {progress.current}/{progress.total} {progress.current_item:<12}",
        end="" if progress.current < progress.total else "\n",
        file=sys.stderr,
        flush=True,
    )


def _print_report(report: PortfolioReport) -> None:
    for analysis in report.analyses:
        print(f"\n{analysis.label or analysis.address}  ${analysis.total_value:,.2f}")
        for h in analysis.holdings:
            safety = f"  [{h.safety.level.value}]" if h.safety else ""
            print(
                f"  {h.symbol:<10} {h.ui_amount:>20,.6f}  ${h.price:>14,.6f}"
                f"  ${h.value:>14,.2f}{safety}"
            )
        for h in analysis.unpriced:
            status = h.price_status.value.replace("_", " ")
            print(f"  {h.symbol:<10} {h.ui_amount:>20,.6f}  {status}")
    for address in report.failed_wallets:
        print(f"\n{address}  analysis failed")
    print(f"\nTotal portfolio value: ${report.total_value:,.2f}")


def _print_plan(tokens: list[AllocatedToken]) -> None:
    print("\nSwap plan:")
    for t in tokens:
        print(
            f"  {t.symbol:<10} {t.swap_amount:>20,.6f} of {t.original_amount:,.6f}"
            f"  ({t.percentage:.1f}% of selection)  ${t.liquidation_value:,.2f}"
        )
    print(f"  total ${sum(t.liquidation_value for t in tokens):,.2f}")


def _print_event(event: SwapEvent) -> None:
    print(f"  {event.symbol}: {event.state.value}", file=sys.stderr)


def _print_result(result: SwapResult) -> None:
    if result.succeeded:
        print(f"  ✅ {result.symbol}: {result.signature}")
    else:
        print(f"  ❌ {result.symbol}: {result.error} (retries: {result.retry_count})")


def _wallets(config: AppConfig, addresses: list[str]) -> list[WalletConfig]:
    if addresses:
        return [WalletConfig(address=a) for a in addresses]
    return list(config.wallets)


def _fraction(
    args: argparse.Namespace, holdings: Sequence[TokenHolding], output_mint: str
) -> float:
    if args.usd is not None:
        selected_value = sum(
            h.value for h in holdings
            if h.mint != output_mint and (args.select is None or h.mint in args.select)
        )
        return fraction_for_usd_amount(args.usd, selected_value)
    if not 0 < args.percent <= 100:
        raise ValueError("--percent must be within (0, 100]")
    return args.percent / 100


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    analyzer = PortfolioAnalyzer(config)

    if args.command in ("analyze", "plan"):
        wallets = _wallets(config, args.addresses)
        if not wallets:
            print("no wallets given and none configured", file=sys.stderr)
            return 1
        report = await analyzer.analyze_all(
            wallets, on_progress=_print_progress, retry_failed=args.retry_failed
        )
        _print_report(report)
        if args.command == "plan":
            output = resolve_output_token(args.output or config.swap.output_token)
            fraction = _fraction(args, report.holdings, output.mint)
            tokens = analyzer.plan_liquidation(
                report.holdings, fraction, output, args.select
            )
            _print_plan(tokens)
        return 0 if report.analyses else 1

    if args.command == "liquidate":
        if not config.signer.keypair:
            print("signer.keypair is not configured", file=sys.stderr)
            return 1
        signer = KeypairSigner.from_base58(config.signer.keypair)
        if config.signer.confirm_each and not args.yes:
            signer = ConfirmingSigner(signer, timeout=config.signer.confirm_timeout)

        report = await analyzer.analyze_all(
            [WalletConfig(label="signer", address=signer.public_key)],
            on_progress=_print_progress,
            retry_failed=args.retry_failed,
        )
        _print_report(report)
        output = resolve_output_token(args.output or config.swap.output_token)

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, analyzer.cancel)
        except NotImplementedError:
            logger.debug("Signal handlers unsupported, Ctrl-C will abort immediately")

        batch = await analyzer.liquidate(
            report.holdings,
            signer,
            _fraction(args, report.holdings, output.mint),
            output,
            args.select,
            on_event=_print_event,
            on_result=_print_result,
        )
        print(f"\n{len(batch.succeeded)} succeeded, {len(batch.failed)} failed")
        if batch.failed:
            print("failed mints: " + " ".join(batch.failed_mints))
        return 0 if batch.status == "success" else 2

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
