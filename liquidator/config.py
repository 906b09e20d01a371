"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from solders.pubkey import Pubkey

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Well-known mints
# ---------------------------------------------------------------------------

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

SOL_DECIMALS = 9

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

FALLBACK_RPC_ENDPOINTS = (
    "https://api.mainnet-beta.solana.com",
    "https://solana-api.projectserum.com",
)


@dataclass(frozen=True)
class OutputToken:
    symbol: str
    mint: str
    decimals: int


OUTPUT_TOKENS: dict[str, OutputToken] = {
    "SOL": OutputToken("SOL", SOL_MINT, 9),
    "USDC": OutputToken("USDC", USDC_MINT, 6),
    "USDT": OutputToken("USDT", USDT_MINT, 6),
}


def resolve_output_token(name_or_mint: str) -> OutputToken:
    """Look up an output token by symbol (case-insensitive) or mint."""
    token = OUTPUT_TOKENS.get(name_or_mint.upper())
    if token:
        return token
    for token in OUTPUT_TOKENS.values():
        if token.mint == name_or_mint:
            return token
    raise ValueError(f"Unknown output token '{name_or_mint}'")


# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletConfig:
    label: str = ""
    address: str = ""


@dataclass(frozen=True)
class RpcConfig:
    endpoints: tuple[str, ...] = ()
    timeout: int = 30
    min_interval: float = 1.1
    max_attempts: int = 3


@dataclass(frozen=True)
class JupiterConfig:
    base_url: str = "https://lite-api.jup.ag"
    token_list_url: str = "https://cache.jup.ag/tokens"
    timeout: int = 20
    min_interval: float = 1.1


@dataclass(frozen=True)
class PricingConfig:
    stable_mint: str = USDC_MINT
    stable_decimals: int = 6
    min_quote_amount: int = 1000
    inter_token_delay: float = 0.2
    rate_limit_cooldown: float = 2.0
    min_token_value: float = 0.01


@dataclass(frozen=True)
class SwapConfig:
    output_token: str = "USDC"
    slippage_bps: int = 100
    max_retries: int = 2
    backoff_base: float = 1.0
    backoff_max: float = 8.0
    inter_token_delay: float = 1.0
    quote_ttl: float = 30.0
    confirm_timeout: float = 60.0
    confirm_poll_interval: float = 2.0
    priority_level: str = "veryHigh"
    max_priority_lamports: int = 1_000_000
    min_swap_amount: float = 0.000001
    min_swap_value: float = 0.01


@dataclass(frozen=True)
class SignerConfig:
    keypair: str = ""
    confirm_each: bool = True
    confirm_timeout: float = 120.0


@dataclass(frozen=True)
class SafetyConfig:
    enabled: bool = False
    goplus_url: str = "https://api.gopluslabs.io/api/v1/solana/token_security"
    cache_ttl_hours: float = 24.0
    batch_size: int = 10
    batch_delay: float = 0.5


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)


@dataclass(frozen=True)
class AppConfig:
    wallets: tuple[WalletConfig, ...] = ()
    rpc: RpcConfig = field(default_factory=RpcConfig)
    jupiter: JupiterConfig = field(default_factory=JupiterConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    swap: SwapConfig = field(default_factory=SwapConfig)
    signer: SignerConfig = field(default_factory=SignerConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    wallet_delay: float = 1.0


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_wallets(raw: list[dict[str, Any]]) -> tuple[WalletConfig, ...]:
    wallets: list[WalletConfig] = []
    for w in raw:
        wallets.append(
            WalletConfig(
                label=w.get("label", ""),
                address=str(w.get("address", "")).strip(),
            )
        )
    return tuple(wallets)


def _build_rpc(raw: dict[str, Any]) -> RpcConfig:
    # Unset ${RPC_ENDPOINT_N} entries interpolate to "" and are dropped here.
    endpoints = tuple(e.strip() for e in raw.get("endpoints", []) if e and e.strip())
    return RpcConfig(
        endpoints=endpoints,
        timeout=int(raw.get("timeout", 30)),
        min_interval=float(raw.get("min_interval", 1.1)),
        max_attempts=int(raw.get("max_attempts", 3)),
    )


def _build_jupiter(raw: dict[str, Any]) -> JupiterConfig:
    return JupiterConfig(
        base_url=raw.get("base_url", JupiterConfig.base_url).rstrip("/"),
        token_list_url=raw.get("token_list_url", JupiterConfig.token_list_url),
        timeout=int(raw.get("timeout", 20)),
        min_interval=float(raw.get("min_interval", 1.1)),
    )


def _build_pricing(raw: dict[str, Any]) -> PricingConfig:
    stable = resolve_output_token(raw.get("stable_token", "USDC"))
    return PricingConfig(
        stable_mint=stable.mint,
        stable_decimals=stable.decimals,
        min_quote_amount=int(raw.get("min_quote_amount", 1000)),
        inter_token_delay=float(raw.get("inter_token_delay", 0.2)),
        rate_limit_cooldown=float(raw.get("rate_limit_cooldown", 2.0)),
        min_token_value=float(raw.get("min_token_value", 0.01)),
    )


def _build_swap(raw: dict[str, Any]) -> SwapConfig:
    return SwapConfig(
        output_token=raw.get("output_token", "USDC"),
        slippage_bps=int(raw.get("slippage_bps", 100)),
        max_retries=int(raw.get("max_retries", 2)),
        backoff_base=float(raw.get("backoff_base", 1.0)),
        backoff_max=float(raw.get("backoff_max", 8.0)),
        inter_token_delay=float(raw.get("inter_token_delay", 1.0)),
        quote_ttl=float(raw.get("quote_ttl", 30.0)),
        confirm_timeout=float(raw.get("confirm_timeout", 60.0)),
        confirm_poll_interval=float(raw.get("confirm_poll_interval", 2.0)),
        priority_level=raw.get("priority_level", "veryHigh"),
        max_priority_lamports=int(raw.get("max_priority_lamports", 1_000_000)),
        min_swap_amount=float(raw.get("min_swap_amount", 0.000001)),
        min_swap_value=float(raw.get("min_swap_value", 0.01)),
    )


def _build_signer(raw: dict[str, Any]) -> SignerConfig:
    return SignerConfig(
        keypair=raw.get("keypair", ""),
        confirm_each=bool(raw.get("confirm_each", True)),
        confirm_timeout=float(raw.get("confirm_timeout", 120.0)),
    )


def _build_safety(raw: dict[str, Any]) -> SafetyConfig:
    return SafetyConfig(
        enabled=bool(raw.get("enabled", False)),
        goplus_url=raw.get("goplus_url", SafetyConfig.goplus_url),
        cache_ttl_hours=float(raw.get("cache_ttl_hours", 24.0)),
        batch_size=int(raw.get("batch_size", 10)),
        batch_delay=float(raw.get("batch_delay", 0.5)),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram", {})
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=str(tg.get("chat_id", "")),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        wallets=_build_wallets(raw.get("wallets", [])),
        rpc=_build_rpc(raw.get("rpc", {})),
        jupiter=_build_jupiter(raw.get("jupiter", {})),
        pricing=_build_pricing(raw.get("pricing", {})),
        swap=_build_swap(raw.get("swap", {})),
        signer=_build_signer(raw.get("signer", {})),
        safety=_build_safety(raw.get("safety", {})),
        notifications=_build_notifications(raw.get("notifications", {})),
        wallet_delay=float(raw.get("wallet_delay", 1.0)),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def is_valid_address(address: str) -> bool:
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    for wallet in cfg.wallets:
        if not wallet.address:
            raise ValueError(f"Wallet '{wallet.label}' has no address")
        if not is_valid_address(wallet.address):
            raise ValueError(
                f"Wallet '{wallet.label}' has an invalid address '{wallet.address}'"
            )

    resolve_output_token(cfg.swap.output_token)

    if not 0 < cfg.swap.slippage_bps <= 10_000:
        raise ValueError("swap.slippage_bps must be between 1 and 10000")
    if cfg.swap.max_retries < 0:
        raise ValueError("swap.max_retries must not be negative")
    if cfg.swap.backoff_base <= 0 or cfg.swap.backoff_max < cfg.swap.backoff_base:
        raise ValueError("swap.backoff_base must be positive and <= backoff_max")
    if cfg.rpc.max_attempts < 1:
        raise ValueError("rpc.max_attempts must be at least 1")
