"""Shared test fixtures, fakes and sample data."""
from __future__ import annotations

import base64
import textwrap
import time
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from liquidator.config import (
    SOL_MINT,
    USDC_MINT,
    AppConfig,
    JupiterConfig,
    NotificationsConfig,
    PricingConfig,
    RpcConfig,
    SafetyConfig,
    SwapConfig,
    TelegramConfig,
    WalletConfig,
)
from liquidator.models import Quote, TokenHolding

WALLET = "11111111111111111111111111111111"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xaB7Yaid2Z1B263"
JUP_MINT = "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN"


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_rpc_config() -> RpcConfig:
    return RpcConfig(
        endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        timeout=10,
        min_interval=0.0,
        max_attempts=3,
    )


@pytest.fixture()
def fast_pricing_config() -> PricingConfig:
    return PricingConfig(inter_token_delay=0.0, rate_limit_cooldown=0.0)


@pytest.fixture()
def fast_swap_config() -> SwapConfig:
    return SwapConfig(
        max_retries=2,
        backoff_base=0.0,
        backoff_max=0.0,
        inter_token_delay=0.0,
        confirm_timeout=1.0,
        confirm_poll_interval=0.0,
    )


@pytest.fixture()
def sample_app_config(
    sample_rpc_config: RpcConfig,
    fast_pricing_config: PricingConfig,
    fast_swap_config: SwapConfig,
) -> AppConfig:
    return AppConfig(
        wallets=(WalletConfig(label="test-wallet", address=WALLET),),
        rpc=sample_rpc_config,
        jupiter=JupiterConfig(base_url="https://jup.example.com", min_interval=0.0),
        pricing=fast_pricing_config,
        swap=fast_swap_config,
        safety=SafetyConfig(enabled=False),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
        ),
        wallet_delay=0.0,
    )


SAMPLE_YAML = textwrap.dedent(f"""\
    wallets:
      - label: test-wallet
        address: "{WALLET}"
    rpc:
      endpoints: ["https://rpc.example.com", ""]
      timeout: 10
      min_interval: 0.5
    jupiter:
      base_url: "https://jup.example.com/"
    pricing:
      stable_token: USDC
      min_quote_amount: 500
    swap:
      output_token: SOL
      slippage_bps: 50
      max_retries: 3
    signer:
      keypair: "secret"
      confirm_each: false
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: 999
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


def make_holding(
    symbol: str,
    mint: str,
    ui_amount: float,
    price: float = 0.0,
    decimals: int = 6,
    wallet: str = WALLET,
) -> TokenHolding:
    return TokenHolding(
        mint=mint,
        symbol=symbol,
        name=symbol,
        raw_balance=int(ui_amount * 10**decimals),
        decimals=decimals,
        ui_amount=ui_amount,
        price=price,
        value=ui_amount * price,
        source_wallet=wallet,
    )


@pytest.fixture()
def sample_holdings() -> list[TokenHolding]:
    """A $600 / $300 / $100 portfolio."""
    return [
        make_holding("SOL", SOL_MINT, 4.0, price=150.0, decimals=9),
        make_holding("JUP", JUP_MINT, 300.0, price=1.0),
        make_holding("BONK", BONK_MINT, 5_000_000.0, price=0.00002, decimals=5),
    ]


def make_quote(input_mint: str, output_mint: str, in_amount: int, out_amount: int) -> Quote:
    return Quote(
        input_mint=input_mint,
        output_mint=output_mint,
        in_amount=in_amount,
        out_amount=out_amount,
        slippage_bps=100,
        fetched_at=time.monotonic(),
        raw={"inAmount": str(in_amount), "outAmount": str(out_amount)},
    )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@pytest.fixture()
def payer() -> Keypair:
    return Keypair()


@pytest.fixture()
def unsigned_tx(payer: Keypair) -> VersionedTransaction:
    ix = transfer(
        TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=1)
    )
    message = MessageV0.try_compile(payer.pubkey(), [ix], [], Hash.new_unique())
    return VersionedTransaction.populate(message, [Signature.default()])


@pytest.fixture()
def tx_blob(unsigned_tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(unsigned_tx)).decode("ascii")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAggregator:
    """Quote/build service driven by a per-mint script of outcomes."""

    def __init__(self, tx_blob: str, out_amount: int = 1_000_000) -> None:
        self.tx_blob = tx_blob
        self.out_amount = out_amount
        self.quote_failures: dict[str, list[BaseException]] = {}
        self.always_fail: dict[str, BaseException] = {}
        self.quote_calls: list[tuple[str, str, int, int | None]] = []
        self.build_calls: list[tuple[Quote, str]] = []

    async def get_quote(self, input_mint, output_mint, amount, slippage_bps=None) -> Quote:
        self.quote_calls.append((input_mint, output_mint, amount, slippage_bps))
        if input_mint in self.always_fail:
            raise self.always_fail[input_mint]
        pending = self.quote_failures.get(input_mint)
        if pending:
            raise pending.pop(0)
        return make_quote(input_mint, output_mint, amount, self.out_amount)

    async def build_swap_transaction(self, quote: Quote, signer_address: str) -> str:
        self.build_calls.append((quote, signer_address))
        return self.tx_blob


class FakeChain:
    def __init__(self) -> None:
        self.get_latest_blockhash = AsyncMock(
            side_effect=lambda: (str(Hash.new_unique()), 1_000)
        )
        self.send_raw_transaction = AsyncMock(return_value="5igSig")
        self.confirm_transaction = AsyncMock(return_value={"confirmationStatus": "confirmed"})
        self.get_wallet_accounts = AsyncMock(return_value=(0, []))


class FakeSigner:
    def __init__(self, public_key: str = WALLET, is_hardware: bool = False) -> None:
        self.public_key = public_key
        self.is_hardware = is_hardware
        self.sign_transaction = AsyncMock(side_effect=lambda tx: tx)


@pytest.fixture()
def fake_aggregator(tx_blob: str) -> FakeAggregator:
    return FakeAggregator(tx_blob)


@pytest.fixture()
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def fake_signer() -> FakeSigner:
    return FakeSigner()


# ---------------------------------------------------------------------------
# aiohttp mocks
# ---------------------------------------------------------------------------


def mock_response(status: int = 200, data: object = None, error: Exception | None = None):
    response = AsyncMock()
    response.status = status
    response.reason = "Bad Request" if status == 400 else "OK"
    if error:
        response.json = AsyncMock(side_effect=error)
    else:
        response.json = AsyncMock(return_value=data if data is not None else {})
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


def mock_session(*, get=None, post=None):
    """A mock aiohttp session whose get/post return (or raise) the given values."""
    session = AsyncMock()
    for name, value in (("get", get), ("post", post)):
        if value is None:
            continue
        if isinstance(value, Exception):
            setattr(session, name, MagicMock(side_effect=value))
        elif isinstance(value, list):
            setattr(session, name, MagicMock(side_effect=value))
        else:
            setattr(session, name, MagicMock(return_value=value))
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


