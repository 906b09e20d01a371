"""Chain client protocol — blockchain RPC abstraction."""
from typing import Any, Protocol


class ChainClient(Protocol):
    """Abstract interface for the RPC calls the liquidator needs."""

    async def get_wallet_accounts(
        self, address: str
    ) -> tuple[int, list[dict[str, Any]]]: ...

    async def get_latest_blockhash(self) -> tuple[str, int]: ...

    async def send_raw_transaction(self, encoded_tx: str) -> str: ...

    async def confirm_transaction(
        self,
        signature: str,
        last_valid_block_height: int,
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]: ...
