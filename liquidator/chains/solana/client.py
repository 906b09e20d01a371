"""Solana JSON-RPC client routed through a load-balanced endpoint pool."""
from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import Any

import aiohttp
import certifi
from solders.pubkey import Pubkey

from ...config import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID, RpcConfig
from ...errors import (
    BlockhashExpiredError,
    ConfirmationTimeoutError,
    HttpStatusError,
    InvalidAddressError,
    MalformedResponseError,
    RpcError,
    TransactionFailedError,
)
from .endpoint_pool import EndpointPool

logger = logging.getLogger(__name__)

_CONFIRMED = ("confirmed", "finalized")


def validate_address(address: str) -> Pubkey:
    """Parse a base58 address or raise InvalidAddressError."""
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid wallet address: {address!r}") from e


class SolanaClient:
    """Solana RPC client; every call goes through ``EndpointPool`` failover."""

    def __init__(self, config: RpcConfig, pool: EndpointPool | None = None) -> None:
        self.pool = pool or EndpointPool(config.endpoints, config.min_interval)
        self.timeout = config.timeout
        self.max_attempts = config.max_attempts

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(
        self, session: aiohttp.ClientSession, endpoint: str, method: str, params: list[Any]
    ) -> Any:
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        async with session.post(
            endpoint,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status != 200:
                raise HttpStatusError(response.status, method)
            result = await response.json()

        if not isinstance(result, dict):
            raise MalformedResponseError(f"Unexpected RPC payload for {method}")
        if "error" in result:
            err = result["error"] or {}
            raise RpcError(err.get("code"), err.get("message", str(err)))
        return result.get("result")

    def _session(self) -> aiohttp.ClientSession:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        return aiohttp.ClientSession(connector=connector)

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Single JSON-RPC call with endpoint failover."""

        async def operation(endpoint: str) -> Any:
            async with self._session() as session:
                return await self._post(session, endpoint, method, params)

        return await self.pool.execute_with_failover(operation, self.max_attempts)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        validate_address(address)
        result = await self.rpc_call("getBalance", [address, {"commitment": "confirmed"}])
        return int(result["value"])

    async def get_token_accounts_by_owner(self, address: str) -> list[dict[str, Any]]:
        validate_address(address)
        accounts: list[dict[str, Any]] = []
        for program_id in (TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID):
            result = await self.rpc_call(
                "getTokenAccountsByOwner",
                [address, {"programId": program_id}, {"encoding": "jsonParsed"}],
            )
            accounts.extend(result.get("value", []))
        return accounts

    async def get_wallet_accounts(self, address: str) -> tuple[int, list[dict[str, Any]]]:
        """Native lamports and all token accounts, fetched together on one endpoint."""
        validate_address(address)

        async def operation(endpoint: str) -> tuple[int, list[dict[str, Any]]]:
            async with self._session() as session:
                balance, legacy, token_2022 = await asyncio.gather(
                    self._post(
                        session, endpoint, "getBalance",
                        [address, {"commitment": "confirmed"}],
                    ),
                    self._post(
                        session, endpoint, "getTokenAccountsByOwner",
                        [address, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed"}],
                    ),
                    self._post(
                        session, endpoint, "getTokenAccountsByOwner",
                        [address, {"programId": TOKEN_2022_PROGRAM_ID}, {"encoding": "jsonParsed"}],
                    ),
                )
            try:
                lamports = int(balance["value"])
                accounts = list(legacy["value"]) + list(token_2022["value"])
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedResponseError(f"Unexpected account payload: {e}") from e
            return lamports, accounts

        return await self.pool.execute_with_failover(operation, self.max_attempts)

    async def get_latest_blockhash(self) -> tuple[str, int]:
        result = await self.rpc_call("getLatestBlockhash", [{"commitment": "confirmed"}])
        value = result["value"]
        return value["blockhash"], int(value["lastValidBlockHeight"])

    async def get_block_height(self) -> int:
        return int(await self.rpc_call("getBlockHeight", [{"commitment": "confirmed"}]))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def send_raw_transaction(self, encoded_tx: str) -> str:
        """Broadcast a base64 signed transaction without pre-flight simulation."""
        return await self.rpc_call(
            "sendTransaction",
            [
                encoded_tx,
                {
                    "encoding": "base64",
                    "skipPreflight": True,
                    "preflightCommitment": "confirmed",
                    "maxRetries": 3,
                },
            ],
        )

    async def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = await self.rpc_call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        statuses = result.get("value") or [None]
        return statuses[0]

    async def confirm_transaction(
        self,
        signature: str,
        last_valid_block_height: int,
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]:
        """Poll until the signature is confirmed, failed, or its blockhash expires."""
        deadline = time.monotonic() + timeout
        while True:
            status = await self.get_signature_status(signature)
            if status:
                if status.get("err"):
                    raise TransactionFailedError(
                        f"transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in _CONFIRMED:
                    return status

            if await self.get_block_height() > last_valid_block_height:
                raise BlockhashExpiredError(
                    f"blockhash expired before {signature} was confirmed"
                )
            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(
                    f"transaction {signature} not confirmed after {timeout:.0f}s"
                )
            await asyncio.sleep(poll_interval)
