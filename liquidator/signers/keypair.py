"""Software signers backed by a local keypair."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from ..errors import SignerError, SignerRejectedError, SignerTimeoutError
from ..interfaces.signer import TransactionSigner

logger = logging.getLogger(__name__)


class KeypairSigner:
    """Signs with an in-process ``solders`` keypair."""

    is_hardware = False

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_base58(cls, secret: str) -> KeypairSigner:
        try:
            return cls(Keypair.from_base58_string(secret.strip()))
        except ValueError as e:
            raise SignerError("invalid keypair secret") from e

    @property
    def public_key(self) -> str:
        return str(self._keypair.pubkey())

    async def sign_transaction(self, tx: VersionedTransaction) -> VersionedTransaction:
        try:
            return VersionedTransaction(tx.message, [self._keypair])
        except Exception as e:
            raise SignerError(f"transaction signing failed: {e}") from e


Prompt = Callable[[str], Awaitable[str]]


async def _console_prompt(question: str) -> str:
    return await asyncio.to_thread(input, question)


class ConfirmingSigner:
    """Ask the operator before each signature; "no" is a rejection."""

    def __init__(
        self,
        inner: TransactionSigner,
        prompt: Prompt = _console_prompt,
        timeout: float = 120.0,
    ) -> None:
        self._inner = inner
        self._prompt = prompt
        self.timeout = timeout

    @property
    def public_key(self) -> str:
        return self._inner.public_key

    @property
    def is_hardware(self) -> bool:
        return self._inner.is_hardware

    async def sign_transaction(self, tx: VersionedTransaction) -> VersionedTransaction:
        question = f"sign swap transaction for {self.public_key}? [y/N] "
        try:
            answer = await asyncio.wait_for(self._prompt(question), self.timeout)
        except asyncio.TimeoutError as e:
            raise SignerTimeoutError("signature request timed out") from e

        if answer.strip().lower() not in ("y", "yes"):
            logger.info("Signature declined by operator")
            raise SignerRejectedError("transaction was rejected by the user")
        return await self._inner.sign_transaction(tx)
