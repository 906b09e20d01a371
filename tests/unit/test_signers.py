"""Unit tests for keypair and confirming signers."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from liquidator.errors import SignerRejectedError, SignerTimeoutError
from liquidator.signers import ConfirmingSigner, KeypairSigner


class TestKeypairSigner:
    def test_from_base58(self, payer: Keypair) -> None:
        signer = KeypairSigner.from_base58(str(payer))
        assert signer.public_key == str(payer.pubkey())
        assert signer.is_hardware is False

    @pytest.mark.asyncio
    async def test_signs_fee_payer_slot(
        self, payer: Keypair, unsigned_tx: VersionedTransaction
    ) -> None:
        signed = await KeypairSigner(payer).sign_transaction(unsigned_tx)

        assert len(signed.signatures) == 1
        assert signed.signatures[0] != Signature.default()
        assert signed.message == unsigned_tx.message


class TestConfirmingSigner:
    @pytest.mark.asyncio
    async def test_yes_delegates(self, payer: Keypair, unsigned_tx: VersionedTransaction) -> None:
        prompt = AsyncMock(return_value="Y ")
        signer = ConfirmingSigner(KeypairSigner(payer), prompt=prompt, timeout=1.0)

        signed = await signer.sign_transaction(unsigned_tx)

        assert signed.signatures[0] != Signature.default()
        assert str(payer.pubkey()) in prompt.await_args.args[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", ["", "n", "no", "maybe"])
    async def test_anything_else_rejects(
        self, payer: Keypair, unsigned_tx: VersionedTransaction, answer: str
    ) -> None:
        signer = ConfirmingSigner(
            KeypairSigner(payer), prompt=AsyncMock(return_value=answer), timeout=1.0
        )
        with pytest.raises(SignerRejectedError):
            await signer.sign_transaction(unsigned_tx)

    @pytest.mark.asyncio
    async def test_timeout(self, payer: Keypair, unsigned_tx: VersionedTransaction) -> None:
        async def never_answers(question: str) -> str:
            await asyncio.sleep(10)
            return "y"

        signer = ConfirmingSigner(KeypairSigner(payer), prompt=never_answers, timeout=0.01)
        with pytest.raises(SignerTimeoutError):
            await signer.sign_transaction(unsigned_tx)

    def test_forwards_identity(self, payer: Keypair) -> None:
        signer = ConfirmingSigner(KeypairSigner(payer))
        assert signer.public_key == str(payer.pubkey())
        assert signer.is_hardware is False
