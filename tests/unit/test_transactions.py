"""Unit tests for transaction decoding and blockhash re-stamping."""
from __future__ import annotations

import base64

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from liquidator.chains.solana.transactions import (
    decode_transaction,
    encode_transaction,
    restamp_blockhash,
)
from liquidator.errors import MalformedResponseError


class TestDecode:
    def test_decodes_blob(self, tx_blob: str, unsigned_tx: VersionedTransaction) -> None:
        assert decode_transaction(tx_blob).message == unsigned_tx.message

    def test_encode_is_base64_of_wire_bytes(self, unsigned_tx: VersionedTransaction) -> None:
        assert base64.b64decode(encode_transaction(unsigned_tx)) == bytes(unsigned_tx)

    def test_garbage_raises_malformed(self) -> None:
        with pytest.raises(MalformedResponseError):
            decode_transaction(base64.b64encode(b"garbage").decode())


class TestRestamp:
    def test_v0_message_gets_new_blockhash(self, unsigned_tx: VersionedTransaction) -> None:
        fresh = Hash.new_unique()
        restamped = restamp_blockhash(unsigned_tx, str(fresh))

        assert restamped.message.recent_blockhash == fresh
        assert restamped.message.instructions == unsigned_tx.message.instructions
        assert restamped.message.account_keys == unsigned_tx.message.account_keys
        assert list(restamped.signatures) == [Signature.default()]

    def test_legacy_message_rejected(self) -> None:
        payer = Keypair()
        ix = transfer(
            TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Pubkey.new_unique(), lamports=1)
        )
        message = Message.new_with_blockhash([ix], payer.pubkey(), Hash.new_unique())
        tx = VersionedTransaction.populate(message, [Signature.default()])

        with pytest.raises(MalformedResponseError, match="legacy"):
            restamp_blockhash(tx, str(Hash.new_unique()))
