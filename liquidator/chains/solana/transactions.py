"""Versioned transaction (de)serialization and blockhash re-stamping."""
from __future__ import annotations

import base64

from solders.hash import Hash
from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ...errors import MalformedResponseError


def decode_transaction(blob_b64: str) -> VersionedTransaction:
    try:
        return VersionedTransaction.from_bytes(base64.b64decode(blob_b64))
    except Exception as e:
        raise MalformedResponseError(f"Cannot decode swap transaction: {e}") from e


def encode_transaction(tx: VersionedTransaction) -> str:
    return base64.b64encode(bytes(tx)).decode("ascii")


def restamp_blockhash(tx: VersionedTransaction, blockhash: str) -> VersionedTransaction:
    """Return an unsigned copy of ``tx`` referencing ``blockhash``.

    Swaps are requested as v0 transactions. A legacy message is rejected,
    since confirmation would otherwise track the wrong blockhash.
    """
    message = tx.message
    if not isinstance(message, MessageV0):
        raise MalformedResponseError("expected a v0 swap transaction, got a legacy message")

    fresh = MessageV0(
        message.header,
        message.account_keys,
        Hash.from_string(blockhash),
        message.instructions,
        message.address_table_lookups,
    )
    placeholders = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(fresh, placeholders)
