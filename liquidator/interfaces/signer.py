"""Transaction signer protocol — wallet / hardware device abstraction."""
from typing import Protocol

from solders.transaction import VersionedTransaction


class TransactionSigner(Protocol):
    """Signs unsigned transactions or raises a SignerError subclass.

    ``is_hardware`` only changes user-facing wording, never control flow.
    """

    @property
    def public_key(self) -> str: ...

    @property
    def is_hardware(self) -> bool: ...

    async def sign_transaction(self, tx: VersionedTransaction) -> VersionedTransaction: ...
