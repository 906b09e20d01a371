"""Transaction signers."""
from .keypair import ConfirmingSigner, KeypairSigner

__all__ = ["ConfirmingSigner", "KeypairSigner"]
