"""Off-chain metadata sources."""
from .goplus import GoPlusSafetyService
from .token_list import TokenRegistry

__all__ = ["GoPlusSafetyService", "TokenRegistry"]
