"""Solana chain access."""
from .client import SolanaClient, validate_address
from .endpoint_pool import EndpointPool, endpoint_name
from .rate_limiter import RateLimiter

__all__ = ["SolanaClient", "EndpointPool", "RateLimiter", "endpoint_name", "validate_address"]
