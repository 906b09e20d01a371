"""Swap aggregators."""
from .jupiter import JupiterClient

__all__ = ["JupiterClient"]
