"""Pro-rata liquidation of Solana wallet holdings through Jupiter."""

__version__ = "0.1.0"
