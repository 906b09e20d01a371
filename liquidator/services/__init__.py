"""Service modules"""
from .allocation import allocate
from .analyzer import PortfolioAnalyzer
from .balance_service import BalanceService
from .price_service import PriceService
from .swap_pipeline import SwapEvent, SwapPipeline, SwapState

__all__ = [
    "BalanceService",
    "PortfolioAnalyzer",
    "PriceService",
    "SwapEvent",
    "SwapPipeline",
    "SwapState",
    "allocate",
]
