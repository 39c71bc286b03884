"""Data providers - the injected history-fetch capability."""

from .base import HistoryProvider
from .cache import HistoryCache, cache_key
from .yfinance_service import YFinanceHistoryProvider, frame_to_bars


__all__ = [
    "HistoryCache",
    "HistoryProvider",
    "YFinanceHistoryProvider",
    "cache_key",
    "frame_to_bars",
]
