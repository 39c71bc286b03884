"""
YFinance history provider.

Implements the HistoryProvider contract on top of ``yfinance.download``:
- Blocking downloads run in a dedicated ThreadPoolExecutor
- Histories are cached in an injected HistoryCache (TTL policy)
- Rows with missing or non-positive closes are dropped, never back-filled

Usage:
    from tradelens.services.data_providers import YFinanceHistoryProvider

    provider = YFinanceHistoryProvider()
    bars = await provider.fetch_history("AAPL", AssetClass.STOCKS, 400)
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Any, Callable, Optional

import pandas as pd
import yfinance as yf

from tradelens.core.config import settings
from tradelens.core.exceptions import DataUnavailableError
from tradelens.core.logging import get_logger
from tradelens.quant_engine.types import AssetClass, PriceBar
from tradelens.services.data_providers.cache import HistoryCache, cache_key

logger = get_logger("data_providers.yfinance")


def _safe_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    """Safely convert value to float."""
    if value is None:
        return default
    try:
        f = float(value)
        if f != f or f == float("inf") or f == float("-inf"):
            return default
        return f
    except (ValueError, TypeError):
        return default


def frame_to_bars(df: pd.DataFrame) -> list[PriceBar]:
    """
    Convert a yfinance OHLCV frame to ascending, date-unique PriceBars.

    Missing open/high/low fall back to the close; missing volume is 0.
    Rows whose close is missing or <= 0 are dropped.
    """
    bars: dict[date, PriceBar] = {}
    for idx, row in df.sort_index().iterrows():
        close = _safe_float(row.get("Close"))
        if close is None or close <= 0:
            continue
        bar_date = idx.date() if hasattr(idx, "date") else idx
        bars[bar_date] = PriceBar(
            date=bar_date,
            open=_safe_float(row.get("Open"), close),
            high=_safe_float(row.get("High"), close),
            low=_safe_float(row.get("Low"), close),
            close=close,
            volume=_safe_float(row.get("Volume"), 0.0),
        )
    return [bars[d] for d in sorted(bars)]


class YFinanceHistoryProvider:
    """HistoryProvider backed by Yahoo Finance daily candles."""

    def __init__(
        self,
        cache: HistoryCache | None = None,
        executor: ThreadPoolExecutor | None = None,
        timeout: int | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.cache = cache if cache is not None else HistoryCache()
        self._executor = executor or ThreadPoolExecutor(
            max_workers=settings.max_concurrent_fetches, thread_name_prefix="yfinance"
        )
        self.timeout = timeout or settings.external_api_timeout
        self._today = today

    async def fetch_history(
        self,
        ticker: str,
        asset_class: AssetClass,
        lookback_days: int,
    ) -> list[PriceBar]:
        symbol = ticker.strip().upper()
        key = cache_key(symbol, AssetClass(asset_class).value, lookback_days)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        end = self._today() + timedelta(days=1)  # yfinance end date is exclusive
        start = end - timedelta(days=lookback_days + 1)

        loop = asyncio.get_running_loop()
        df = await loop.run_in_executor(
            self._executor,
            self._download_sync,
            symbol,
            start,
            end,
        )

        if df is None or df.empty:
            raise DataUnavailableError(f"No data available for {symbol}", ticker=symbol)

        bars = frame_to_bars(df)
        if not bars:
            raise DataUnavailableError(f"No valid prices for {symbol}", ticker=symbol)

        logger.debug(f"Fetched {len(bars)} bars for {symbol} ({start} to {end})")
        self.cache.set(key, bars)
        return bars

    def _download_sync(self, symbol: str, start: date, end: date) -> Optional[pd.DataFrame]:
        """Fetch daily candles from yfinance (blocking)."""
        try:
            df = yf.download(
                symbol,
                start=start.isoformat(),
                end=end.isoformat(),
                interval="1d",
                auto_adjust=True,
                progress=False,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"yfinance download failed for {symbol}: {e}")
            raise DataUnavailableError(
                f"Failed to fetch data for {symbol}", ticker=symbol
            ) from e

        if df is None or df.empty:
            return None

        # Handle MultiIndex columns (newer yfinance)
        if isinstance(df.columns, pd.MultiIndex):
            if symbol in df.columns.get_level_values(1):
                df = df.xs(symbol, axis=1, level=1)
            else:
                df.columns = df.columns.droplevel(1)

        return df

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
