"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

import pandas as pd
import pytest

from tradelens.core.exceptions import DataUnavailableError
from tradelens.quant_engine.types import AssetClass, PriceBar


# =============================================================================
# Bar factories
# =============================================================================


def make_bars(
    closes: Sequence[float],
    start: date = date(2023, 1, 2),
    freq: str = "B",
) -> list[PriceBar]:
    """Bars on a business-day (or calendar, freq='D') axis from close prices."""
    dates = pd.date_range(start=start, periods=len(closes), freq=freq)
    return [
        PriceBar(
            date=ts.date(),
            open=float(close),
            high=float(close) * 1.01,
            low=float(close) * 0.99,
            close=float(close),
            volume=1_000_000.0,
        )
        for ts, close in zip(dates, closes)
    ]


def geometric_closes(n: int, start_price: float = 100.0, daily: float = 0.002) -> list[float]:
    """Steady compounding series: start_price * (1 + daily) ** i."""
    return [start_price * (1 + daily) ** i for i in range(n)]


def trend_bars(
    n: int,
    start_price: float = 100.0,
    daily: float = 0.002,
    start: date = date(2023, 1, 2),
    freq: str = "B",
) -> list[PriceBar]:
    return make_bars(geometric_closes(n, start_price, daily), start=start, freq=freq)


# =============================================================================
# Fake history provider
# =============================================================================


class FakeHistoryProvider:
    """In-memory HistoryProvider that records every call."""

    def __init__(
        self,
        histories: dict[str, list[PriceBar]] | None = None,
        failures: dict[str, Exception] | None = None,
    ):
        self.histories = dict(histories or {})
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, AssetClass, int]] = []

    async def fetch_history(
        self,
        ticker: str,
        asset_class: AssetClass,
        lookback_days: int,
    ) -> list[PriceBar]:
        self.calls.append((ticker, asset_class, lookback_days))
        if ticker in self.failures:
            raise self.failures[ticker]
        if ticker not in self.histories:
            raise DataUnavailableError(f"No data available for {ticker}", ticker=ticker)
        return list(self.histories[ticker])

    @property
    def tickers_requested(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def uptrend_bars() -> list[PriceBar]:
    """260 business days of steady 0.2% daily gains."""
    return trend_bars(260)


@pytest.fixture
def downtrend_bars() -> list[PriceBar]:
    """260 business days of steady 0.2% daily losses."""
    return trend_bars(260, daily=-0.002)


@pytest.fixture
def make_provider():
    """Factory for FakeHistoryProvider instances."""

    def _make(
        histories: dict[str, Iterable[PriceBar]] | None = None,
        failures: dict[str, Exception] | None = None,
    ) -> FakeHistoryProvider:
        return FakeHistoryProvider(
            {k: list(v) for k, v in (histories or {}).items()}, failures
        )

    return _make


@pytest.fixture
def restore_root_logger():
    """Undo handler and level changes made by setup_logging."""
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
