"""Tests for the yfinance history provider and the history cache."""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import numpy as np
import pandas as pd
import pytest

from tradelens.core.exceptions import DataUnavailableError
from tradelens.quant_engine.types import AssetClass
from tradelens.services.data_providers import (
    HistoryCache,
    HistoryProvider,
    YFinanceHistoryProvider,
    cache_key,
    frame_to_bars,
)
from tradelens.services.data_providers import yfinance_service


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def price_df() -> pd.DataFrame:
    """Sample yfinance frame with one missing and one non-positive close."""
    return pd.DataFrame(
        {
            "Open": [100.0, np.nan, 105.0, 106.0],
            "High": [105.0, 108.0, 110.0, 111.0],
            "Low": [99.0, 101.0, 103.0, 104.0],
            "Close": [102.0, 107.0, np.nan, 0.0],
            "Volume": [1_000_000, 1_500_000, 2_000_000, 2_500_000],
        },
        index=pd.to_datetime(["2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05"]),
    )


# =============================================================================
# Frame conversion
# =============================================================================


class TestFrameToBars:
    def test_drops_missing_and_non_positive_closes(self, price_df):
        bars = frame_to_bars(price_df)

        assert [bar.date for bar in bars] == [date(2024, 1, 2), date(2024, 1, 3)]
        assert [bar.close for bar in bars] == [102.0, 107.0]

    def test_missing_open_falls_back_to_close(self, price_df):
        bars = frame_to_bars(price_df)
        assert bars[1].open == 107.0

    def test_sorted_ascending(self, price_df):
        bars = frame_to_bars(price_df.iloc[::-1])
        assert [bar.date for bar in bars] == [date(2024, 1, 2), date(2024, 1, 3)]


# =============================================================================
# Provider
# =============================================================================


class TestYFinanceHistoryProvider:
    @pytest.fixture
    def provider(self):
        executor = ThreadPoolExecutor(max_workers=1)
        provider = YFinanceHistoryProvider(
            cache=HistoryCache(ttl=300),
            executor=executor,
            today=lambda: date(2024, 1, 10),
        )
        yield provider
        provider.shutdown()

    def test_satisfies_protocol(self, provider):
        assert isinstance(provider, HistoryProvider)

    @pytest.mark.asyncio
    async def test_fetch_history(self, provider, price_df, monkeypatch):
        calls = []

        def fake_download(symbol, **kwargs):
            calls.append((symbol, kwargs))
            return price_df

        monkeypatch.setattr(yfinance_service.yf, "download", fake_download)

        bars = await provider.fetch_history("aapl", AssetClass.STOCKS, 30)

        assert [bar.close for bar in bars] == [102.0, 107.0]
        symbol, kwargs = calls[0]
        assert symbol == "AAPL"
        assert kwargs["end"] == "2024-01-11"
        assert kwargs["start"] == "2023-12-11"
        assert kwargs["auto_adjust"] is True
        assert kwargs["progress"] is False

    @pytest.mark.asyncio
    async def test_second_fetch_is_cached(self, provider, price_df, monkeypatch):
        calls = []

        def fake_download(symbol, **kwargs):
            calls.append(symbol)
            return price_df

        monkeypatch.setattr(yfinance_service.yf, "download", fake_download)

        first = await provider.fetch_history("AAPL", AssetClass.STOCKS, 30)
        second = await provider.fetch_history("AAPL", AssetClass.STOCKS, 30)

        assert first == second
        assert calls == ["AAPL"]
        assert provider.cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_multiindex_columns(self, provider, price_df, monkeypatch):
        multi = price_df.copy()
        multi.columns = pd.MultiIndex.from_product([price_df.columns, ["BTC-USD"]])
        monkeypatch.setattr(yfinance_service.yf, "download", lambda symbol, **kwargs: multi)

        bars = await provider.fetch_history("BTC-USD", AssetClass.CRYPTO, 30)

        assert [bar.close for bar in bars] == [102.0, 107.0]

    @pytest.mark.asyncio
    async def test_empty_frame_raises(self, provider, monkeypatch):
        monkeypatch.setattr(
            yfinance_service.yf, "download", lambda symbol, **kwargs: pd.DataFrame()
        )

        with pytest.raises(DataUnavailableError) as exc_info:
            await provider.fetch_history("NOPE", AssetClass.STOCKS, 30)

        assert exc_info.value.ticker == "NOPE"

    @pytest.mark.asyncio
    async def test_download_error_raises(self, provider, monkeypatch):
        def failing_download(symbol, **kwargs):
            raise ConnectionError("unreachable")

        monkeypatch.setattr(yfinance_service.yf, "download", failing_download)

        with pytest.raises(DataUnavailableError, match="Failed to fetch data for AAPL"):
            await provider.fetch_history("AAPL", AssetClass.STOCKS, 30)

    @pytest.mark.asyncio
    async def test_all_closes_invalid_raises(self, provider, price_df, monkeypatch):
        invalid = price_df.assign(Close=[0.0, -1.0, np.nan, 0.0])
        monkeypatch.setattr(yfinance_service.yf, "download", lambda symbol, **kwargs: invalid)

        with pytest.raises(DataUnavailableError, match="No valid prices"):
            await provider.fetch_history("AAPL", AssetClass.STOCKS, 30)


# =============================================================================
# Cache
# =============================================================================


class TestHistoryCache:
    def test_cache_key(self):
        assert cache_key("AAPL", "stocks", 400) == "history:AAPL:stocks:400"
        assert cache_key("A:B") == "history:A_B"

    def test_ttl_expiry(self, price_df):
        clock = FakeClock()
        cache = HistoryCache(ttl=10, clock=clock)
        bars = frame_to_bars(price_df)

        cache.set("k", bars)
        clock.now = 9.9
        assert cache.get("k") == bars

        clock.now = 10.0
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.stats() == {"entries": 0, "hits": 1, "misses": 1}

    def test_write_purges_expired_entries(self, price_df):
        clock = FakeClock()
        cache = HistoryCache(ttl=10, clock=clock)
        bars = frame_to_bars(price_df)

        cache.set("a", bars)
        cache.set("b", bars)
        clock.now = 5.0
        cache.set("c", bars)
        clock.now = 12.0
        cache.set("d", bars)

        assert len(cache) == 2
        assert cache.get("c") == bars
        assert cache.get("d") == bars
        assert cache.stats()["misses"] == 0

    def test_zero_ttl_disables(self, price_df):
        cache = HistoryCache(ttl=0)
        cache.set("k", frame_to_bars(price_df))

        assert cache.get("k") is None
        assert len(cache) == 0

    def test_returned_list_is_a_copy(self, price_df):
        cache = HistoryCache(ttl=60, clock=FakeClock())
        cache.set("k", frame_to_bars(price_df))

        cache.get("k").clear()
        assert len(cache.get("k")) == 2

    def test_clear(self, price_df):
        cache = HistoryCache(ttl=60)
        cache.set("k", frame_to_bars(price_df))
        cache.clear()
        assert len(cache) == 0
