"""
History provider contract.

The signal engine never fetches data itself; it is handed a provider that
returns ascending daily bars for a ticker. Providers must not fabricate
bars: a short or empty history is a normal answer, an unreachable source or
unknown ticker raises DataUnavailableError.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tradelens.quant_engine.types import AssetClass, PriceBar


@runtime_checkable
class HistoryProvider(Protocol):
    """Protocol defining the data-fetch capability."""

    async def fetch_history(
        self,
        ticker: str,
        asset_class: AssetClass,
        lookback_days: int,
    ) -> list[PriceBar]:
        """
        Fetch daily bars covering the last `lookback_days` calendar days.

        Args:
            ticker: Ticker symbol (e.g. 'AAPL', 'BTC-USD', 'EURUSD=X')
            asset_class: Instrument family of the ticker
            lookback_days: Calendar days of history requested

        Returns:
            Bars ascending by date, unique per date, close > 0

        Raises:
            DataUnavailableError: ticker unknown or source unreachable
        """
        ...
