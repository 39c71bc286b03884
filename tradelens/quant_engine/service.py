"""
Signal engine entry points.

Thin async orchestration over the pure core:
- generate_recommendations: score a ticker universe and rank it
- run_backtest: replay the pipeline over a historical window
- get_asset_detail: single-asset drill-down with statistics

The history provider is always injected; nothing here talks to the network
directly.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

import numpy as np

from tradelens.core.config import settings
from tradelens.core.exceptions import DataUnavailableError
from tradelens.core.logging import bind_run_id, get_logger
from tradelens.quant_engine.aggregator import aggregate, rank
from tradelens.quant_engine.backtest import BacktestConfig, BacktestEngine, BacktestResult
from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.indicators import annualized_volatility, periodic_returns
from tradelens.quant_engine.strategies import run_strategies
from tradelens.quant_engine.types import (
    AssetClass,
    PriceBar,
    Recommendation,
    Signal,
    closes_of,
)

if TYPE_CHECKING:
    from tradelens.services.data_providers.base import HistoryProvider

logger = get_logger("quant_engine.service")


# =============================================================================
# Asset class detection
# =============================================================================


def detect_asset_class(ticker: str) -> AssetClass:
    """Infer the asset class from ticker format (BTC-USD, EURUSD=X, AAPL)."""
    symbol = ticker.strip().upper()
    if symbol.endswith("-USD") or "USDT" in symbol:
        return AssetClass.CRYPTO
    if symbol.endswith("=X"):
        return AssetClass.FOREX
    return AssetClass.STOCKS


def _price_change_pct(bars: Sequence[PriceBar]) -> float:
    if len(bars) < 2 or bars[-2].close <= 0:
        return 0.0
    return (bars[-1].close - bars[-2].close) / bars[-2].close * 100


# =============================================================================
# Recommendations
# =============================================================================


async def generate_recommendations(
    tickers: Optional[Sequence[str]] = None,
    asset_class: AssetClass | str | None = None,
    weights: Mapping[str, float] | None = None,
    *,
    provider: "HistoryProvider",
    limit: int | None = None,
) -> list[Recommendation]:
    """
    Score every ticker and return them ranked by conviction.

    An empty ticker list falls back to the configured default universe for
    the asset class (or all classes). Tickers whose fetch fails or that have
    fewer than 200 bars are skipped.
    """
    asset_class = AssetClass(asset_class) if asset_class is not None else None
    symbols = [t.strip().upper() for t in (tickers or []) if t and t.strip()]
    if not symbols:
        symbols = settings.default_tickers(asset_class.value if asset_class else None)

    with bind_run_id():
        logger.info(f"Generating recommendations for {len(symbols)} tickers")
        semaphore = asyncio.Semaphore(settings.max_concurrent_fetches)
        classes = {s: asset_class or detect_asset_class(s) for s in symbols}

        async def fetch(symbol: str) -> list[PriceBar]:
            async with semaphore:
                return await provider.fetch_history(
                    symbol, classes[symbol], settings.recommendation_history_days
                )

        results = await asyncio.gather(
            *(fetch(symbol) for symbol in symbols), return_exceptions=True
        )

        recommendations: list[Recommendation] = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, Exception):
                logger.warning(f"Skipping {symbol}: {result}")
                continue
            if len(result) < CONSTANTS.min_history_bars:
                logger.warning(
                    f"Skipping {symbol}: {len(result)} bars, need {CONSTANTS.min_history_bars}"
                )
                continue

            closes = closes_of(result)
            recommendations.append(
                aggregate(
                    ticker=symbol,
                    asset_class=classes[symbol],
                    current_price=closes[-1],
                    price_change_pct=_price_change_pct(result),
                    volatility=annualized_volatility(
                        closes, CONSTANTS.recommendation_volatility_period
                    ),
                    signals=run_strategies(result),
                    weights=weights,
                )
            )

        ranked = rank(recommendations)
        logger.info(f"Ranked {len(ranked)} of {len(symbols)} tickers")
        return ranked[:limit] if limit is not None else ranked


# =============================================================================
# Backtest
# =============================================================================


async def run_backtest(
    config: BacktestConfig,
    *,
    provider: "HistoryProvider",
    weights: Mapping[str, float] | None = None,
    today: Callable[[], date] | None = None,
) -> BacktestResult:
    """Validate and run one backtest over the injected provider."""
    engine = BacktestEngine(provider, weights=weights, today=today or date.today)
    return await engine.run(config)


# =============================================================================
# Asset detail
# =============================================================================


@dataclass(frozen=True)
class AssetStatistics:
    """Daily return statistics, all in percent."""

    avg_daily_return: float
    max_daily_return: float
    min_daily_return: float
    volatility: float

    @classmethod
    def from_bars(cls, bars: Sequence[PriceBar], volatility: float) -> "AssetStatistics":
        """Statistics over `bars`; `volatility` is the annualized fraction."""
        returns = periodic_returns(closes_of(bars))
        volatility = volatility * 100
        if returns.size == 0:
            return cls(0.0, 0.0, 0.0, volatility)
        pct = returns * 100
        return cls(
            avg_daily_return=float(np.mean(pct)),
            max_daily_return=float(np.max(pct)),
            min_daily_return=float(np.min(pct)),
            volatility=volatility,
        )

    def to_dict(self) -> dict[str, float]:
        return {
            "avg_daily_return": self.avg_daily_return,
            "max_daily_return": self.max_daily_return,
            "min_daily_return": self.min_daily_return,
            "volatility": self.volatility,
        }


@dataclass
class AssetDetail:
    """Single-asset drill-down: series, signals and statistics."""

    ticker: str
    asset_class: AssetClass
    current_price: float
    price_change_pct: float
    volatility: float
    series: list[PriceBar]
    signals: list[Signal]
    statistics: AssetStatistics
    recommendation: Recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "asset_class": self.asset_class.value,
            "current_price": self.current_price,
            "price_change_pct": self.price_change_pct,
            "volatility": self.volatility,
            "series": [
                {"date": bar.date.isoformat(), "close": bar.close, "volume": bar.volume}
                for bar in self.series
            ],
            "signals": [signal.to_dict() for signal in self.signals],
            "statistics": self.statistics.to_dict(),
            "recommendation": self.recommendation.to_dict(),
        }


async def get_asset_detail(
    ticker: str,
    *,
    provider: "HistoryProvider",
    asset_class: AssetClass | str | None = None,
) -> AssetDetail:
    """
    Fetch one asset's history and evaluate every strategy on it.

    Raises:
        DataUnavailableError: provider failed or returned no bars
    """
    symbol = ticker.strip().upper()
    resolved = AssetClass(asset_class) if asset_class is not None else detect_asset_class(symbol)

    bars = await provider.fetch_history(symbol, resolved, settings.detail_history_days)
    if not bars:
        raise DataUnavailableError(f"No data available for {symbol}", ticker=symbol)

    closes = closes_of(bars)
    volatility = annualized_volatility(closes, CONSTANTS.recommendation_volatility_period)
    price_change_pct = _price_change_pct(bars)
    signals = run_strategies(bars)

    recommendation = aggregate(
        ticker=symbol,
        asset_class=resolved,
        current_price=closes[-1],
        price_change_pct=price_change_pct,
        volatility=volatility,
        signals=signals,
    )
    logger.debug(
        f"{symbol}: {recommendation.recommendation.value} "
        f"(score {recommendation.score:.2f}, {len(bars)} bars)"
    )

    return AssetDetail(
        ticker=symbol,
        asset_class=resolved,
        current_price=closes[-1],
        price_change_pct=price_change_pct,
        volatility=volatility,
        series=list(bars),
        signals=signals,
        statistics=AssetStatistics.from_bars(bars, volatility),
        recommendation=recommendation,
    )
