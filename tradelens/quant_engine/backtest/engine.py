"""
Backtest Engine - periodic-rebalance portfolio simulation.

Replays the strategy + aggregator pipeline over history:

    INITIALIZING -> FETCHING -> SIMULATING -> FINALIZING -> DONE
                 (any state) -> FAILED

On the first date and whenever `rebalance_period` calendar days have passed
since the last rebalance, the portfolio is liquidated at that day's closes,
every ticker is re-scored using only bars dated <= today, and cash is split
equally across the top BUY recommendations (integer shares only). Every date
ends with a mark-to-market point on the equity curve.

Known quirk kept on purpose: a held ticker with no bar on a rebalance date is
not sold. Its quantity stays in holdings until a later rebalance date that
has a price for it.
"""

from __future__ import annotations

import asyncio
import math
from bisect import bisect_right
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Callable, Mapping, Optional

import pandas as pd

from tradelens.core.config import settings
from tradelens.core.exceptions import DataUnavailableError
from tradelens.core.logging import LoggerAdapter, bind_run_id, get_logger
from tradelens.quant_engine.aggregator import aggregate
from tradelens.quant_engine.backtest.schemas import BacktestConfig, BacktestResult
from tradelens.quant_engine.config import CONSTANTS, DEFAULT_WEIGHTS
from tradelens.quant_engine.indicators import annualized_volatility
from tradelens.quant_engine.metrics import calculate_performance_metrics
from tradelens.quant_engine.strategies import run_strategies
from tradelens.quant_engine.types import (
    EquityPoint,
    PriceBar,
    Recommendation,
    RecommendationType,
    Trade,
    TradeAction,
    closes_of,
)

if TYPE_CHECKING:
    from tradelens.services.data_providers.base import HistoryProvider

logger = get_logger("quant_engine.backtest")


class BacktestState(str, Enum):
    """Lifecycle of one backtest run."""

    INITIALIZING = "initializing"
    FETCHING = "fetching"
    SIMULATING = "simulating"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PortfolioState:
    """Mutable portfolio during a simulation."""

    cash: float
    holdings: dict[str, int] = field(default_factory=dict)
    equity_curve: list[EquityPoint] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    period_returns: list[float] = field(default_factory=list)


class _PriceBook:
    """Close lookups on the unified date axis."""

    def __init__(self, histories: Mapping[str, list[PriceBar]]):
        closes = pd.DataFrame(
            {
                ticker: pd.Series(
                    [bar.close for bar in bars],
                    index=[bar.date for bar in bars],
                    dtype=float,
                )
                for ticker, bars in histories.items()
            }
        ).sort_index()
        self.closes = closes
        # Mark-to-market carries the last known close across gaps
        self.marks = closes.ffill()
        self.dates: list[date] = list(closes.index)

    def price_at(self, ticker: str, day: date) -> Optional[float]:
        """Exact close on `day`, or None when the ticker has no bar that day."""
        value = self.closes.at[day, ticker]
        return None if pd.isna(value) else float(value)

    def mark_at(self, ticker: str, day: date) -> float:
        value = self.marks.at[day, ticker]
        return 0.0 if pd.isna(value) else float(value)


class BacktestEngine:
    """
    Periodic-rebalance backtest over an injected history provider.

    Features:
    - Validation before any I/O
    - Concurrent per-ticker history fetches; one failure never cancels others
    - Strictly ascending simulation with no look-ahead
    - Deterministic for identical config and data
    """

    def __init__(
        self,
        provider: "HistoryProvider",
        weights: Mapping[str, float] | None = None,
        today: Callable[[], date] = date.today,
        max_concurrent_fetches: int | None = None,
    ):
        self.provider = provider
        self.weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        self._today = today
        self.max_concurrent_fetches = max_concurrent_fetches or settings.max_concurrent_fetches
        self.state = BacktestState.INITIALIZING
        self._log = LoggerAdapter(logger, {"component": "backtest"})

    async def run(self, config: BacktestConfig) -> BacktestResult:
        """
        Run the full backtest.

        Raises:
            ValidationError: config violates a precondition (no fetch issued)
            DataUnavailableError: no ticker produced in-range data
        """
        self.state = BacktestState.INITIALIZING
        with bind_run_id():
            try:
                cfg = config.validate(today=self._today())
                self._log.info(
                    f"Starting backtest for {len(cfg.tickers)} tickers "
                    f"({cfg.start_date} to {cfg.end_date}, every {cfg.rebalance_period}d)",
                    extra={"tickers": cfg.tickers, "strategies": cfg.strategies},
                )

                self.state = BacktestState.FETCHING
                histories, skipped = await self._fetch_histories(cfg)
                if not histories:
                    raise DataUnavailableError(
                        "No valid data available for any ticker",
                        details={"tickers": cfg.tickers},
                    )

                self.state = BacktestState.SIMULATING
                portfolio = self._simulate(cfg, histories)

                self.state = BacktestState.FINALIZING
                metrics = calculate_performance_metrics(
                    portfolio.equity_curve, portfolio.period_returns
                )

                self.state = BacktestState.DONE
                self._log.info(
                    f"Backtest complete: {len(portfolio.trades)} trades, "
                    f"total return {metrics.total_return:.2%}",
                    extra={"metrics": metrics.to_dict()},
                )
                return BacktestResult(
                    equity_curve=portfolio.equity_curve,
                    metrics=metrics,
                    trades=portfolio.trades,
                    period_returns=portfolio.period_returns,
                    tickers_used=list(histories),
                    tickers_skipped=skipped,
                )
            except Exception:
                self.state = BacktestState.FAILED
                raise

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_histories(
        self, cfg: BacktestConfig
    ) -> tuple[dict[str, list[PriceBar]], list[str]]:
        """Fetch and range-filter every ticker; failures are logged and skipped."""
        lookback = max(settings.history_days, (self._today() - cfg.start_date).days + 1)
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def fetch(ticker: str) -> list[PriceBar]:
            async with semaphore:
                return await self.provider.fetch_history(ticker, cfg.asset_class, lookback)

        results = await asyncio.gather(
            *(fetch(ticker) for ticker in cfg.tickers), return_exceptions=True
        )

        histories: dict[str, list[PriceBar]] = {}
        skipped: list[str] = []
        for ticker, result in zip(cfg.tickers, results):
            if isinstance(result, Exception):
                logger.warning(f"Skipping {ticker}: history fetch failed: {result}")
                skipped.append(ticker)
                continue

            in_range = sorted(
                (
                    bar
                    for bar in result
                    if cfg.start_date <= bar.date <= cfg.end_date and bar.close > 0
                ),
                key=lambda bar: bar.date,
            )
            if not in_range:
                logger.warning(f"Skipping {ticker}: no bars between {cfg.start_date} and {cfg.end_date}")
                skipped.append(ticker)
                continue

            histories[ticker] = in_range

        return histories, skipped

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _simulate(
        self, cfg: BacktestConfig, histories: dict[str, list[PriceBar]]
    ) -> PortfolioState:
        book = _PriceBook(histories)
        bar_dates = {ticker: [bar.date for bar in bars] for ticker, bars in histories.items()}
        portfolio = PortfolioState(cash=float(cfg.initial_capital))

        last_rebalance: Optional[date] = None
        baseline_value = float(cfg.initial_capital)

        for day in book.dates:
            if last_rebalance is None or (day - last_rebalance).days >= cfg.rebalance_period:
                current_value = self._mark_to_market(portfolio, book, day)
                if last_rebalance is not None:
                    period_return = (
                        (current_value - baseline_value) / baseline_value
                        if baseline_value > 0
                        else 0.0
                    )
                    portfolio.period_returns.append(period_return)

                self._liquidate(portfolio, book, day)
                recommendations = self._recommend(cfg, histories, bar_dates, book, day)
                self._allocate(portfolio, book, day, recommendations)

                last_rebalance = day
                baseline_value = self._mark_to_market(portfolio, book, day)

            portfolio.equity_curve.append(
                EquityPoint(date=day, value=self._mark_to_market(portfolio, book, day))
            )

        return portfolio

    @staticmethod
    def _mark_to_market(portfolio: PortfolioState, book: _PriceBook, day: date) -> float:
        holdings_value = sum(
            quantity * book.mark_at(ticker, day)
            for ticker, quantity in portfolio.holdings.items()
        )
        return portfolio.cash + holdings_value

    def _liquidate(self, portfolio: PortfolioState, book: _PriceBook, day: date) -> None:
        for ticker, quantity in list(portfolio.holdings.items()):
            price = book.price_at(ticker, day)
            if price is None:
                logger.warning(
                    f"No price for {ticker} on {day}; {quantity} shares stay in holdings"
                )
                continue

            value = quantity * price
            portfolio.cash += value
            del portfolio.holdings[ticker]
            portfolio.trades.append(
                Trade(
                    date=day,
                    ticker=ticker,
                    action=TradeAction.SELL,
                    price=price,
                    quantity=quantity,
                    value=value,
                )
            )

    def _recommend(
        self,
        cfg: BacktestConfig,
        histories: dict[str, list[PriceBar]],
        bar_dates: dict[str, list[date]],
        book: _PriceBook,
        day: date,
    ) -> list[Recommendation]:
        """Score every ticker as of `day` using only bars dated <= day."""
        recommendations: list[Recommendation] = []
        for ticker, bars in histories.items():
            history = bars[: bisect_right(bar_dates[ticker], day)]
            if len(history) < CONSTANTS.min_history_bars:
                continue

            current_price = book.price_at(ticker, day)
            if current_price is None:
                continue

            prev_price = history[-2].close if len(history) > 1 else current_price
            price_change_pct = (current_price - prev_price) / prev_price * 100

            closes = closes_of(history)
            recommendations.append(
                aggregate(
                    ticker=ticker,
                    asset_class=cfg.asset_class,
                    current_price=current_price,
                    price_change_pct=price_change_pct,
                    volatility=annualized_volatility(
                        closes, CONSTANTS.recommendation_volatility_period
                    ),
                    signals=run_strategies(history, cfg.strategies),
                    weights=self.weights,
                )
            )
        return recommendations

    def _allocate(
        self,
        portfolio: PortfolioState,
        book: _PriceBook,
        day: date,
        recommendations: list[Recommendation],
    ) -> None:
        """Equal-weight the top BUY picks with whole shares."""
        picks = sorted(
            (r for r in recommendations if r.recommendation == RecommendationType.BUY),
            key=lambda r: r.score,
            reverse=True,
        )[: CONSTANTS.max_positions]
        if not picks:
            logger.debug(f"{day}: no BUY recommendations, holding cash")
            return

        allocation = portfolio.cash / len(picks)
        for rec in picks:
            price = book.price_at(rec.ticker, day)
            if price is None:
                continue

            quantity = math.floor(allocation / price)
            if quantity <= 0:
                logger.debug(f"{day}: {rec.ticker} at {price:.2f} exceeds allocation {allocation:.2f}")
                continue

            value = quantity * price
            portfolio.cash -= value
            portfolio.holdings[rec.ticker] = portfolio.holdings.get(rec.ticker, 0) + quantity
            portfolio.trades.append(
                Trade(
                    date=day,
                    ticker=rec.ticker,
                    action=TradeAction.BUY,
                    price=price,
                    quantity=quantity,
                    value=value,
                )
            )

        logger.debug(
            f"{day}: rebalanced into {[r.ticker for r in picks]}, cash left {portfolio.cash:.2f}"
        )
