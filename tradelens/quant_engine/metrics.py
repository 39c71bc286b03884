"""
Backtest Performance Metrics.

Computed from the daily equity curve and the per-rebalance period returns:
- total_return: (final - initial) / initial
- cagr: (final / initial) ** (1 / years) - 1, years = calendar days / 365.25
- sharpe_ratio: annualized mean / annualized stddev of daily returns (rf = 0)
- max_drawdown: largest (running peak - value) / running peak
- win_rate: share of period returns strictly above zero

Degenerate inputs return 0 rather than NaN or infinity.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Sequence

import numpy as np
import pandas as pd

from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.types import EquityPoint

DAYS_PER_YEAR = 365.25


@dataclass(frozen=True)
class PerformanceMetrics:
    """Summary statistics of one backtest run."""

    total_return: float = 0.0
    cagr: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0
    win_rate: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_total_return(initial_value: float, final_value: float) -> float:
    if initial_value == 0:
        return 0.0
    return (final_value - initial_value) / initial_value


def calculate_cagr(initial_value: float, final_value: float, years: float) -> float:
    if years <= 0 or initial_value <= 0:
        return 0.0
    return (final_value / initial_value) ** (1 / years) - 1


def _values(equity_curve: Sequence[EquityPoint]) -> pd.Series:
    return pd.Series([point.value for point in equity_curve], dtype=float)


def calculate_sharpe_ratio(equity_curve: Sequence[EquityPoint]) -> float:
    """Annualized Sharpe from daily equity changes; 0 for < 2 points or flat returns."""
    if len(equity_curve) < 2:
        return 0.0

    daily_returns = _values(equity_curve).pct_change().dropna()
    if daily_returns.empty:
        return 0.0

    std = float(daily_returns.std(ddof=0))
    if std == 0 or not math.isfinite(std):
        return 0.0

    days = CONSTANTS.trading_days_year
    return float(daily_returns.mean() * days) / (std * math.sqrt(days))


def calculate_max_drawdown(equity_curve: Sequence[EquityPoint]) -> float:
    """Largest peak-to-trough decline as a positive fraction."""
    if not equity_curve:
        return 0.0

    values = _values(equity_curve)
    running_peak = values.cummax()
    drawdowns = (running_peak - values) / running_peak.where(running_peak > 0)
    worst = drawdowns.max()
    if pd.isna(worst):
        return 0.0
    return max(float(worst), 0.0)


def calculate_win_rate(period_returns: Sequence[float]) -> float:
    if len(period_returns) == 0:
        return 0.0
    returns = np.asarray(period_returns, dtype=float)
    return float((returns > 0).sum() / returns.size)


def calculate_performance_metrics(
    equity_curve: Sequence[EquityPoint],
    period_returns: Sequence[float],
) -> PerformanceMetrics:
    """All metrics at once; fewer than two equity points gives all zeros."""
    if len(equity_curve) < 2:
        return PerformanceMetrics()

    initial_value = equity_curve[0].value
    final_value = equity_curve[-1].value
    years = (equity_curve[-1].date - equity_curve[0].date).days / DAYS_PER_YEAR

    return PerformanceMetrics(
        total_return=calculate_total_return(initial_value, final_value),
        cagr=calculate_cagr(initial_value, final_value, years),
        sharpe_ratio=calculate_sharpe_ratio(equity_curve),
        max_drawdown=calculate_max_drawdown(equity_curve),
        win_rate=calculate_win_rate(period_returns),
    )
