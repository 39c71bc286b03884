"""
Shared Time Series Math

Stateless numeric primitives used by every strategy:
- sma: simple moving average (NaN until the window fills)
- rsi: relative strength index over simple-averaged gains/losses
- periodic_returns: consecutive fractional changes
- annualized_volatility: population stddev of trailing returns x sqrt(252)

Window sums are computed per window (not as a running total) so a window
without a single loss yields exactly RSI = 100.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from tradelens.quant_engine.config import CONSTANTS


def _as_array(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=float)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


# =============================================================================
# Moving Averages & Oscillators
# =============================================================================


def sma(values: Sequence[float] | np.ndarray, period: int) -> np.ndarray:
    """
    Simple moving average, same length as the input.

    Entries before index period-1 are NaN; entry i is the mean of the
    trailing `period` values ending at i.
    """
    _check_period(period)
    arr = _as_array(values)
    out = np.full(arr.shape[0], np.nan)
    if arr.shape[0] >= period:
        out[period - 1:] = sliding_window_view(arr, period).mean(axis=1)
    return out


def rsi(closes: Sequence[float] | np.ndarray, period: int = CONSTANTS.rsi_period) -> np.ndarray:
    """
    Relative Strength Index, same length as the input.

    Gains and losses are split from successive close differences and each
    averaged over `period` differences. A window with zero average loss is
    RSI = 100. The first `period + 1` entries are NaN: one for the first bar
    (no prior close) and `period` for the differences preceding the first
    full window.
    """
    _check_period(period)
    arr = _as_array(closes)
    n = arr.shape[0]
    if n < 2:
        return np.full(n, np.nan)

    changes = np.diff(arr)
    per_change = np.full(changes.shape[0], np.nan)

    if changes.shape[0] > period:
        # windows[j] covers changes[j .. j+period-1]; valid windows end at index >= period
        windows = sliding_window_view(changes, period)[1:]
        avg_gain = np.where(windows > 0, windows, 0.0).sum(axis=1) / period
        avg_loss = np.abs(np.where(windows < 0, windows, 0.0).sum(axis=1)) / period

        rs = np.divide(avg_gain, avg_loss, out=np.zeros_like(avg_gain), where=avg_loss != 0)
        values = np.where(avg_loss == 0, 100.0, 100.0 - 100.0 / (1.0 + rs))
        per_change[period:] = values

    return np.concatenate(([np.nan], per_change))


# =============================================================================
# Returns & Volatility
# =============================================================================


def periodic_returns(prices: Sequence[float] | np.ndarray) -> np.ndarray:
    """Consecutive fractional changes, length len(prices) - 1."""
    arr = _as_array(prices)
    if arr.shape[0] < 2:
        return np.empty(0)
    return np.diff(arr) / arr[:-1]


def annualized_volatility(
    prices: Sequence[float] | np.ndarray,
    period: int = CONSTANTS.volatility_period,
) -> float:
    """
    Annualized volatility of the trailing `period` prices.

    Returns 0.0 when fewer than `period` prices are available; callers treat
    that as the insufficient-data sentinel. Population stddev (ddof=0).
    """
    _check_period(period)
    arr = _as_array(prices)
    if arr.shape[0] < period:
        return 0.0

    returns = periodic_returns(arr[-period:])
    if returns.size == 0:
        return 0.0

    vol = float(np.std(returns, ddof=0)) * math.sqrt(CONSTANTS.trading_days_year)
    return max(vol, 0.0)


def momentum(closes: Sequence[float] | np.ndarray, period: int) -> float:
    """
    Fractional price change over `period` bars.

    Compares the last close with the close `period` bars earlier; when only
    `period` bars exist the first bar is used as the base.
    """
    _check_period(period)
    arr = _as_array(closes)
    if arr.shape[0] < 2:
        return 0.0
    base = arr[-period - 1] if arr.shape[0] > period else arr[0]
    return float((arr[-1] - base) / base)


def last_valid(values: np.ndarray, count: int) -> np.ndarray:
    """The last `count` non-NaN entries (fewer if not enough exist)."""
    valid = values[~np.isnan(values)]
    return valid[-count:]
