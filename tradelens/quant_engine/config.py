"""
Signal Engine Central Constants.

ALL fixed strategy parameters and backtest limits are defined HERE.

These values are reproduced exactly, not tuned:
- Strategy windows and thresholds are the published defaults of each signal
- The multi-factor z-score constants are empirical normalizers
- The ML coefficients are a fixed placeholder model (no training, ever)
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class StrategyConstants:
    """Fixed parameters for the signal strategies and the backtest loop."""

    # =========================================================================
    # TIME SERIES
    # =========================================================================

    # Daily bars per year, used to annualize volatility and Sharpe
    trading_days_year: int = 252

    # Default trailing window for annualized volatility
    volatility_period: int = 30

    # =========================================================================
    # MOVING-AVERAGE CROSSOVER
    # =========================================================================

    ma_short_window: int = 50
    ma_long_window: int = 200

    # =========================================================================
    # RSI MEAN REVERSION
    # =========================================================================

    rsi_period: int = 14
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0

    # Full-scale RSI excursion used to rescale the raw score (score / 50 * 2)
    rsi_score_scale: float = 50.0

    # =========================================================================
    # MULTI-FACTOR
    # =========================================================================

    momentum_period: int = 126  # ~6 months
    factor_volatility_period: int = 60  # ~3 months
    momentum_weight: float = 0.7
    volatility_weight: float = 0.3

    # z-score approximations: momentum / 0.3, -(vol - 0.25) / 0.15
    momentum_z_divisor: float = 0.3
    volatility_z_center: float = 0.25
    volatility_z_scale: float = 0.15

    # Direction band and normalized clamp
    factor_signal_threshold: float = 0.5
    factor_score_clamp: float = 2.0

    # =========================================================================
    # FIXED-COEFFICIENT LINEAR SIGNAL ("ML")
    # =========================================================================

    ml_min_bars: int = 60
    ml_momentum_period: int = 10
    ml_volatility_period: int = 30
    ml_bias: float = 0.1
    ml_rsi_weight: float = -0.5
    ml_momentum_weight: float = 2.0
    ml_volatility_weight: float = -1.0
    ml_buy_probability: float = 0.6
    ml_sell_probability: float = 0.4

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    buy_threshold: float = 0.5
    sell_threshold: float = -0.5
    confidence_score_points: float = 40.0
    confidence_agreement_points: float = 40.0
    confidence_volatility_points: float = 20.0

    # |score| differences below this are a ranking tie
    rank_tie_tolerance: float = 0.01

    # Volatility window used when building recommendations
    recommendation_volatility_period: int = 60

    # =========================================================================
    # BACKTEST LIMITS
    # =========================================================================

    max_tickers: int = 10
    max_backtest_days: int = 730
    min_history_bars: int = 200
    max_positions: int = 5


CONSTANTS = StrategyConstants()


# Default per-strategy weights for the aggregator
DEFAULT_WEIGHTS: Mapping[str, float] = MappingProxyType(
    {
        "ma_crossover": 1.0,
        "rsi_mean_reversion": 1.0,
        "multi_factor": 1.0,
        "ml_strategy": 0.5,
    }
)
