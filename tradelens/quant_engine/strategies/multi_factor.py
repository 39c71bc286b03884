"""
Multi-Factor: momentum and volatility as approximate z-scores.

High momentum with low volatility is bullish; weak momentum with high
volatility is bearish. The normalization constants are fixed empirical
values from the strategy constants.
"""

from __future__ import annotations

from typing import Sequence

from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.indicators import annualized_volatility, momentum
from tradelens.quant_engine.strategies.base import fmt, fmt_pct, require_bars, strategy
from tradelens.quant_engine.types import PriceBar, Signal, SignalDirection, closes_of

NAME = "Multi Factor"


@strategy(NAME)
def multi_factor_strategy(
    bars: Sequence[PriceBar],
    momentum_period: int = CONSTANTS.momentum_period,
    volatility_period: int = CONSTANTS.factor_volatility_period,
    momentum_weight: float = CONSTANTS.momentum_weight,
    volatility_weight: float = CONSTANTS.volatility_weight,
) -> Signal:
    require_bars(bars, momentum_period)

    closes = closes_of(bars)
    mom = momentum(closes, momentum_period)
    vol = annualized_volatility(closes, volatility_period)

    momentum_z = mom / CONSTANTS.momentum_z_divisor
    # High volatility is penalized, hence the negation
    volatility_z = -(vol - CONSTANTS.volatility_z_center) / CONSTANTS.volatility_z_scale

    combined = momentum_weight * momentum_z + volatility_weight * volatility_z

    threshold = CONSTANTS.factor_signal_threshold
    if combined > threshold:
        direction = SignalDirection.BUY
    elif combined < -threshold:
        direction = SignalDirection.SELL
    else:
        direction = SignalDirection.NEUTRAL

    clamp = CONSTANTS.factor_score_clamp
    return Signal(
        name=NAME,
        raw_score=combined,
        normalized_score=max(-clamp, min(clamp, combined)),
        direction=direction,
        meta=(
            ("momentum", fmt_pct(mom)),
            ("volatility", fmt_pct(vol)),
            ("momentum_z", fmt(momentum_z)),
            ("volatility_z", fmt(volatility_z)),
        ),
    )
