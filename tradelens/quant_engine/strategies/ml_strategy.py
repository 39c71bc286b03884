"""
Fixed-coefficient linear signal ("ML Strategy").

A deterministic linear model over three features passed through a logistic
sigmoid. The coefficients are fixed placeholders; nothing here is trained.

Features:
    rsi_norm   RSI(14) / 100, or 0.5 when RSI is undefined
    momentum   10-bar fractional change
    volatility 30-bar annualized volatility
"""

from __future__ import annotations

import math
from typing import Sequence

from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.indicators import annualized_volatility, momentum, rsi
from tradelens.quant_engine.strategies.base import fmt, fmt_pct, require_bars, strategy
from tradelens.quant_engine.types import PriceBar, Signal, SignalDirection, closes_of

NAME = "ML Strategy"


def sigmoid(x: float) -> float:
    """Logistic function, stable for large |x|."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


@strategy(NAME)
def ml_strategy(bars: Sequence[PriceBar]) -> Signal:
    require_bars(bars, CONSTANTS.ml_min_bars)

    closes = closes_of(bars)

    last_rsi = float(rsi(closes, CONSTANTS.rsi_period)[-1])
    rsi_norm = 0.5 if math.isnan(last_rsi) else last_rsi / 100
    short_momentum = momentum(closes, CONSTANTS.ml_momentum_period)
    vol = annualized_volatility(closes, CONSTANTS.ml_volatility_period)

    # Low RSI is bullish, so its weight is negative
    raw_score = (
        CONSTANTS.ml_bias
        + CONSTANTS.ml_rsi_weight * rsi_norm
        + CONSTANTS.ml_momentum_weight * short_momentum
        + CONSTANTS.ml_volatility_weight * vol
    )
    probability = sigmoid(raw_score)

    if probability > CONSTANTS.ml_buy_probability:
        direction = SignalDirection.BUY
    elif probability < CONSTANTS.ml_sell_probability:
        direction = SignalDirection.SELL
    else:
        direction = SignalDirection.NEUTRAL

    return Signal(
        name=NAME,
        raw_score=raw_score,
        normalized_score=(probability - 0.5) * 4,
        direction=direction,
        meta=(
            ("probability", fmt(probability, 3)),
            ("rsi", fmt(last_rsi)),
            ("momentum", fmt_pct(short_momentum)),
            ("volatility", fmt_pct(vol)),
        ),
    )
