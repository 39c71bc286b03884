"""RSI Mean Reversion: buy oversold, sell overbought, stay neutral in between."""

from __future__ import annotations

import math
from typing import Sequence

from tradelens.core.exceptions import InsufficientHistoryError
from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.indicators import rsi
from tradelens.quant_engine.strategies.base import fmt, require_bars, strategy
from tradelens.quant_engine.types import PriceBar, Signal, SignalDirection, closes_of

NAME = "RSI Mean Reversion"


@strategy(NAME)
def rsi_mean_reversion_strategy(
    bars: Sequence[PriceBar],
    period: int = CONSTANTS.rsi_period,
    oversold: float = CONSTANTS.rsi_oversold,
    overbought: float = CONSTANTS.rsi_overbought,
) -> Signal:
    require_bars(bars, period + 1)

    last_rsi = float(rsi(closes_of(bars), period)[-1])
    if math.isnan(last_rsi):
        raise InsufficientHistoryError("RSI calculation failed")

    if last_rsi < oversold:
        raw_score = oversold - last_rsi
        direction = SignalDirection.BUY
    elif last_rsi > overbought:
        raw_score = -(last_rsi - overbought)
        direction = SignalDirection.SELL
    else:
        raw_score = 0.0
        direction = SignalDirection.NEUTRAL

    # Full-scale excursion (RSI 0 or 100) maps to roughly +/-1.2
    normalized_score = raw_score / CONSTANTS.rsi_score_scale * 2

    return Signal(
        name=NAME,
        raw_score=raw_score,
        normalized_score=normalized_score,
        direction=direction,
        meta=(
            ("rsi", fmt(last_rsi)),
            ("period", str(period)),
            ("oversold", fmt(oversold, 0)),
            ("overbought", fmt(overbought, 0)),
        ),
    )
