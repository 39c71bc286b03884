"""
Moving-Average Crossover.

Golden cross (short MA crosses above long MA) is a buy, death cross a sell.
Without a cross on the latest bar the dominant MA sets the trend direction.
"""

from __future__ import annotations

from typing import Sequence

from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.indicators import last_valid, sma
from tradelens.quant_engine.strategies.base import fmt, require_bars, strategy
from tradelens.quant_engine.types import PriceBar, Signal, SignalDirection, closes_of


NAME = "MA Crossover"


@strategy(NAME)
def ma_crossover_strategy(
    bars: Sequence[PriceBar],
    short_window: int = CONSTANTS.ma_short_window,
    long_window: int = CONSTANTS.ma_long_window,
) -> Signal:
    """
    Score the spread between a short and a long simple moving average.

    raw_score is shortMA - longMA in price units; normalized_score expresses
    it as a percentage of the current price.
    """
    require_bars(bars, max(short_window, long_window))

    closes = closes_of(bars)
    short_ma = last_valid(sma(closes, short_window), 2)
    long_ma = last_valid(sma(closes, long_window), 2)

    last_short, last_long = float(short_ma[-1]), float(long_ma[-1])
    last_price = closes[-1]

    raw_score = last_short - last_long
    normalized_score = raw_score / last_price * 100

    direction = SignalDirection.NEUTRAL
    event = "trend"
    if len(short_ma) == 2 and len(long_ma) == 2:
        prev_short, prev_long = float(short_ma[0]), float(long_ma[0])
        if prev_short <= prev_long and last_short > last_long:
            direction, event = SignalDirection.BUY, "golden_cross"
        elif prev_short >= prev_long and last_short < last_long:
            direction, event = SignalDirection.SELL, "death_cross"

    if event == "trend":
        if last_short > last_long:
            direction = SignalDirection.BUY
        elif last_short < last_long:
            direction = SignalDirection.SELL

    return Signal(
        name=NAME,
        raw_score=raw_score,
        normalized_score=normalized_score,
        direction=direction,
        meta=(
            ("short_ma", fmt(last_short)),
            ("long_ma", fmt(last_long)),
            ("short_window", str(short_window)),
            ("long_window", str(long_window)),
            ("event", event),
        ),
    )
