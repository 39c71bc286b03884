"""
Strategy plumbing shared by all signal generators.

A strategy is a plain function ``(bars, **params) -> Signal``. Decorating it
with :func:`strategy` gives it a display name and converts
``InsufficientHistoryError`` into a neutral, zero-score signal so a starved
strategy never stops the others or the aggregator.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Protocol, Sequence

from tradelens.core.exceptions import InsufficientHistoryError
from tradelens.quant_engine.types import PriceBar, Signal, SignalDirection

logger = logging.getLogger(__name__)


class StrategyFn(Protocol):
    strategy_name: str

    def __call__(self, bars: Sequence[PriceBar], **params) -> Signal: ...


def neutral_signal(name: str, reason: str) -> Signal:
    """Zero-score neutral signal annotated with a diagnostic."""
    return Signal(
        name=name,
        raw_score=0.0,
        normalized_score=0.0,
        direction=SignalDirection.NEUTRAL,
        meta=(("error", reason),),
    )


def require_bars(bars: Sequence[PriceBar], minimum: int) -> None:
    """Raise InsufficientHistoryError when fewer than `minimum` bars are given."""
    if len(bars) < minimum:
        raise InsufficientHistoryError(
            "Insufficient data",
            details={"bars": len(bars), "required": minimum},
        )


def strategy(name: str) -> Callable[[Callable[..., Signal]], StrategyFn]:
    """Register a display name and the insufficient-history fallback."""

    def decorator(func: Callable[..., Signal]) -> StrategyFn:
        @functools.wraps(func)
        def wrapper(bars: Sequence[PriceBar], **params) -> Signal:
            try:
                return func(bars, **params)
            except InsufficientHistoryError as exc:
                logger.debug(f"{name}: {exc.message} ({len(bars)} bars)")
                return neutral_signal(name, exc.message)

        wrapper.strategy_name = name
        return wrapper

    return decorator


def fmt(value: float, digits: int = 2) -> str:
    """Fixed-point display value; 'n/a' for NaN."""
    if value != value:
        return "n/a"
    return f"{value:.{digits}f}"


def fmt_pct(fraction: float) -> str:
    """Fraction rendered as a percentage with two decimals."""
    return f"{fmt(fraction * 100)}%"
