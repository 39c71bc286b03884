"""
Core type definitions for the signal engine.

Price history, strategy signals, recommendations and backtest records.
All records are immutable once produced; portfolio state during a backtest
is held by the engine, not by these types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping


# =============================================================================
# Enums
# =============================================================================


class AssetClass(str, Enum):
    """Tradable instrument family."""

    STOCKS = "stocks"
    CRYPTO = "crypto"
    FOREX = "forex"


class SignalDirection(str, Enum):
    """Direction voted by a single strategy."""

    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


class RecommendationType(str, Enum):
    """Final aggregated call for an asset."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


# =============================================================================
# Price Data
# =============================================================================


@dataclass(frozen=True)
class PriceBar:
    """One daily OHLCV bar."""

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


def closes_of(bars: list[PriceBar] | tuple[PriceBar, ...]) -> list[float]:
    """Close prices of a bar sequence, in order."""
    return [bar.close for bar in bars]


# =============================================================================
# Signals & Recommendations
# =============================================================================

_KEY_WHITESPACE = re.compile(r"\s+")


def normalize_strategy_key(name: str) -> str:
    """Normalize a strategy name to its weight key ('MA Crossover' -> 'ma_crossover')."""
    return _KEY_WHITESPACE.sub("_", name.strip().lower())


@dataclass(frozen=True)
class Signal:
    """Output of one strategy for one (ticker, as-of date)."""

    name: str
    raw_score: float
    normalized_score: float
    direction: SignalDirection
    # Ordered (label, formatted value) diagnostics for display
    meta: tuple[tuple[str, str], ...] = ()

    @property
    def key(self) -> str:
        return normalize_strategy_key(self.name)

    @property
    def error(self) -> str | None:
        """Diagnostic tag when the strategy could not evaluate, else None."""
        for label, value in self.meta:
            if label == "error":
                return value
        return None

    def meta_dict(self) -> dict[str, str]:
        return dict(self.meta)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "raw_score": self.raw_score,
            "normalized_score": self.normalized_score,
            "direction": self.direction.value,
            "meta": [list(pair) for pair in self.meta],
        }


@dataclass(frozen=True)
class Recommendation:
    """Aggregated, scored call for one asset."""

    ticker: str
    asset_class: AssetClass
    recommendation: RecommendationType
    score: float
    confidence: float  # 0-100
    volatility: float  # annualized fraction
    current_price: float
    price_change_pct: float
    contributing_signals: Mapping[str, Signal] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticker": self.ticker,
            "asset_class": self.asset_class.value,
            "recommendation": self.recommendation.value,
            "score": self.score,
            "confidence": self.confidence,
            "volatility": self.volatility,
            "current_price": self.current_price,
            "price_change_pct": self.price_change_pct,
            "contributing_signals": {
                key: signal.to_dict() for key, signal in self.contributing_signals.items()
            },
        }


# =============================================================================
# Backtest Records
# =============================================================================


@dataclass(frozen=True)
class Trade:
    """Append-only trade log entry."""

    date: date
    ticker: str
    action: TradeAction
    price: float
    quantity: int
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "ticker": self.ticker,
            "action": self.action.value,
            "price": self.price,
            "quantity": self.quantity,
            "value": self.value,
        }


@dataclass(frozen=True)
class EquityPoint:
    """Mark-to-market portfolio value at the close of a date."""

    date: date
    value: float

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), "value": self.value}
