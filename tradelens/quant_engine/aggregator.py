"""
Signal Aggregator.

Fuses per-strategy signals into one scored recommendation:

    combined = sum(w_k * s_k.normalized) / sum(w_k)   over strategies with a weight

Direction: BUY if combined >= 0.5, SELL if <= -0.5, else HOLD.

Confidence (0-100) is the sum of three independently clamped bands:
    score      min(|combined| / 2, 1) * 40        conviction
    agreement  majority direction share * 40      strategies agreeing
    volatility 20 - min(volatility * 100, 20)     calm markets score higher
"""

from __future__ import annotations

import functools
import logging
from typing import Mapping, Sequence

from tradelens.quant_engine.config import CONSTANTS, DEFAULT_WEIGHTS
from tradelens.quant_engine.types import (
    AssetClass,
    Recommendation,
    RecommendationType,
    Signal,
    SignalDirection,
    normalize_strategy_key,
)

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def compute_confidence(
    signals: Sequence[Signal],
    combined_score: float,
    volatility: float,
) -> float:
    """Confidence in [0, 100]; 0 when no signals are supplied."""
    if not signals:
        return 0.0

    score_points = CONSTANTS.confidence_score_points
    agreement_points = CONSTANTS.confidence_agreement_points
    volatility_points = CONSTANTS.confidence_volatility_points

    score_factor = _clamp(min(abs(combined_score) / 2, 1.0) * score_points, 0.0, score_points)

    votes = {direction: 0 for direction in SignalDirection}
    for signal in signals:
        votes[signal.direction] += 1
    agreement_factor = _clamp(
        max(votes.values()) / len(signals) * agreement_points, 0.0, agreement_points
    )

    volatility_penalty = min(volatility * 100, volatility_points)
    volatility_factor = _clamp(volatility_points - volatility_penalty, 0.0, volatility_points)

    return _clamp(score_factor + agreement_factor + volatility_factor, 0.0, 100.0)


def classify_score(combined_score: float) -> RecommendationType:
    if combined_score >= CONSTANTS.buy_threshold:
        return RecommendationType.BUY
    if combined_score <= CONSTANTS.sell_threshold:
        return RecommendationType.SELL
    return RecommendationType.HOLD


def aggregate(
    ticker: str,
    asset_class: AssetClass,
    current_price: float,
    price_change_pct: float,
    volatility: float,
    signals: Sequence[Signal],
    weights: Mapping[str, float] | None = None,
) -> Recommendation:
    """
    Combine strategy signals into one Recommendation.

    Signals are keyed by their normalized name and matched against the
    weights mapping; signals without a weight still count toward the
    agreement vote but not toward the score. No matching weight at all
    gives a combined score of 0.
    """
    weights = DEFAULT_WEIGHTS if weights is None else weights

    signal_map: dict[str, Signal] = {
        normalize_strategy_key(signal.name): signal for signal in signals
    }

    weighted_score = 0.0
    total_weight = 0.0
    for key, weight in weights.items():
        signal = signal_map.get(key)
        if signal is not None:
            weighted_score += weight * signal.normalized_score
            total_weight += weight

    combined_score = weighted_score / total_weight if total_weight > 0 else 0.0

    return Recommendation(
        ticker=ticker,
        asset_class=AssetClass(asset_class),
        recommendation=classify_score(combined_score),
        score=combined_score,
        confidence=compute_confidence(signals, combined_score, volatility),
        volatility=volatility,
        current_price=current_price,
        price_change_pct=price_change_pct,
        contributing_signals=signal_map,
    )


def _compare(a: Recommendation, b: Recommendation) -> int:
    score_diff = abs(b.score) - abs(a.score)
    if abs(score_diff) > CONSTANTS.rank_tie_tolerance:
        return 1 if score_diff > 0 else -1
    confidence_diff = b.confidence - a.confidence
    if confidence_diff > 0:
        return 1
    if confidence_diff < 0:
        return -1
    return 0


def rank(recommendations: Sequence[Recommendation]) -> list[Recommendation]:
    """
    Order by conviction: |score| descending, confidence breaking ties.

    |score| differences within 0.01 count as a tie, so a strong SELL ranks
    above a weak BUY. The sort is stable and returns a new list.
    """
    return sorted(recommendations, key=functools.cmp_to_key(_compare))
