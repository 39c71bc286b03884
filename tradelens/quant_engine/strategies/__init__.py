"""
Signal strategies and their registry.

Each strategy turns a price history into a :class:`Signal`. The registry maps
normalized strategy keys (the same keys used by the aggregator weights) to
the strategy functions, in evaluation order.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from tradelens.quant_engine.strategies.base import StrategyFn, neutral_signal
from tradelens.quant_engine.strategies.ma_crossover import ma_crossover_strategy
from tradelens.quant_engine.strategies.ml_strategy import ml_strategy
from tradelens.quant_engine.strategies.multi_factor import multi_factor_strategy
from tradelens.quant_engine.strategies.rsi_mean_reversion import rsi_mean_reversion_strategy
from tradelens.quant_engine.types import PriceBar, Signal, normalize_strategy_key

STRATEGIES: dict[str, StrategyFn] = {
    "ma_crossover": ma_crossover_strategy,
    "rsi_mean_reversion": rsi_mean_reversion_strategy,
    "multi_factor": multi_factor_strategy,
    "ml_strategy": ml_strategy,
}


def resolve_strategy_keys(names: Iterable[str] | None = None) -> list[str]:
    """
    Normalize requested strategy names to registry keys, in registry order.

    None selects every strategy. Raises KeyError for an unknown name.
    """
    if names is None:
        return list(STRATEGIES)
    requested = {normalize_strategy_key(name) for name in names}
    unknown = requested - STRATEGIES.keys()
    if unknown:
        raise KeyError(", ".join(sorted(unknown)))
    return [key for key in STRATEGIES if key in requested]


def run_strategies(
    bars: Sequence[PriceBar],
    names: Iterable[str] | None = None,
) -> list[Signal]:
    """Evaluate the selected strategies (default: all) over one history."""
    return [STRATEGIES[key](bars) for key in resolve_strategy_keys(names)]


__all__ = [
    "STRATEGIES",
    "StrategyFn",
    "ma_crossover_strategy",
    "ml_strategy",
    "multi_factor_strategy",
    "neutral_signal",
    "resolve_strategy_keys",
    "rsi_mean_reversion_strategy",
    "run_strategies",
]
