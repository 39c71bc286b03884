"""
Quant engine - signal strategies, aggregation and backtesting.

Modules:
- indicators: SMA, RSI, returns and volatility primitives
- strategies: the four signal generators and their registry
- aggregator: weighted signal fusion, confidence and ranking
- metrics: backtest performance statistics
- backtest: periodic-rebalance portfolio simulation
- service: async entry points over an injected history provider
"""

from tradelens.quant_engine.aggregator import aggregate, compute_confidence, rank
from tradelens.quant_engine.config import CONSTANTS, DEFAULT_WEIGHTS, StrategyConstants
from tradelens.quant_engine.metrics import PerformanceMetrics, calculate_performance_metrics
from tradelens.quant_engine.types import (
    AssetClass,
    EquityPoint,
    PriceBar,
    Recommendation,
    RecommendationType,
    Signal,
    SignalDirection,
    Trade,
    TradeAction,
)

__all__ = [
    "AssetClass",
    "CONSTANTS",
    "DEFAULT_WEIGHTS",
    "EquityPoint",
    "PerformanceMetrics",
    "PriceBar",
    "Recommendation",
    "RecommendationType",
    "Signal",
    "SignalDirection",
    "StrategyConstants",
    "Trade",
    "TradeAction",
    "aggregate",
    "calculate_performance_metrics",
    "compute_confidence",
    "rank",
]
