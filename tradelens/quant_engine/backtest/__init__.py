"""Backtest engine - periodic-rebalance simulation of the signal pipeline."""

from tradelens.quant_engine.backtest.engine import BacktestEngine, BacktestState, PortfolioState
from tradelens.quant_engine.backtest.schemas import BacktestConfig, BacktestResult

__all__ = [
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "BacktestState",
    "PortfolioState",
]
