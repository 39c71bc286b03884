"""TradeLens - trading signal generation, aggregation and backtesting."""

__version__ = "1.0.0"
