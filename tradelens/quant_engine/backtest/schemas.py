"""
Backtest configuration and result containers.

BacktestConfig is validated once, before any I/O, by ``validate()`` which
returns a normalized copy (parsed dates, cleaned ticker list, registry
strategy keys) or raises ValidationError with a human-readable reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from tradelens.core.exceptions import ValidationError
from tradelens.quant_engine.config import CONSTANTS
from tradelens.quant_engine.metrics import PerformanceMetrics
from tradelens.quant_engine.strategies import resolve_strategy_keys
from tradelens.quant_engine.types import AssetClass, EquityPoint, Trade


def _parse_date(value: date | str | None, label: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} date", details={"value": value}) from None


@dataclass
class BacktestConfig:
    """User-supplied backtest request."""

    tickers: list[str]
    asset_class: AssetClass | str
    strategies: list[str]
    start_date: date | str
    end_date: date | str
    rebalance_period: int = 30  # days
    initial_capital: float = 100_000.0

    def validate(self, today: date | None = None) -> "BacktestConfig":
        """
        Check every precondition and return the normalized config.

        Raises:
            ValidationError: on the first violated precondition
        """
        today = today or date.today()

        if not self.tickers:
            raise ValidationError("At least one ticker is required")
        if len(self.tickers) > CONSTANTS.max_tickers:
            raise ValidationError(
                f"Maximum {CONSTANTS.max_tickers} tickers allowed",
                details={"count": len(self.tickers)},
            )

        tickers: list[str] = []
        for ticker in self.tickers:
            cleaned = (ticker or "").strip()
            if cleaned and cleaned not in tickers:
                tickers.append(cleaned)
        if not tickers:
            raise ValidationError("At least one ticker is required")

        if not self.strategies:
            raise ValidationError("At least one strategy must be selected")
        try:
            strategies = resolve_strategy_keys(self.strategies)
        except KeyError as e:
            raise ValidationError(f"Unknown strategy: {e.args[0]}") from None

        try:
            asset_class = AssetClass(self.asset_class)
        except ValueError:
            raise ValidationError(
                "Invalid asset class", details={"value": self.asset_class}
            ) from None

        start = _parse_date(self.start_date, "start")
        end = _parse_date(self.end_date, "end")

        if end <= start:
            raise ValidationError("End date must be after start date")
        if end > today:
            raise ValidationError("End date cannot be in the future")
        if (end - start).days > CONSTANTS.max_backtest_days:
            raise ValidationError(
                f"Maximum backtest period is 2 years ({CONSTANTS.max_backtest_days} days)"
            )

        if not self.initial_capital > 0:
            raise ValidationError("Initial capital must be greater than 0")
        if not self.rebalance_period > 0:
            raise ValidationError("Rebalance period must be greater than 0")

        return replace(
            self,
            tickers=tickers,
            asset_class=asset_class,
            strategies=strategies,
            start_date=start,
            end_date=end,
        )


@dataclass
class BacktestResult:
    """Outcome of one backtest run."""

    equity_curve: list[EquityPoint]
    metrics: PerformanceMetrics
    trades: list[Trade]
    period_returns: list[float] = field(default_factory=list)
    tickers_used: list[str] = field(default_factory=list)
    tickers_skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "equity_curve": [point.to_dict() for point in self.equity_curve],
            "metrics": self.metrics.to_dict(),
            "trades": [trade.to_dict() for trade in self.trades],
            "period_returns": list(self.period_returns),
            "tickers_used": list(self.tickers_used),
            "tickers_skipped": list(self.tickers_skipped),
        }
