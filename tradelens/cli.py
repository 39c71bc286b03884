"""
Command-line entry point.

    tradelens recommend AAPL MSFT BTC-USD --limit 5
    tradelens backtest AAPL MSFT --start 2023-01-01 --end 2023-12-31
    tradelens detail EURUSD=X

Results are printed to stdout as JSON; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import TYPE_CHECKING, Any, Optional, Sequence

from tradelens.core.config import settings
from tradelens.core.exceptions import AppException
from tradelens.core.logging import get_logger, setup_logging
from tradelens.quant_engine.backtest import BacktestConfig
from tradelens.quant_engine.service import (
    generate_recommendations,
    get_asset_detail,
    run_backtest,
)
from tradelens.quant_engine.strategies import STRATEGIES
from tradelens.quant_engine.types import AssetClass
from tradelens.services.data_providers import YFinanceHistoryProvider

if TYPE_CHECKING:
    from tradelens.services.data_providers.base import HistoryProvider

logger = get_logger("cli")

ASSET_CLASSES = [member.value for member in AssetClass]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tradelens",
        description=f"{settings.app_name}: signals, rankings and backtests over daily prices.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help=f"default: {settings.log_level}",
    )
    parser.add_argument("--log-format", choices=["json", "text"], default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    recommend = commands.add_parser("recommend", help="Rank tickers by signal conviction")
    recommend.add_argument("tickers", nargs="*", help="defaults to the configured universe")
    recommend.add_argument("--asset-class", choices=ASSET_CLASSES, default=None)
    recommend.add_argument("--limit", type=int, default=None)

    backtest = commands.add_parser("backtest", help="Replay the signal pipeline over history")
    backtest.add_argument("tickers", nargs="+")
    backtest.add_argument("--asset-class", choices=ASSET_CLASSES, default="stocks")
    backtest.add_argument(
        "--strategies",
        nargs="+",
        default=list(STRATEGIES),
        help="strategy names (default: all)",
    )
    backtest.add_argument("--start", required=True, help="YYYY-MM-DD")
    backtest.add_argument("--end", required=True, help="YYYY-MM-DD")
    backtest.add_argument("--rebalance-period", type=int, default=30, help="days")
    backtest.add_argument("--capital", type=float, default=100_000.0)

    detail = commands.add_parser("detail", help="Signals and statistics for one asset")
    detail.add_argument("ticker")
    detail.add_argument("--asset-class", choices=ASSET_CLASSES, default=None)

    return parser


async def _dispatch(args: argparse.Namespace, provider: "HistoryProvider") -> Any:
    if args.command == "recommend":
        ranked = await generate_recommendations(
            args.tickers,
            args.asset_class,
            provider=provider,
            limit=args.limit,
        )
        return [rec.to_dict() for rec in ranked]

    if args.command == "backtest":
        config = BacktestConfig(
            tickers=args.tickers,
            asset_class=args.asset_class,
            strategies=args.strategies,
            start_date=args.start,
            end_date=args.end,
            rebalance_period=args.rebalance_period,
            initial_capital=args.capital,
        )
        result = await run_backtest(config, provider=provider)
        return result.to_dict()

    detail = await get_asset_detail(args.ticker, provider=provider, asset_class=args.asset_class)
    return detail.to_dict()


def main(
    argv: Optional[Sequence[str]] = None,
    provider: Optional["HistoryProvider"] = None,
) -> int:
    """Run one command; returns the process exit code."""
    args = _build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_format=args.log_format, stream=sys.stderr)

    if provider is None:
        provider = YFinanceHistoryProvider()

    try:
        payload = asyncio.run(_dispatch(args, provider))
    except AppException as e:
        logger.error(f"{args.command} failed: {e.message}")
        print(json.dumps(e.to_dict(), default=str), file=sys.stderr)
        return 1

    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
