"""
Backtester command line: compare grid and DCA on a CSV candle archive.

Usage:
    python -m dcagrid.main --data btc_1h.csv \\
        --start 2024-01-01T00:00:00Z --end 2024-06-30T23:59:59Z

Options not given on the command line fall back to the ``backtest`` section
of ``--config`` when one is supplied, then to built-in defaults.

Exit codes: 0 on success, 2 on usage errors, 1 on load or config errors.
"""

import argparse
import json
import sys
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from dcagrid.backtesting.comparison import StrategyComparator, StrategyComparison
from dcagrid.backtesting.data_loader import load_candles
from dcagrid.backtesting.fee_analysis import calculate_fee_impact
from dcagrid.backtesting.performance import PerformanceMetrics
from dcagrid.config.manager import ConfigManager
from dcagrid.config.schemas import AppConfig, BacktestSettings, parse_duration
from dcagrid.core.models import ConfigError, DCAConfig, GridConfig
from dcagrid.core.time_provider import as_utc
from dcagrid.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


class UsageError(Exception):
    """Invalid command-line input."""


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; a missing offset means UTC."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise UsageError(f"invalid timestamp: {value!r}") from None
    return as_utc(parsed)


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcagrid",
        description="Compare grid and DCA strategies on historical candles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--data", help="Path to CSV (timestamp,open,high,low,close,volume)")
    parser.add_argument("--start", help="Window start (RFC 3339)")
    parser.add_argument("--end", help="Window end (RFC 3339)")
    parser.add_argument("--symbol", help="Symbol (default: BTCUSDT)")
    parser.add_argument("--initial", type=_decimal, help="Initial balance (default: 10000)")
    parser.add_argument("--dca-interval", help="DCA interval, e.g. 24h (default: 24h)")
    parser.add_argument("--dca-amount", type=_decimal, help="DCA investment amount (default: 100)")
    parser.add_argument("--dca-max", type=int, help="DCA max investments (default: 100)")
    parser.add_argument("--grid-lower", type=_decimal, help="Grid lower bound (default: 30000)")
    parser.add_argument("--grid-upper", type=_decimal, help="Grid upper bound (default: 60000)")
    parser.add_argument("--grid-levels", type=int, help="Grid levels (default: 20)")
    parser.add_argument(
        "--grid-invest", type=_decimal, help="Grid investment per level (default: 100)"
    )
    parser.add_argument("--fee", type=_decimal, help="Taker fee rate (default: 0.001)")
    parser.add_argument(
        "--format",
        choices=["json", "text"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--fee-analysis",
        action="store_true",
        help="Include a monthly fee impact estimate per strategy",
    )
    parser.add_argument("--config", type=Path, help="YAML configuration file")
    parser.add_argument(
        "--write-example-config",
        type=Path,
        metavar="PATH",
        help="Write an example configuration file and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: config value or WARNING)",
    )
    return parser


def _pick(cli_value: Any, fallback: Any) -> Any:
    return fallback if cli_value is None else cli_value


def build_configs(
    args: argparse.Namespace, settings: BacktestSettings
) -> tuple[str, Decimal, Decimal, DCAConfig, GridConfig]:
    """Merge command-line values over the configured backtest settings."""
    symbol = _pick(args.symbol, settings.symbol)

    if args.dca_interval is not None:
        try:
            interval = parse_duration(args.dca_interval)
        except ValueError as e:
            raise UsageError(str(e)) from None
    else:
        interval = settings.dca.interval

    dca_config = DCAConfig(
        symbol=symbol,
        investment_amount=_pick(args.dca_amount, settings.dca.investment_amount),
        interval=interval,
        max_investments=_pick(args.dca_max, settings.dca.max_investments),
        price_threshold=settings.dca.price_threshold,
    )

    grid_config = settings.grid.to_engine_config(symbol)
    grid_config.lower_price = _pick(args.grid_lower, grid_config.lower_price)
    grid_config.upper_price = _pick(args.grid_upper, grid_config.upper_price)
    grid_config.grid_levels = _pick(args.grid_levels, grid_config.grid_levels)
    grid_config.investment_per_level = _pick(args.grid_invest, grid_config.investment_per_level)

    initial = _pick(args.initial, settings.initial_capital)
    fee_rate = _pick(args.fee, settings.fee_rate)
    return symbol, initial, fee_rate, dca_config, grid_config


def fee_analysis(
    name: str, metrics: PerformanceMetrics, period: timedelta, initial_capital: Decimal
) -> dict[str, Any]:
    """Monthly fee impact derived from a backtest's metrics."""
    months = max(period.total_seconds() / (30 * 24 * 3600), 1.0)
    monthly_trades = round(metrics.trade_count / months)
    avg_fee = metrics.total_fees / metrics.trade_count if metrics.trade_count else 0.0
    monthly_return = float(initial_capital) * metrics.total_return_pct / 100 / months
    return calculate_fee_impact(name, monthly_trades, avg_fee, monthly_return).to_dict()


def render(
    comparison: StrategyComparison,
    output_format: str,
    extra: dict[str, Any] | None = None,
) -> str:
    if output_format == "text":
        report = StrategyComparator.format_report(comparison)
        if extra:
            lines = [report, "", "Fee Impact:"]
            for item in extra.get("fee_analysis", []):
                lines.append(
                    f"  {item['strategy']:<6} trades/month={item['trade_frequency']} "
                    f"fees/month=${item['monthly_fee_cost']:,.2f} "
                    f"fee/return={item['fee_to_return_ratio']:.1f}%"
                )
            report = "\n".join(lines)
        return report

    payload = comparison.to_dict()
    if extra:
        payload.update(extra)
    return json.dumps(payload, indent=2)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.write_example_config is not None:
        ConfigManager.create_example_config(args.write_example_config)
        print(f"Example configuration created at: {args.write_example_config}")
        return EXIT_OK

    app_config = AppConfig(log_to_file=False, log_level="WARNING")
    if args.config is not None:
        try:
            app_config = ConfigManager(args.config).load()
        except (FileNotFoundError, yaml.YAMLError, KeyError, ValidationError) as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_ERROR

    setup_logging(
        log_level=args.log_level or app_config.log_level,
        log_dir=Path(app_config.log_dir),
        log_to_console=app_config.log_to_console,
        log_to_file=app_config.log_to_file,
        json_logs=app_config.json_logs,
    )

    settings = app_config.backtest
    data = _pick(args.data, settings.data_file)
    if not data or (args.start is None and settings.start is None) or (
        args.end is None and settings.end is None
    ):
        print(
            "usage: dcagrid --data file.csv --start RFC3339 --end RFC3339 [opts]",
            file=sys.stderr,
        )
        return EXIT_USAGE

    try:
        start = parse_timestamp(args.start) if args.start else settings.start
        end = parse_timestamp(args.end) if args.end else settings.end
        symbol, initial, fee_rate, dca_config, grid_config = build_configs(args, settings)
    except UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        candles = load_candles(data)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        comparison = StrategyComparator(fee_rate=fee_rate).compare(
            symbol, candles, start, end, initial, dca_config, grid_config
        )
    except ConfigError as e:
        logger.error("invalid_strategy_config", error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    extra = None
    if args.fee_analysis:
        extra = {
            "fee_analysis": [
                fee_analysis("grid", comparison.grid_metrics, comparison.period, initial),
                fee_analysis("dca", comparison.dca_metrics, comparison.period, initial),
            ]
        }

    print(render(comparison, args.format, extra))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
