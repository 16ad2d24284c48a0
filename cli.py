from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from pathlib import Path

import typer
from loguru import logger
from pydantic import ValidationError

from config.settings import get_settings
from backtester.execution import OrderSizer
from backtester.models import Direction, ExchangeSettings, OrderEvent
from backtester.replay import load_event_file, replay_into
from backtester.statistics import ResultsAggregator, TimelineStore
from backtester.utils.exceptions import BacktesterError, ConfigError
from backtester.utils.logging import setup_logging

app = typer.Typer(no_args_is_help=True)


def _decimal(value: str, name: str) -> Decimal:
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ConfigError(f"{name} must be a decimal number, got '{value}'")
    if not number.is_finite():
        raise ConfigError(f"{name} must be a finite number, got '{value}'")
    return number


@app.command()
def size(
    direction: str = typer.Option(..., help="BUY or SELL"),
    price: str = typer.Option(..., help="Order price"),
    funds: str = typer.Option(..., help="Funds available for the order"),
    fee: str = typer.Option(None, help="Fee rate, defaults to EXCHANGE_FEE"),
    limit: str = typer.Option("0", help="Maximum quantity the order may take, 0 for none"),
) -> None:
    """Size one order against the configured constraints."""
    try:
        order_direction = Direction(direction.upper())
    except ValueError:
        typer.echo(f"Invalid direction '{direction}', expected BUY or SELL", err=True)
        raise typer.Exit(code=1)

    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.report.log_dir)

        exchange_settings = settings.sizing.exchange_settings()
        if fee is not None:
            try:
                exchange_settings = ExchangeSettings.model_validate(
                    {**exchange_settings.model_dump(), "exchange_fee": _decimal(fee, "fee")}
                )
            except ValidationError as e:
                raise ConfigError(f"fee must be at least 0 and below 1, got '{fee}'") from e

        order_limit = _decimal(limit, "limit")
        order = OrderEvent(
            offset=0,
            exchange="cli",
            asset="spot",
            pair="CLI",
            time=datetime.now(timezone.utc),
            direction=order_direction,
            price=_decimal(price, "price"),
            buy_limit=order_limit,
            sell_limit=order_limit,
        )
        sizer = OrderSizer(
            buy_side=settings.sizing.buy_side(),
            sell_side=settings.sizing.sell_side(),
        )
        sized = sizer.size_order(order, _decimal(funds, "funds"), exchange_settings)

        typer.echo(f"Direction: {sized.direction.value}")
        typer.echo(f"Price: {sized.price}")
        typer.echo(f"Fee rate: {exchange_settings.exchange_fee}")
        typer.echo(f"Amount: {sized.amount}")

    except BacktesterError as e:
        typer.echo(f"Sizing failed: {e}", err=True)
        raise typer.Exit(code=1)


@app.command()
def report(
    events_file: Path = typer.Argument(..., help="JSON file of recorded events"),
    output: Path = typer.Option(None, help="Write serialised results to this file"),
) -> None:
    """Replay recorded events and calculate backtest results."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.report.log_dir)

        event_file = load_event_file(events_file)
        store = TimelineStore()
        replay_into(store, event_file)

        aggregator = ResultsAggregator(store)
        aggregator.set_strategy_name(
            event_file.strategy.name or settings.report.strategy_name,
            event_file.strategy.nickname or settings.report.strategy_nickname,
            event_file.strategy.goal or settings.report.strategy_goal,
        )
        results = aggregator.calculate_all_results(event_file.funding_source())

        typer.echo("Backtest Results")
        typer.echo("=" * 80)
        typer.echo(f"{'Exchange':<12} | {'Asset':<8} | {'Pair':<12} | {'Market %':<10} | {'Strategy %':<10} | {'Orders':<6}")
        typer.echo("=" * 80)
        for stats in results.all_stats:
            typer.echo(
                f"{stats.exchange:<12} | {stats.asset:<8} | {stats.pair:<12} | "
                f"{stats.market_movement:<10.2f} | {stats.strategy_movement:<10.2f} | {stats.total_orders:<6}"
            )
        typer.echo("")
        typer.echo(f"Total orders: {results.total_orders}")
        if results.was_any_data_missing:
            typer.echo("Warning: missing data was detected during the run")
        if results.audit_errors:
            typer.echo(f"Audit errors: {len(results.audit_errors)}")

        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(aggregator.serialise(), encoding="utf-8")
            typer.echo(f"Results written to {output}")
            logger.info(f"Results written to {output}")

    except ConfigError as e:
        typer.echo(f"{e}", err=True)
        raise typer.Exit(code=1)
    except BacktesterError as e:
        typer.echo(f"Report failed: {e}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
