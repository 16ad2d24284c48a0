"""
Results Aggregator - turns a completed TimelineStore into run results.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Callable, Optional

from loguru import logger

from backtester.models import (
    BacktestResults,
    EventRecord,
    FinalResultsHolder,
    PairFunding,
    Timeline,
)
from backtester.statistics.calculator import TimelineCalculator
from backtester.statistics.interfaces import ActiveEvent, CalculatorFactory, FundingSource
from backtester.statistics.store import TimelineStore
from backtester.utils.exceptions import BacktesterError
from backtester.utils.logging import audit_logger

SIMPLE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class EventOutputHolder:
    time: datetime
    events: list[str] = field(default_factory=list)


class ResultsAggregator:
    """
    Walks every Timeline of a store after the run has finished.

    Produces the chronological audit log, asks the calculator for per-tuple
    results and picks the biggest drawdown and best performers across tuples.
    """

    def __init__(
        self,
        store: TimelineStore,
        calculator_factory: CalculatorFactory = TimelineCalculator,
    ):
        self.store = store
        self.calculator_factory = calculator_factory
        self.results = BacktestResults()

    def set_strategy_name(self, name: str, nickname: str = "", goal: str = "") -> None:
        self.results.strategy_name = name
        self.results.strategy_nickname = nickname
        self.results.strategy_goal = goal

    def reset(self) -> None:
        """Empty the store and drop results, keeping the strategy identity."""
        self.store.reset()
        self.results = BacktestResults(
            strategy_name=self.results.strategy_name,
            strategy_nickname=self.results.strategy_nickname,
            strategy_goal=self.results.strategy_goal,
        )

    def calculate_all_results(self, funding: FundingSource) -> BacktestResults:
        """
        Calculate results for every tuple and across all tuples.

        Args:
            funding: Source of per-tuple funding views and the funding report

        Returns:
            BacktestResults for the run

        Raises:
            Any error from funding.funding_for_event; a failed funding lookup
            aborts the whole aggregation.
        """
        logger.info("calculating backtesting results")
        results = BacktestResults(
            strategy_name=self.results.strategy_name,
            strategy_nickname=self.results.strategy_nickname,
            strategy_goal=self.results.strategy_goal,
        )
        self.results = results
        self.print_all_events_chronologically()

        exchange_level = funding.is_using_exchange_level_funding()
        final_results: list[FinalResultsHolder] = []
        start_date: Optional[datetime] = None
        end_date: Optional[datetime] = None

        for exchange, asset, pair, timeline in self.store.timelines():
            if not timeline.events:
                continue
            first = timeline.events[0]
            last = terminal_record(timeline)
            start_date = _earliest(start_date, first.time)
            end_date = _latest(end_date, last.time)

            pair_funding = funding.funding_for_event(active_event(last))

            try:
                self.calculator_factory(timeline).calculate_results(pair_funding)
            except (BacktesterError, ArithmeticError, ValueError) as e:
                logger.error(f"{exchange} {asset} {pair} results calculation failed: {e}")
            else:
                self._log_pair_results(timeline, pair_funding, exchange_level)

            timeline.final_holdings = last.holdings
            timeline.initial_holdings = first.holdings
            timeline.final_orders = last.transactions
            results.all_stats.append(timeline)

            final_results.append(
                FinalResultsHolder(
                    exchange=exchange,
                    asset=asset,
                    pair=pair,
                    max_drawdown=timeline.max_drawdown.model_copy(),
                    market_movement=timeline.market_movement,
                    strategy_movement=timeline.strategy_movement,
                )
            )
            results.total_buy_orders += timeline.buy_orders
            results.total_sell_orders += timeline.sell_orders
            if timeline.show_missing_data_warning:
                results.was_any_data_missing = True

        results.funding = funding.generate_report(start_date, end_date)
        results.total_orders = results.total_buy_orders + results.total_sell_orders
        if len(final_results) > 1:
            results.biggest_drawdown = get_biggest_drawdown_across_currencies(final_results)
            results.best_market_movement = get_best_market_performer(final_results)
            results.best_strategy_results = get_best_strategy_performer(final_results)
            self.print_total_results(exchange_level)

        return results

    def print_all_events_chronologically(self) -> list[str]:
        """
        Log every record of every tuple grouped by time rather than by tuple.

        Records with no data, signal or fill event are reported after the
        events under an Errors banner. Returns the emitted event lines.
        """
        buckets: dict[datetime, EventOutputHolder] = {}
        errors: list[str] = []
        audit_logger.info("------------------Events-------------------------------------")

        for exchange, asset, pair, timeline in self.store.timelines():
            for record in timeline.events:
                rendered = render_record(record)
                if rendered is None:
                    errors.append(f"{exchange} {asset} {pair} unexpected data received {record!r}")
                    continue
                when, message = rendered
                add_event_output_to_time(buckets, when, message)

        outputs = sorted(buckets.values(), key=lambda holder: holder.time)
        lines = [message for holder in outputs for message in holder.events]
        for line in lines:
            audit_logger.info(line)

        if errors:
            audit_logger.info("------------------Errors-------------------------------------")
            for error in errors:
                audit_logger.info(error)
        self.results.audit_errors = errors
        return lines

    def print_total_results(self, is_using_exchange_level_funding: bool) -> None:
        results = self.results
        logger.info("------------------Strategy-----------------------------------")
        logger.info(f"Strategy Name: {results.strategy_name}")
        logger.info(f"Strategy Nickname: {results.strategy_nickname}")
        logger.info(f"Strategy Goal: {results.strategy_goal}")

        if results.funding is not None:
            logger.info("------------------Funding------------------------------------")
            if is_using_exchange_level_funding:
                logger.info("Funding is shared at the exchange level")
            for item in results.funding.items:
                logger.info(f"Exchange: {item.exchange}")
                logger.info(f"Asset: {item.asset}")
                logger.info(f"Currency: {item.currency}")
                if item.paired_with:
                    logger.info(f"Paired with: {item.paired_with}")
                logger.info(f"Initial funds: {item.initial_funds}")
                logger.info(f"Initial funds in USD: ${item.initial_funds_usd}")
                logger.info(f"Final funds: {item.final_funds}")
                logger.info(f"Final funds in USD: ${item.final_funds_usd}")
                if item.initial_funds == 0:
                    logger.info("Difference: ∞%")
                else:
                    logger.info(f"Difference: {format_decimal(item.difference, 2)}%")
                if item.transfer_fee > 0:
                    logger.info(f"Transfer fee: {item.transfer_fee}")
                logger.info("")
            logger.info(f"Initial total funds in USD: ${results.funding.initial_total_usd}")
            logger.info(f"Final total funds in USD: ${results.funding.final_total_usd}")
            logger.info(f"Difference: {format_decimal(results.funding.difference, 2)}%")

        logger.info("------------------Total Results------------------------------")
        logger.info("------------------Orders-------------------------------------")
        logger.info(f"Total buy orders: {results.total_buy_orders}")
        logger.info(f"Total sell orders: {results.total_sell_orders}")
        logger.info(f"Total orders: {results.total_orders}")

        drawdown = results.biggest_drawdown
        if drawdown is not None:
            worst = drawdown.max_drawdown
            logger.info("------------------Biggest Drawdown-----------------------")
            logger.info(f"Exchange: {drawdown.exchange} Asset: {drawdown.asset} Currency: {drawdown.pair}")
            logger.info(f"Highest Price: {format_decimal(worst.highest.price)}")
            logger.info(f"Highest Price Time: {worst.highest.time}")
            logger.info(f"Lowest Price: {format_decimal(worst.lowest.price)}")
            logger.info(f"Lowest Price Time: {worst.lowest.time}")
            logger.info(f"Calculated Drawdown: {format_decimal(worst.drawdown_percent, 2)}%")
            logger.info(f"Difference: {format_decimal(worst.highest.price - worst.lowest.price)}")
            logger.info(f"Drawdown length: {worst.interval_duration}")

        market = results.best_market_movement
        strategy = results.best_strategy_results
        if market is not None and strategy is not None:
            logger.info("------------------Best Performers--------------------------")
            logger.info(
                f"Best performing market movement: {market.exchange} {market.asset} {market.pair} "
                f"{format_decimal(market.market_movement, 2)}%"
            )
            logger.info(
                f"Best performing strategy movement: {strategy.exchange} {strategy.asset} {strategy.pair} "
                f"{format_decimal(strategy.strategy_movement, 2)}%"
            )

    def serialise(self) -> str:
        return self.results.model_dump_json(indent=1)

    @staticmethod
    def _log_pair_results(timeline: Timeline, funding: PairFunding, is_using_exchange_level_funding: bool) -> None:
        logger.info(f"------------------Stats for {timeline.exchange} {timeline.asset} {timeline.pair}---------")
        if not is_using_exchange_level_funding:
            logger.info(f"Initial base funds: {funding.base_initial}")
            logger.info(f"Initial quote funds: {funding.quote_initial}")
            logger.info(f"Final base funds: {funding.base_available}")
            logger.info(f"Final quote funds: {funding.quote_available}")
        logger.info(f"Buy orders: {timeline.buy_orders}")
        logger.info(f"Sell orders: {timeline.sell_orders}")
        logger.info(f"Market movement: {format_decimal(timeline.market_movement, 2)}%")
        logger.info(f"Strategy movement: {format_decimal(timeline.strategy_movement, 2)}%")
        logger.info(f"Max drawdown: {format_decimal(timeline.max_drawdown.drawdown_percent, 2)}%")
        if timeline.show_missing_data_warning:
            logger.warning("Missing data was detected during this backtesting run")


def active_event(record: EventRecord) -> ActiveEvent:
    """The event used for the funding lookup: fill, then signal, then data."""
    if record.fill_event is not None:
        return record.fill_event
    if record.signal_event is not None:
        return record.signal_event
    return record.data_event


def terminal_record(timeline: Timeline) -> EventRecord:
    """Last record carrying a data, signal or fill event; empty records are left to the audit log."""
    for record in reversed(timeline.events):
        if active_event(record) is not None:
            return record
    return timeline.events[-1]


def render_record(record: EventRecord) -> Optional[tuple[datetime, str]]:
    fill = record.fill_event
    if fill is not None:
        prefix = _prefix(fill.time, fill.exchange, fill.asset, fill.pair)
        if fill.is_executed:
            return fill.time, (
                f"{prefix} | Price: ${format_decimal(fill.purchase_price)} - "
                f"Amount: {format_decimal(fill.amount)} - "
                f"Fee: ${format_decimal(fill.exchange_fee)} - "
                f"Total: ${format_decimal(fill.total)} - "
                f"Direction: {fill.direction.value} - Reason: {fill.reason}"
            )
        return fill.time, (
            f"{prefix} | Price: ${format_decimal(fill.close_price)} - "
            f"Direction: {fill.direction.value} - Reason: {fill.reason}"
        )

    signal = record.signal_event
    if signal is not None:
        prefix = _prefix(signal.time, signal.exchange, signal.asset, signal.pair)
        return signal.time, f"{prefix} | Price: ${format_decimal(signal.close_price)} - Reason: {signal.reason}"

    data = record.data_event
    if data is not None:
        prefix = _prefix(data.time, data.exchange, data.asset, data.pair)
        return data.time, f"{prefix} | Price: ${format_decimal(data.close_price)} - Reason: {data.reason}"

    return None


def add_event_output_to_time(buckets: dict[datetime, EventOutputHolder], when: datetime, message: str) -> None:
    holder = buckets.get(when)
    if holder is None:
        buckets[when] = EventOutputHolder(time=when, events=[message])
        return
    holder.events.append(message)


def get_best_market_performer(results: list[FinalResultsHolder]) -> FinalResultsHolder:
    return _select_best(results, lambda r: r.market_movement)


def get_best_strategy_performer(results: list[FinalResultsHolder]) -> FinalResultsHolder:
    return _select_best(results, lambda r: r.strategy_movement)


def get_biggest_drawdown_across_currencies(results: list[FinalResultsHolder]) -> FinalResultsHolder:
    return _select_best(results, lambda r: r.max_drawdown.drawdown_percent)


def _select_best(
    results: list[FinalResultsHolder],
    metric: Callable[[FinalResultsHolder], Decimal],
) -> FinalResultsHolder:
    # zero doubles as "unset", so a zero best is always replaced, even by another zero
    best = FinalResultsHolder()
    for candidate in results:
        if metric(candidate) > metric(best) or metric(best) == 0:
            best = candidate
    return best


def format_decimal(value: Decimal, places: int = 8) -> str:
    """Round half up to at most `places` decimals, without trailing zeros, at any magnitude."""
    if not value.is_finite():
        return str(value)
    with localcontext() as ctx:
        # the precision must hold every integer digit plus the kept decimals
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        if value.as_tuple().exponent < -places:
            value = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
        return format(value.normalize(), "f")


def _prefix(when: datetime, exchange: str, asset: str, pair: str) -> str:
    return f"{when.strftime(SIMPLE_TIME_FORMAT)} {exchange} {asset} {pair}"


def _earliest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if candidate is None:
        return current
    if current is None or candidate < current:
        return candidate
    return current


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current
