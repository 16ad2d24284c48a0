"""
Timeline Calculator - per tuple movement, drawdown and order counts.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from loguru import logger

from backtester.models import (
    DataEvent,
    Direction,
    EventRecord,
    MaxDrawdown,
    PairFunding,
    Swing,
    Timeline,
)
from backtester.utils.exceptions import CalculationError

HUNDRED = Decimal(100)


class TimelineCalculator:
    """
    Populates a Timeline's result fields from its records.

    Movements are percentages. Strategy movement uses the holdings total value
    of the first and last records, falling back to the funding view valued at
    the first and last close when holdings were never attached.
    """

    def __init__(self, timeline: Timeline):
        self.timeline = timeline

    def calculate_results(self, funding: PairFunding) -> None:
        records = [r for r in self.timeline.events if r.data_event is not None]
        if not records:
            raise CalculationError(
                "no data events to calculate",
                self.timeline.exchange,
                self.timeline.asset,
                self.timeline.pair,
            )

        first = records[0]
        last = records[-1]
        first_close = first.data_event.close_price
        last_close = last.data_event.close_price

        self._count_orders(records)
        self.timeline.max_drawdown = calculate_max_drawdown([r.data_event for r in records])

        if first_close == 0:
            raise CalculationError(
                "first close price is zero, cannot calculate market movement",
                self.timeline.exchange,
                self.timeline.asset,
                self.timeline.pair,
            )
        self.timeline.market_movement = (last_close - first_close) / first_close * HUNDRED
        self.timeline.strategy_movement = self._strategy_movement(first, last, funding)

    def _count_orders(self, records: list[EventRecord]) -> None:
        buys = 0
        sells = 0
        missing = False
        for record in records:
            if record.fill_event is not None:
                direction = record.fill_event.direction
                if direction == Direction.BUY:
                    buys += 1
                elif direction == Direction.SELL:
                    sells += 1
                elif direction == Direction.MISSING_DATA:
                    missing = True
            if record.signal_event is not None and record.signal_event.direction == Direction.MISSING_DATA:
                missing = True
        self.timeline.buy_orders = buys
        self.timeline.sell_orders = sells
        self.timeline.show_missing_data_warning = missing

    @staticmethod
    def _strategy_movement(first: EventRecord, last: EventRecord, funding: PairFunding) -> Decimal:
        if first.holdings is not None and last.holdings is not None:
            initial = first.holdings.total_value
            final = last.holdings.total_value
        else:
            initial = funding.quote_initial + funding.base_initial * first.data_event.close_price
            final = funding.quote_available + funding.base_available * last.data_event.close_price
        if initial == 0:
            return Decimal(0)
        return (final - initial) / initial * HUNDRED


def calculate_max_drawdown(events: list[DataEvent]) -> MaxDrawdown:
    """Largest peak to trough decline of the close price, in percent."""
    result = MaxDrawdown()
    peak: Optional[DataEvent] = None
    for event in events:
        if peak is None or event.close_price > peak.close_price:
            peak = event
            continue
        if peak.close_price == 0:
            continue
        percent = (peak.close_price - event.close_price) / peak.close_price * HUNDRED
        if percent > result.drawdown_percent:
            result = MaxDrawdown(
                highest=Swing(price=peak.close_price, time=peak.time),
                lowest=Swing(price=event.close_price, time=event.time),
                drawdown_percent=percent,
                interval_duration=event.time - peak.time,
            )
    if result.drawdown_percent > 0:
        logger.debug(f"Max drawdown {result.drawdown_percent:.2f}% over {result.interval_duration}")
    return result
