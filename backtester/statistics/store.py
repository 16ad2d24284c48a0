"""
Timeline Store - per tuple, per offset record of everything that happened.
"""
from __future__ import annotations

from typing import Iterator, Optional

from loguru import logger

from backtester.models import (
    ComplianceSnapshot,
    DataEvent,
    EventRecord,
    FillEvent,
    Holding,
    Timeline,
)
from backtester.models.events import EventBase
from backtester.utils.exceptions import (
    AlreadyProcessedError,
    NilArgumentError,
    NilEventError,
    UnknownEventTypeError,
    UnsetCurrencyStatisticsError,
    UnsetStatisticsError,
)

ExchangeAssetPairStatistics = dict[str, dict[str, dict[str, Timeline]]]


class TimelineStore:
    """
    Holds the exchange -> asset -> pair -> Timeline mapping for one run.

    The mapping does not exist until the first data event is recorded, so
    enriching before then fails with UnsetStatisticsError. A store must not
    be shared between runs; call reset() or build a new one.
    """

    def __init__(self) -> None:
        self._statistics: Optional[ExchangeAssetPairStatistics] = None

    @property
    def is_initialized(self) -> bool:
        return self._statistics is not None

    def reset(self) -> None:
        self._statistics = None

    def record_event(self, event: Optional[DataEvent]) -> EventRecord:
        """
        Create the record for a data event's offset.

        Args:
            event: Market data event for a new offset

        Returns:
            The newly appended EventRecord

        Raises:
            NilArgumentError: event is None
            AlreadyProcessedError: the offset was already recorded for the tuple
        """
        if event is None:
            raise NilArgumentError("data event")

        timeline = self._setup_timeline(event.exchange, event.asset, event.pair)
        for record in timeline.events:
            existing = record.data_event
            if existing is None:
                continue
            if (
                existing.time == event.time
                and existing.exchange == event.exchange
                and existing.asset == event.asset
                and existing.pair == event.pair
                and existing.offset == event.offset
            ):
                raise AlreadyProcessedError(event.exchange, event.asset, event.pair, event.offset)

        record = EventRecord(data_event=event)
        timeline.events.append(record)
        return record

    def apply_at_offset(self, event: Optional[EventBase]) -> None:
        """
        Enrich the record at the event's offset with the event.

        Events without a recorded offset are ignored.
        """
        if event is None:
            raise NilEventError("to set for offset")
        timeline = self._require_timeline(event.exchange, event.asset, event.pair, f"set {event_kind(event)} event")

        record = self._find_record(timeline, event.offset)
        if record is None:
            logger.debug(
                f"No record at offset {event.offset} for {event.exchange} {event.asset} {event.pair}; "
                f"{event_kind(event)} event ignored"
            )
            return
        _apply_event(record, event)

    def attach_holdings(self, holding: Optional[Holding]) -> None:
        if holding is None:
            raise NilArgumentError("holding")
        timeline = self._require_timeline(holding.exchange, holding.asset, holding.pair, "set holding event")
        record = self._find_record(timeline, holding.offset)
        if record is not None:
            record.holdings = holding

    def attach_compliance(self, snapshot: ComplianceSnapshot, event: Optional[FillEvent]) -> None:
        if event is None:
            raise NilEventError("to set compliance snapshot")
        timeline = self._require_timeline(event.exchange, event.asset, event.pair, "set compliance snapshot")
        record = self._find_record(timeline, event.offset)
        if record is not None:
            record.transactions = snapshot

    def get_timeline(self, exchange: str, asset: str, pair: str) -> Optional[Timeline]:
        if self._statistics is None:
            return None
        return self._statistics.get(exchange, {}).get(asset, {}).get(pair)

    def timelines(self) -> Iterator[tuple[str, str, str, Timeline]]:
        """Yield every (exchange, asset, pair, timeline) in first-seen order."""
        if self._statistics is None:
            return
        for exchange, assets in self._statistics.items():
            for asset, pairs in assets.items():
                for pair, timeline in pairs.items():
                    yield exchange, asset, pair, timeline

    def __len__(self) -> int:
        return sum(1 for _ in self.timelines())

    def _setup_timeline(self, exchange: str, asset: str, pair: str) -> Timeline:
        if self._statistics is None:
            self._statistics = {}
        pairs = self._statistics.setdefault(exchange, {}).setdefault(asset, {})
        timeline = pairs.get(pair)
        if timeline is None:
            timeline = Timeline(exchange=exchange, asset=asset, pair=pair)
            pairs[pair] = timeline
        return timeline

    def _require_timeline(self, exchange: str, asset: str, pair: str, action: str) -> Timeline:
        if self._statistics is None:
            raise UnsetStatisticsError()
        timeline = self.get_timeline(exchange, asset, pair)
        if timeline is None:
            raise UnsetCurrencyStatisticsError(exchange, asset, pair, action)
        return timeline

    @staticmethod
    def _find_record(timeline: Timeline, offset: int) -> Optional[EventRecord]:
        for record in reversed(timeline.events):
            if record.offset == offset:
                return record
        return None


def event_kind(event: EventBase) -> str:
    return getattr(event, "kind", type(event).__name__)


def _apply_event(record: EventRecord, event: EventBase) -> None:
    kind = event_kind(event)
    if kind == "data":
        record.data_event = event
    elif kind == "signal":
        record.signal_event = event
    elif kind == "order":
        record.order_event = event
    elif kind == "fill":
        record.fill_event = event
    else:
        raise UnknownEventTypeError(kind)
