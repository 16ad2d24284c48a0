"""Shared strategy plumbing: base signals and processing flags."""
from __future__ import annotations

from typing import Optional, Protocol

from backtester.models import DataEvent, SignalEvent
from backtester.utils.exceptions import NilArgumentError, NilEventError


class DataHandler(Protocol):
    def latest(self) -> Optional[DataEvent]:
        ...


class BaseStrategy:
    """Base for strategies that emit one signal per data event."""

    def __init__(self) -> None:
        self._use_simultaneous_processing = False
        self._using_exchange_level_funding = False

    def get_base_data(self, data: Optional[DataHandler]) -> SignalEvent:
        """Build a signal carrying the latest data event's identity and prices."""
        if data is None:
            raise NilArgumentError("data handler")
        latest = data.latest()
        if latest is None:
            raise NilEventError("from data handler")
        return SignalEvent(
            offset=latest.offset,
            exchange=latest.exchange,
            time=latest.time,
            pair=latest.pair,
            asset=latest.asset,
            interval=latest.interval,
            reason=latest.reason,
            close_price=latest.close_price,
            high_price=latest.high_price,
            open_price=latest.open_price,
            low_price=latest.low_price,
        )

    def using_simultaneous_processing(self) -> bool:
        """Whether multiple currencies are assessed in one pass."""
        return self._use_simultaneous_processing

    def set_simultaneous_processing(self, enabled: bool) -> None:
        self._use_simultaneous_processing = enabled

    def using_exchange_level_funding(self) -> bool:
        """Whether funding is shared per exchange currency rather than per pair."""
        return self._using_exchange_level_funding

    def set_exchange_level_funding(self, enabled: bool) -> None:
        self._using_exchange_level_funding = enabled
