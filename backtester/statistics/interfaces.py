"""Collaborators the results aggregator depends on but does not own."""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Protocol, Union

from backtester.models import (
    DataEvent,
    FillEvent,
    FundingReport,
    PairFunding,
    SignalEvent,
    Timeline,
)

ActiveEvent = Union[FillEvent, SignalEvent, DataEvent]


class FundingSource(Protocol):
    def funding_for_event(self, event: ActiveEvent) -> PairFunding:
        """Return the funding view for the event's tuple, raising if it has none."""
        ...

    def generate_report(self, start: datetime | None, end: datetime | None) -> FundingReport:
        ...

    def is_using_exchange_level_funding(self) -> bool:
        ...


class PairCalculator(Protocol):
    """Computes the per-tuple results on the Timeline it was created for."""

    def calculate_results(self, funding: PairFunding) -> None:
        ...


CalculatorFactory = Callable[[Timeline], PairCalculator]
