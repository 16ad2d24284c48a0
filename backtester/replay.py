"""Load recorded backtest events from JSON and replay them into a store."""
from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ValidationError

from backtester.funding import StaticFunding
from backtester.models import AnyEvent, ComplianceSnapshot, FillEvent, Holding, PairFunding
from backtester.statistics.store import TimelineStore
from backtester.utils.exceptions import ConfigError


class StrategyInfo(BaseModel):
    name: str = ""
    nickname: str = ""
    goal: str = ""


class ComplianceEntry(BaseModel):
    fill: FillEvent
    snapshot: ComplianceSnapshot


class FundingSection(BaseModel):
    exchange_level: bool = False
    usd_rates: dict[str, Decimal] = {}
    pools: list[PairFunding] = []


class EventFile(BaseModel):
    strategy: StrategyInfo = StrategyInfo()
    events: list[AnyEvent] = []
    holdings: list[Holding] = []
    compliance: list[ComplianceEntry] = []
    funding: FundingSection = FundingSection()

    def funding_source(self) -> StaticFunding:
        return StaticFunding(
            pools=self.funding.pools,
            usd_rates=self.funding.usd_rates,
            exchange_level=self.funding.exchange_level,
        )


def load_event_file(path: Path) -> EventFile:
    """Load and validate a recorded event file."""
    if not path.exists():
        raise ConfigError(f"Event file not found: '{path}'")

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read event file '{path}': {exc}") from exc

    try:
        return EventFile.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid event file '{path}': {exc.error_count()} validation errors\n{exc}"
        ) from exc


def replay_into(store: TimelineStore, event_file: EventFile) -> int:
    """
    Record data events and apply every other event in file order.

    Holdings and compliance snapshots are attached once all events are in.

    Returns:
        Number of events replayed
    """
    count = 0
    for event in event_file.events:
        if event.kind == "data":
            store.record_event(event)
        else:
            store.apply_at_offset(event)
        count += 1

    for holding in event_file.holdings:
        store.attach_holdings(holding)
    for entry in event_file.compliance:
        store.attach_compliance(entry.snapshot, entry.fill)

    logger.info(f"Replayed {count} events into {len(store)} timelines")
    return count
