from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from backtester.models.events import DataEvent, FillEvent, OrderEvent, SignalEvent
from backtester.models.holdings import ComplianceSnapshot, Holding


class EventRecord(BaseModel):
    """Everything known about one tuple at one offset."""

    model_config = {"from_attributes": True}

    data_event: Optional[DataEvent] = None
    signal_event: Optional[SignalEvent] = None
    order_event: Optional[OrderEvent] = None
    fill_event: Optional[FillEvent] = None
    holdings: Optional[Holding] = None
    transactions: Optional[ComplianceSnapshot] = None

    @property
    def offset(self) -> Optional[int]:
        if self.data_event is None:
            return None
        return self.data_event.offset

    @property
    def time(self) -> Optional[datetime]:
        if self.data_event is None:
            return None
        return self.data_event.time


class Swing(BaseModel):
    model_config = {"from_attributes": True}

    price: Decimal = Decimal(0)
    time: Optional[datetime] = None


class MaxDrawdown(BaseModel):
    model_config = {"from_attributes": True}

    highest: Swing = Field(default_factory=Swing)
    lowest: Swing = Field(default_factory=Swing)
    drawdown_percent: Decimal = Decimal(0)
    interval_duration: timedelta = timedelta(0)


class Timeline(BaseModel):
    """Ordered records for one (exchange, asset, pair) plus its final results."""

    model_config = {"from_attributes": True}

    exchange: str
    asset: str
    pair: str
    events: list[EventRecord] = []

    max_drawdown: MaxDrawdown = Field(default_factory=MaxDrawdown)
    market_movement: Decimal = Decimal(0)
    strategy_movement: Decimal = Decimal(0)
    buy_orders: int = 0
    sell_orders: int = 0
    show_missing_data_warning: bool = False
    initial_holdings: Optional[Holding] = None
    final_holdings: Optional[Holding] = None
    final_orders: Optional[ComplianceSnapshot] = None

    @computed_field
    @property
    def total_orders(self) -> int:
        return self.buy_orders + self.sell_orders


class FinalResultsHolder(BaseModel):
    model_config = {"from_attributes": True, "frozen": True}

    exchange: str = ""
    asset: str = ""
    pair: str = ""
    max_drawdown: MaxDrawdown = Field(default_factory=MaxDrawdown)
    market_movement: Decimal = Decimal(0)
    strategy_movement: Decimal = Decimal(0)
