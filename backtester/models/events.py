from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class Direction(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DO_NOTHING = "DO NOTHING"
    COULD_NOT_BUY = "COULD NOT BUY"
    COULD_NOT_SELL = "COULD NOT SELL"
    MISSING_DATA = "MISSING DATA"
    TRANSFERRED_FUNDS = "TRANSFERRED FUNDS"
    UNSET = ""


INFORMATIONAL_DIRECTIONS = frozenset(
    {
        Direction.COULD_NOT_BUY,
        Direction.COULD_NOT_SELL,
        Direction.DO_NOTHING,
        Direction.MISSING_DATA,
        Direction.TRANSFERRED_FUNDS,
        Direction.UNSET,
    }
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken to be UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventBase(BaseModel):
    """Fields shared by every event emitted by the backtest loop."""

    model_config = {"from_attributes": True}

    offset: int = Field(ge=0)
    exchange: str
    asset: str
    pair: str
    time: datetime
    interval: str = ""
    reason: str = ""

    @field_validator("time")
    @classmethod
    def validate_time_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @property
    def key(self) -> tuple[str, str, str]:
        return self.exchange, self.asset, self.pair


class DataEvent(EventBase):
    kind: Literal["data"] = "data"

    open_price: Decimal = Decimal(0)
    high_price: Decimal = Decimal(0)
    low_price: Decimal = Decimal(0)
    close_price: Decimal = Decimal(0)
    volume: Decimal = Decimal(0)


class SignalEvent(EventBase):
    kind: Literal["signal"] = "signal"

    open_price: Decimal = Decimal(0)
    high_price: Decimal = Decimal(0)
    low_price: Decimal = Decimal(0)
    close_price: Decimal = Decimal(0)
    direction: Direction = Direction.UNSET
    buy_limit: Decimal = Decimal(0)
    sell_limit: Decimal = Decimal(0)


class OrderEvent(EventBase):
    kind: Literal["order"] = "order"

    direction: Direction = Direction.UNSET
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    buy_limit: Decimal = Decimal(0)
    sell_limit: Decimal = Decimal(0)


class FillEvent(EventBase):
    kind: Literal["fill"] = "fill"

    direction: Direction = Direction.UNSET
    close_price: Decimal = Decimal(0)
    purchase_price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    exchange_fee: Decimal = Decimal(0)
    slippage_rate: Decimal = Decimal(0)
    total: Decimal = Decimal(0)

    @property
    def is_executed(self) -> bool:
        return self.direction not in INFORMATIONAL_DIRECTIONS


AnyEvent = Annotated[
    Union[DataEvent, SignalEvent, OrderEvent, FillEvent],
    Field(discriminator="kind"),
]
