from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from backtester.models.events import Direction, as_utc


class Holding(BaseModel):
    """Portfolio holdings for one exchange/asset/pair at an offset."""

    model_config = {"from_attributes": True}

    exchange: str
    asset: str
    pair: str
    offset: int = Field(ge=0)
    timestamp: Optional[datetime] = None
    base_size: Decimal = Decimal(0)
    quote_initial_funds: Decimal = Decimal(0)
    quote_size: Decimal = Decimal(0)
    bought_amount: Decimal = Decimal(0)
    bought_value: Decimal = Decimal(0)
    sold_amount: Decimal = Decimal(0)
    sold_value: Decimal = Decimal(0)
    total_fees: Decimal = Decimal(0)
    total_value: Decimal = Decimal(0)

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class SnapshotOrder(BaseModel):
    model_config = {"from_attributes": True}

    order_id: str = ""
    direction: Direction = Direction.UNSET
    price: Decimal = Decimal(0)
    amount: Decimal = Decimal(0)
    fee: Decimal = Decimal(0)
    cost_basis: Decimal = Decimal(0)
    slippage_rate: Decimal = Decimal(0)


class ComplianceSnapshot(BaseModel):
    """Orders placed up to and including an offset."""

    model_config = {"from_attributes": True}

    offset: int = Field(default=0, ge=0)
    timestamp: Optional[datetime] = None
    orders: list[SnapshotOrder] = []

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)
