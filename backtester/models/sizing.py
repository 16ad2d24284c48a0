from decimal import Decimal

from pydantic import BaseModel, Field


class MinMax(BaseModel):
    """Per-direction sizing constraints. Zero maximums are unbounded."""

    model_config = {"from_attributes": True}

    minimum_size: Decimal = Field(default=Decimal(0), ge=0)
    maximum_size: Decimal = Field(default=Decimal(0), ge=0)
    maximum_total: Decimal = Field(default=Decimal(0), ge=0)

    @property
    def is_unconstrained(self) -> bool:
        return (
            self.minimum_size == 0
            and self.maximum_size == 0
            and self.maximum_total == 0
        )


class ExchangeSettings(BaseModel):
    model_config = {"from_attributes": True, "validate_assignment": True}

    exchange_fee: Decimal = Field(default=Decimal(0), ge=0, lt=1)
    buy_side: MinMax = Field(default_factory=MinMax)
    sell_side: MinMax = Field(default_factory=MinMax)
