from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, computed_field


class PairFunding(BaseModel):
    """Funding view for one exchange/asset/pair."""

    model_config = {"from_attributes": True}

    exchange: str
    asset: str
    pair: str
    base_currency: str = ""
    quote_currency: str = ""
    base_initial: Decimal = Decimal(0)
    base_available: Decimal = Decimal(0)
    quote_initial: Decimal = Decimal(0)
    quote_available: Decimal = Decimal(0)


class FundingItem(BaseModel):
    model_config = {"from_attributes": True}

    exchange: str
    asset: str
    currency: str
    paired_with: str = ""
    initial_funds: Decimal = Decimal(0)
    initial_funds_usd: Decimal = Decimal(0)
    final_funds: Decimal = Decimal(0)
    final_funds_usd: Decimal = Decimal(0)
    transfer_fee: Decimal = Decimal(0)

    @computed_field
    @property
    def difference(self) -> Decimal:
        if self.initial_funds == 0:
            return Decimal(0)
        return (self.final_funds - self.initial_funds) / self.initial_funds * 100


class FundingReport(BaseModel):
    model_config = {"from_attributes": True}

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    items: list[FundingItem] = []

    @computed_field
    @property
    def initial_total_usd(self) -> Decimal:
        return sum((item.initial_funds_usd for item in self.items), Decimal(0))

    @computed_field
    @property
    def final_total_usd(self) -> Decimal:
        return sum((item.final_funds_usd for item in self.items), Decimal(0))

    @computed_field
    @property
    def difference(self) -> Decimal:
        if self.initial_total_usd == 0:
            return Decimal(0)
        return (self.final_total_usd - self.initial_total_usd) / self.initial_total_usd * 100
