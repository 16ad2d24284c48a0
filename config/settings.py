from decimal import Decimal
from pathlib import Path
from functools import lru_cache

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from backtester.models import ExchangeSettings, MinMax


class SizingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="")

    buy_minimum_size: Decimal = Field(default=Decimal(0), ge=0, alias="BUY_MINIMUM_SIZE")
    buy_maximum_size: Decimal = Field(default=Decimal(0), ge=0, alias="BUY_MAXIMUM_SIZE")
    buy_maximum_total: Decimal = Field(default=Decimal(0), ge=0, alias="BUY_MAXIMUM_TOTAL")
    sell_minimum_size: Decimal = Field(default=Decimal(0), ge=0, alias="SELL_MINIMUM_SIZE")
    sell_maximum_size: Decimal = Field(default=Decimal(0), ge=0, alias="SELL_MAXIMUM_SIZE")
    sell_maximum_total: Decimal = Field(default=Decimal(0), ge=0, alias="SELL_MAXIMUM_TOTAL")
    exchange_fee: Decimal = Field(default=Decimal("0.001"), ge=0, lt=1, alias="EXCHANGE_FEE")

    def buy_side(self) -> MinMax:
        return MinMax(
            minimum_size=self.buy_minimum_size,
            maximum_size=self.buy_maximum_size,
            maximum_total=self.buy_maximum_total,
        )

    def sell_side(self) -> MinMax:
        return MinMax(
            minimum_size=self.sell_minimum_size,
            maximum_size=self.sell_maximum_size,
            maximum_total=self.sell_maximum_total,
        )

    def exchange_settings(self) -> ExchangeSettings:
        return ExchangeSettings(exchange_fee=self.exchange_fee)


class ReportSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="")

    strategy_name: str = Field(default="", alias="STRATEGY_NAME")
    strategy_nickname: str = Field(default="", alias="STRATEGY_NICKNAME")
    strategy_goal: str = Field(default="", alias="STRATEGY_GOAL")
    results_dir: Path = Field(default=Path("results"), alias="RESULTS_DIR")

    @computed_field
    @property
    def log_dir(self) -> Path:
        return self.results_dir / "logs"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    sizing: SizingSettings = Field(default_factory=SizingSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
