"""
Static Funding - in-memory funding pools keyed by exchange, asset and pair.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from loguru import logger

from backtester.models import FundingItem, FundingReport, PairFunding
from backtester.models.events import EventBase
from backtester.utils.exceptions import FundingLookupError, NilEventError


class StaticFunding:
    """
    Funding source backed by a fixed set of pair pools.

    Used when the wider simulator's funding manager is not available, e.g.
    when replaying recorded events from a file.
    """

    def __init__(
        self,
        pools: list[PairFunding],
        usd_rates: Optional[dict[str, Decimal]] = None,
        exchange_level: bool = False,
    ):
        self._pools: dict[tuple[str, str, str], PairFunding] = {
            (p.exchange, p.asset, p.pair): p for p in pools
        }
        self.usd_rates = usd_rates or {}
        self.exchange_level = exchange_level

    def funding_for_event(self, event: Optional[EventBase]) -> PairFunding:
        if event is None:
            raise NilEventError("for funding lookup")
        pool = self._pools.get((event.exchange, event.asset, event.pair))
        if pool is None:
            raise FundingLookupError(event.exchange, event.asset, event.pair)
        return pool

    def set_available(
        self,
        exchange: str,
        asset: str,
        pair: str,
        base_available: Decimal,
        quote_available: Decimal,
    ) -> None:
        pool = self._pools.get((exchange, asset, pair))
        if pool is None:
            raise FundingLookupError(exchange, asset, pair)
        pool.base_available = base_available
        pool.quote_available = quote_available

    def is_using_exchange_level_funding(self) -> bool:
        return self.exchange_level

    def generate_report(self, start: datetime | None, end: datetime | None) -> FundingReport:
        items: list[FundingItem] = []
        for pool in self._pools.values():
            items.append(
                self._item(pool, pool.base_currency, pool.quote_currency, pool.base_initial, pool.base_available)
            )
            items.append(
                self._item(pool, pool.quote_currency, pool.base_currency, pool.quote_initial, pool.quote_available)
            )
        logger.debug(f"Funding report generated for {len(items)} items between {start} and {end}")
        return FundingReport(start=start, end=end, items=items)

    def _item(
        self,
        pool: PairFunding,
        currency: str,
        paired_with: str,
        initial: Decimal,
        final: Decimal,
    ) -> FundingItem:
        rate = self.usd_rates.get(currency, Decimal(0))
        return FundingItem(
            exchange=pool.exchange,
            asset=pool.asset,
            currency=currency,
            paired_with=paired_with,
            initial_funds=initial,
            initial_funds_usd=initial * rate,
            final_funds=final,
            final_funds_usd=final * rate,
        )
