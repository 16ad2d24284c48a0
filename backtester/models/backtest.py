"""BacktestResults model for aggregated run output."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from backtester.models.funding import FundingReport
from backtester.models.statistics import FinalResultsHolder, Timeline


class BacktestResults(BaseModel):
    """Aggregated output of one backtest run across every tuple."""

    strategy_name: str = ""
    strategy_nickname: str = ""
    strategy_goal: str = ""
    all_stats: list[Timeline] = []
    total_buy_orders: int = 0
    total_sell_orders: int = 0
    total_orders: int = 0
    biggest_drawdown: Optional[FinalResultsHolder] = None
    best_market_movement: Optional[FinalResultsHolder] = None
    best_strategy_results: Optional[FinalResultsHolder] = None
    was_any_data_missing: bool = False
    funding: Optional[FundingReport] = None
    audit_errors: list[str] = []
