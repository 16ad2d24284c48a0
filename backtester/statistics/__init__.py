from backtester.statistics.store import TimelineStore
from backtester.statistics.calculator import TimelineCalculator, calculate_max_drawdown
from backtester.statistics.aggregator import (
    ResultsAggregator,
    get_best_market_performer,
    get_best_strategy_performer,
    get_biggest_drawdown_across_currencies,
)

__all__ = [
    "TimelineStore",
    "TimelineCalculator",
    "calculate_max_drawdown",
    "ResultsAggregator",
    "get_best_market_performer",
    "get_best_strategy_performer",
    "get_biggest_drawdown_across_currencies",
]
