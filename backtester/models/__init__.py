from backtester.models.events import (
    AnyEvent,
    DataEvent,
    Direction,
    EventBase,
    FillEvent,
    INFORMATIONAL_DIRECTIONS,
    OrderEvent,
    SignalEvent,
)
from backtester.models.holdings import ComplianceSnapshot, Holding, SnapshotOrder
from backtester.models.statistics import (
    EventRecord,
    FinalResultsHolder,
    MaxDrawdown,
    Swing,
    Timeline,
)
from backtester.models.sizing import ExchangeSettings, MinMax
from backtester.models.funding import FundingItem, FundingReport, PairFunding
from backtester.models.backtest import BacktestResults

__all__ = [
    "AnyEvent",
    "DataEvent",
    "Direction",
    "EventBase",
    "FillEvent",
    "INFORMATIONAL_DIRECTIONS",
    "OrderEvent",
    "SignalEvent",
    "ComplianceSnapshot",
    "Holding",
    "SnapshotOrder",
    "EventRecord",
    "FinalResultsHolder",
    "MaxDrawdown",
    "Swing",
    "Timeline",
    "ExchangeSettings",
    "MinMax",
    "FundingItem",
    "FundingReport",
    "PairFunding",
    "BacktestResults",
]
