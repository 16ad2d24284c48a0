from backtester.strategies.base import BaseStrategy, DataHandler

__all__ = [
    "BaseStrategy",
    "DataHandler",
]
