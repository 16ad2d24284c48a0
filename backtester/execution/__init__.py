from backtester.execution.sizer import OrderSizer, directional_limit

__all__ = [
    "OrderSizer",
    "directional_limit",
]
