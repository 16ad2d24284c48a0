from backtester.funding.static import StaticFunding

__all__ = [
    "StaticFunding",
]
