"""
Order Sizer - converts a direction and available funds into an order amount.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from loguru import logger

from backtester.models import Direction, ExchangeSettings, MinMax, OrderEvent
from backtester.utils.exceptions import (
    CannotAllocateError,
    LessThanMinimumError,
    NilArgumentError,
    NoFundsError,
)

ONE = Decimal(1)


class OrderSizer:
    """
    Sizes orders within per-direction constraints.

    Constraints:
    - Minimum size (sizing below it fails)
    - Maximum size (zero is unbounded)
    - Maximum total exposure (zero is unbounded)

    Every budget ceiling is deflated by (1 - fee rate) so fees are covered
    on both buy and sell paths.
    """

    def __init__(self, buy_side: Optional[MinMax] = None, sell_side: Optional[MinMax] = None):
        """
        Initialize sizer with portfolio level constraints.

        Args:
            buy_side: Constraints applied to buy orders
            sell_side: Constraints applied to sell orders
        """
        self.buy_side = buy_side or MinMax()
        self.sell_side = sell_side or MinMax()

    def size_order(
        self,
        order: Optional[OrderEvent],
        available_funds: Decimal,
        exchange_settings: Optional[ExchangeSettings],
    ) -> OrderEvent:
        """
        Set the order's amount to the largest allocatable quantity.

        Args:
            order: Order to size, updated in place
            available_funds: Funds available for the order's direction
            exchange_settings: Fee rate and exchange level constraints

        Returns:
            The same order with its amount set

        Raises:
            NilArgumentError: order or exchange settings missing
            NoFundsError: no funds available
            CannotAllocateError: order has no buy or sell direction, or the fee rate is invalid
            LessThanMinimumError: constraints cannot be met
        """
        if order is None:
            raise NilArgumentError("order")
        if exchange_settings is None:
            raise NilArgumentError("exchange settings")
        if available_funds <= 0:
            raise NoFundsError(available_funds)

        if order.direction == Direction.BUY:
            portfolio_side = self.buy_side
            exchange_side = exchange_settings.buy_side
            order_limit = order.buy_limit
        elif order.direction == Direction.SELL:
            portfolio_side = self.sell_side
            exchange_side = exchange_settings.sell_side
            order_limit = order.sell_limit
        else:
            raise CannotAllocateError(
                f"no sizing decision possible at {order.time} for "
                f"{order.exchange} {order.asset} {order.pair}",
                direction=order.direction.value,
            )

        limit = directional_limit(order.price, available_funds, order_limit)
        fee_rate = exchange_settings.exchange_fee

        amount = self.calculate_size(
            order.direction, order.price, available_funds, fee_rate, limit, portfolio_side
        )
        if not exchange_side.is_unconstrained:
            exchange_amount = self.calculate_size(
                order.direction, order.price, available_funds, fee_rate, limit, exchange_side
            )
            # the smaller of the portfolio and exchange sizes wins
            amount = min(amount, exchange_amount)

        logger.debug(
            f"Sized {order.direction.value} {order.exchange} {order.asset} {order.pair} "
            f"at {order.price}: {amount}"
        )
        order.amount = amount
        return order

    def calculate_buy_size(
        self,
        price: Decimal,
        available_funds: Decimal,
        fee_rate: Decimal,
        buy_limit: Decimal,
        constraints: MinMax,
    ) -> Decimal:
        return self.calculate_size(Direction.BUY, price, available_funds, fee_rate, buy_limit, constraints)

    def calculate_sell_size(
        self,
        price: Decimal,
        available_funds: Decimal,
        fee_rate: Decimal,
        sell_limit: Decimal,
        constraints: MinMax,
    ) -> Decimal:
        return self.calculate_size(Direction.SELL, price, available_funds, fee_rate, sell_limit, constraints)

    @staticmethod
    def calculate_size(
        direction: Direction,
        price: Decimal,
        available_funds: Decimal,
        fee_rate: Decimal,
        limit: Decimal,
        constraints: MinMax,
    ) -> Decimal:
        """
        Largest quantity within the limit, the funds and the constraints.

        Args:
            direction: BUY or SELL, only used for reporting
            price: Price per unit
            available_funds: Funds available for the trade
            fee_rate: Fee rate reserved from every budget ceiling
            limit: Maximum quantity the caller will consider
            constraints: Minimum/maximum size and maximum total

        Returns:
            Quantity to trade

        Raises:
            NoFundsError: available_funds is zero or negative
            CannotAllocateError: fee rate outside [0, 1) or a negative limit
            LessThanMinimumError: best quantity is below the minimum size
        """
        if available_funds <= 0:
            raise NoFundsError(available_funds)
        if not 0 <= fee_rate < 1:
            raise CannotAllocateError(f"fee rate {fee_rate} must be at least 0 and below 1", direction.value)
        if price <= 0:
            return Decimal(0)

        fee_buffer = ONE - fee_rate
        amount = min(limit, available_funds * fee_buffer / price)
        if constraints.maximum_total > 0:
            amount = min(amount, constraints.maximum_total * fee_buffer / price)
        if constraints.maximum_size > 0:
            amount = min(amount, constraints.maximum_size)
        if amount < 0:
            raise CannotAllocateError(f"sized amount {amount} is negative, limit {limit}", direction.value)

        if constraints.minimum_size > 0 and amount < constraints.minimum_size:
            logger.debug(
                f"{direction.value} size {amount} below minimum {constraints.minimum_size}"
            )
            raise LessThanMinimumError(amount, constraints.minimum_size)
        return amount


def directional_limit(price: Decimal, available_funds: Decimal, order_limit: Decimal = Decimal(0)) -> Decimal:
    """Most the funds can buy at the price before constraints, capped by the order's own limit."""
    if price <= 0:
        return Decimal(0)
    limit = available_funds / price
    if order_limit > 0:
        limit = min(limit, order_limit)
    return limit
