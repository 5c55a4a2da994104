"""
oracle.py - Read-only price adapters for the swap guard

PriceOracleAdapter reads the reference price from a price feed.
PoolPriceAdapter reads the market price from an exchange pool's
square-root price encoding (sqrtPriceX96, Q64.96).

A swap is allowed only when

    oracle * (1 - slippage) <= pool <= oracle * (1 + slippage)

with both bounds inclusive.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Tuple

from .core import (
    Q96, InvalidAmount, InvalidPriceData, PoolState, PriceDeviation, PriceFeed,
)


def sqrt_price_to_price(sqrt_price_x96: int, truncate: bool = True) -> Decimal:
    """
    Convert a Q64.96 square-root price to a price.

    With truncate=True the square root is first truncated to an integer,
    (sqrtPriceX96 >> 96) ** 2, so any pool price below 1 reads as 0 and
    prices between perfect squares are rounded down to one. With
    truncate=False the conversion is exact: sqrtPriceX96 ** 2 / 2 ** 192.
    """
    if sqrt_price_x96 < 0:
        raise InvalidPriceData(f"negative sqrtPriceX96: {sqrt_price_x96}")
    if truncate:
        return Decimal((sqrt_price_x96 // Q96) ** 2)
    return Decimal(sqrt_price_x96 * sqrt_price_x96) / Decimal(Q96 * Q96)


def slippage_band(oracle_price: Decimal, slippage: Decimal) -> Tuple[Decimal, Decimal]:
    """
    Inclusive (lower, upper) band around the oracle price.

    Raises:
        InvalidAmount: If slippage is outside [0, 1].
    """
    if not slippage.is_finite() or slippage < 0 or slippage > 1:
        raise InvalidAmount(f"slippage must be a fraction in [0, 1], got {slippage}")
    return oracle_price * (1 - slippage), oracle_price * (1 + slippage)


def check_price_deviation(oracle_price: Decimal, pool_price: Decimal, slippage: Decimal) -> None:
    """
    Raises:
        PriceDeviation: If pool_price lies outside the slippage band.
    """
    lower, upper = slippage_band(oracle_price, slippage)
    if not lower <= pool_price <= upper:
        raise PriceDeviation(
            f"pool price {pool_price} outside [{lower}, {upper}] (oracle {oracle_price}, slippage {slippage})"
        )


class PriceOracleAdapter:
    """Reads the latest answer of a price feed."""

    def read(self, feed: PriceFeed) -> Decimal:
        """
        Raises:
            InvalidPriceData: If the answer is not positive.
        """
        answer = feed.latest_round_data().answer
        price = answer if isinstance(answer, Decimal) else Decimal(str(answer))
        if not price.is_finite() or price <= 0:
            raise InvalidPriceData(f"oracle answer must be positive, got {answer}")
        return price


class PoolPriceAdapter:
    """Reads the spot price of a pool from its slot0."""

    def __init__(self, truncate_sqrt_price: bool = True):
        self.truncate_sqrt_price = truncate_sqrt_price

    def read(self, pool: PoolState) -> Decimal:
        return sqrt_price_to_price(pool.slot0().sqrt_price_x96, self.truncate_sqrt_price)
