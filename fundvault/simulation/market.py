"""
market.py - Deterministic price feeds and pool states

- SimulatedPriceFeed: a settable oracle answer; every update opens a new round
- PricingSourceFeed: a feed reading one asset from a TimeSeriesPricingSource
- SimulatedPoolState: a pool's slot0, built from a price or a raw sqrtPriceX96
"""

from __future__ import annotations
import math
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from ..core import Q96, RoundData, Slot0
from ..pricing_source import TimeSeriesPricingSource


class SimulatedPriceFeed:
    """Oracle feed with a settable answer. Answers may be zero or negative."""

    def __init__(self, answer: Decimal, updated_at: Optional[datetime] = None):
        self._round_id = 0
        self._answer = Decimal("0")
        self._updated_at = datetime(1970, 1, 1)
        self.set_answer(answer, updated_at)

    def set_answer(self, answer: Decimal, updated_at: Optional[datetime] = None) -> None:
        self._round_id += 1
        self._answer = answer if isinstance(answer, Decimal) else Decimal(str(answer))
        if updated_at is not None:
            self._updated_at = updated_at

    def latest_round_data(self) -> RoundData:
        return RoundData(
            round_id=self._round_id,
            answer=self._answer,
            started_at=self._updated_at,
            updated_at=self._updated_at,
            answered_in_round=self._round_id,
        )


class PricingSourceFeed:
    """
    Feed backed by a TimeSeriesPricingSource.

    clock supplies the time the feed is read at (e.g. lambda: vault.current_time).
    With no observation yet, the feed answers 0 in round 0.
    """

    def __init__(self, source: TimeSeriesPricingSource, asset: str, clock: Callable[[], datetime]):
        self.source = source
        self.asset = asset
        self.clock = clock

    def latest_round_data(self) -> RoundData:
        now = self.clock()
        observation = self.source.latest_observation(self.asset, now)
        if observation is None:
            return RoundData(0, Decimal("0"), now, now, 0)
        return RoundData(
            round_id=observation.round_id,
            answer=observation.price,
            started_at=observation.timestamp,
            updated_at=observation.timestamp,
            answered_in_round=observation.round_id,
        )


def price_to_sqrt_price_x96(price: Decimal) -> int:
    """floor(sqrt(price) * 2**96), computed exactly."""
    if price < 0:
        raise ValueError(f"price must be non-negative, got {price}")
    numerator, denominator = Decimal(price).as_integer_ratio()
    return math.isqrt(numerator * Q96 * Q96 // denominator)


def price_to_tick(price: Decimal) -> int:
    """floor(log base 1.0001 of price)."""
    if price <= 0:
        raise ValueError(f"price must be positive, got {price}")
    return math.floor(math.log(float(price)) / math.log(1.0001))


class SimulatedPoolState:
    """Pool exposing slot0 with a settable square-root price."""

    def __init__(self, sqrt_price_x96: int, tick: int = 0):
        self.sqrt_price_x96 = sqrt_price_x96
        self.tick = tick

    @classmethod
    def from_price(cls, price: Decimal) -> SimulatedPoolState:
        price = price if isinstance(price, Decimal) else Decimal(str(price))
        return cls(price_to_sqrt_price_x96(price), price_to_tick(price) if price > 0 else 0)

    def set_price(self, price: Decimal) -> None:
        price = price if isinstance(price, Decimal) else Decimal(str(price))
        self.sqrt_price_x96 = price_to_sqrt_price_x96(price)
        self.tick = price_to_tick(price) if price > 0 else 0

    def slot0(self) -> Slot0:
        return Slot0(sqrt_price_x96=self.sqrt_price_x96, tick=self.tick)
