"""
pricing_source.py - Asset prices in a base currency

Provides the price inputs that are not read from an exchange pool:

- PricingSource: Protocol defining the pricing interface
- StaticPricingSource: Time-independent prices (the credit protocol's
  asset prices, the vault's borrow-power check)
- TimeSeriesPricingSource: Time-varying prices; each observation is a
  numbered round, which is what a price feed reports

All prices are Decimal and quoted in base_currency.
"""

from bisect import bisect_right
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional, Protocol, Set, Tuple, runtime_checkable


@runtime_checkable
class PricingSource(Protocol):
    """
    Protocol for pricing sources.

    Implementations must provide get_price() and get_prices().
    get_price() returns None when no price is known.
    """
    base_currency: str

    def get_price(self, asset: str, timestamp: datetime) -> Optional[Decimal]:
        """Get the price of a single asset at a specific timestamp."""
        ...

    def get_prices(self, assets: Set[str], timestamp: datetime) -> Dict[str, Decimal]:
        """Get prices for multiple assets at a specific timestamp."""
        ...


class Observation(NamedTuple):
    """One price observation. round_id counts from 1 in timestamp order."""
    round_id: int
    timestamp: datetime
    price: Decimal


def _as_price(price) -> Decimal:
    if isinstance(price, float):
        raise TypeError("prices must be Decimal, int or str, not float")
    return price if isinstance(price, Decimal) else Decimal(str(price))


class StaticPricingSource:
    """
    Pricing source with static prices (time-independent).

    The base currency always has a price of 1.
    """

    def __init__(self, prices: Dict[str, Decimal], base_currency: str = "USD"):
        """
        Args:
            prices: Mapping asset -> price in base currency
            base_currency: The currency in which prices are quoted
        """
        self.base_currency = base_currency
        self.prices = {asset: _as_price(p) for asset, p in prices.items()}
        self.prices[base_currency] = Decimal("1")

    def get_price(self, asset: str, timestamp: Optional[datetime] = None) -> Optional[Decimal]:
        """Get static price (timestamp is ignored)."""
        return self.prices.get(asset)

    def get_prices(self, assets: Set[str], timestamp: Optional[datetime] = None) -> Dict[str, Decimal]:
        return {asset: self.prices[asset] for asset in assets if asset in self.prices}

    def update_price(self, asset: str, price: Decimal) -> None:
        self.prices[asset] = _as_price(price)

    def update_prices(self, prices: Dict[str, Decimal]) -> None:
        for asset, price in prices.items():
            self.update_price(asset, price)

    def __repr__(self):
        return f"StaticPricingSource({len(self.prices)} prices, base={self.base_currency})"


class TimeSeriesPricingSource:
    """
    Pricing source with time-varying prices.

    Uses the most recent observation at or before the requested timestamp.

    Example:
        pricer = TimeSeriesPricingSource({
            'WETH': [(t0, Decimal("2000")), (t1, Decimal("2050"))],
        })
        pricer.latest_observation('WETH', t1)   # Observation(2, t1, 2050)
    """

    def __init__(
        self,
        price_paths: Optional[Dict[str, List[Tuple[datetime, Decimal]]]] = None,
        base_currency: str = "USD"
    ):
        self.base_currency = base_currency
        self.price_history: Dict[str, List[Tuple[datetime, Decimal]]] = {}

        if price_paths:
            for asset, path in price_paths.items():
                if not path:
                    continue
                self.price_history[asset] = sorted(
                    ((ts, _as_price(p)) for ts, p in path), key=lambda x: x[0]
                )

    def add_price(self, asset: str, timestamp: datetime, price: Decimal) -> None:
        """Add an observation, keeping the history in timestamp order."""
        history = self.price_history.setdefault(asset, [])
        history.append((timestamp, _as_price(price)))
        history.sort(key=lambda x: x[0])

    def add_prices(self, prices: Dict[str, Decimal], timestamp: datetime) -> None:
        for asset, price in prices.items():
            self.add_price(asset, timestamp, price)

    def latest_observation(self, asset: str, timestamp: datetime) -> Optional[Observation]:
        """
        Most recent observation at or before timestamp, or None.

        Uses binary search for O(log n) lookup.
        """
        history = self.price_history.get(asset)
        if not history:
            return None
        idx = bisect_right([ts for ts, _ in history], timestamp)
        if idx == 0:
            return None
        ts, price = history[idx - 1]
        return Observation(round_id=idx, timestamp=ts, price=price)

    def get_price(self, asset: str, timestamp: datetime) -> Optional[Decimal]:
        if asset == self.base_currency:
            return Decimal("1")
        observation = self.latest_observation(asset, timestamp)
        return observation.price if observation else None

    def get_prices(self, assets: Set[str], timestamp: datetime) -> Dict[str, Decimal]:
        prices = {}
        for asset in assets:
            price = self.get_price(asset, timestamp)
            if price is not None:
                prices[asset] = price
        return prices

    def __repr__(self):
        total = sum(len(history) for history in self.price_history.values())
        return f"TimeSeriesPricingSource({len(self.price_history)} assets, {total} observations, base={self.base_currency})"
