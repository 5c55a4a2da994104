"""
registry.py - Per-asset available-balance counters

The AssetRegistry is the vault's own book of what it controls. It is never
reconciled against the token ledger: only vault operations move it.
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, List

from .core import Asset, InsufficientLedgerBalance, to_amount


class AssetRegistry:
    """
    Mapping asset -> available balance, never negative.

    Assets are added implicitly by their first increase. Balances are
    zeroed, never deleted.
    """

    def __init__(self) -> None:
        self._available: Dict[Asset, Decimal] = {}

    def get(self, asset: Asset) -> Decimal:
        """Return the available balance (Decimal("0") for an unknown asset)."""
        return self._available.get(asset, Decimal("0"))

    def increase(self, asset: Asset, amount: Decimal) -> Decimal:
        """Add amount to the asset's balance and return the new balance."""
        amount = to_amount(amount)
        new_balance = self.get(asset) + amount
        self._available[asset] = new_balance
        return new_balance

    def decrease(self, asset: Asset, amount: Decimal) -> Decimal:
        """
        Subtract amount from the asset's balance and return the new balance.

        Raises:
            InsufficientLedgerBalance: If amount exceeds the current balance.
                The balance is left unchanged.
        """
        amount = to_amount(amount)
        current = self.get(asset)
        if amount > current:
            raise InsufficientLedgerBalance(
                f"{asset}: available {current}, requested {amount}"
            )
        self._available[asset] = current - amount
        return current - amount

    def require(self, asset: Asset, amount: Decimal) -> None:
        """Fail with InsufficientLedgerBalance unless amount is available."""
        current = self.get(asset)
        if current < amount:
            raise InsufficientLedgerBalance(
                f"{asset}: available {current}, requested {amount}"
            )

    def assets(self) -> List[Asset]:
        """Assets with a tracked counter, sorted."""
        return sorted(self._available)

    def snapshot(self) -> Dict[Asset, Decimal]:
        return dict(self._available)

    def restore(self, snapshot: Dict[Asset, Decimal]) -> None:
        self._available = dict(snapshot)

    def __repr__(self) -> str:
        return f"AssetRegistry({len(self._available)} assets)"
