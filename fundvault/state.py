"""
state.py - The vault's owned aggregate

VaultState bundles every piece of mutable pool state. The Vault owns exactly
one and hands it to the swap and lending handlers by reference; nothing
else holds pool state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict

from .access import AccessControl
from .core import Asset
from .lending import LendingPosition
from .registry import AssetRegistry
from .shares import ShareLedger


@dataclass
class VaultState:
    """
    Attributes:
        deposit_asset: The single accepted deposit asset (fixed).
        address: The vault's wallet on the token ledger (fixed).
        registry: Available balance per asset.
        access: Role grants.
        shares: Share balances and total supply.
        positions: Credit-protocol position per asset, as the vault tracks it.
    """
    deposit_asset: Asset
    address: str
    registry: AssetRegistry
    access: AccessControl
    shares: ShareLedger
    positions: Dict[Asset, LendingPosition] = field(default_factory=dict)

    @classmethod
    def create(cls, deposit_asset: Asset, address: str, share_name: str, share_symbol: str) -> VaultState:
        registry = AssetRegistry()
        return cls(
            deposit_asset=deposit_asset,
            address=address,
            registry=registry,
            access=AccessControl(),
            shares=ShareLedger(deposit_asset, registry, share_name, share_symbol),
        )

    def position(self, asset: Asset) -> LendingPosition:
        """Position for asset, created empty on first use."""
        if asset not in self.positions:
            self.positions[asset] = LendingPosition(asset)
        return self.positions[asset]

    def snapshot(self) -> Dict[str, Any]:
        return {
            'registry': self.registry.snapshot(),
            'access': self.access.snapshot(),
            'shares': self.shares.snapshot(),
            'positions': {a: p.copy() for a, p in self.positions.items()},
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.registry.restore(snapshot['registry'])
        self.access.restore(snapshot['access'])
        self.shares.restore(snapshot['shares'])
        self.positions = {a: p.copy() for a, p in snapshot['positions'].items()}
