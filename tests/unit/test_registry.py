"""
test_registry.py - Unit tests for AssetRegistry

Tests:
- Unknown assets read as zero
- increase / decrease arithmetic
- decrease below zero fails and leaves the balance unchanged
- snapshot / restore
"""

import pytest
from decimal import Decimal

from fundvault import AssetRegistry, InsufficientLedgerBalance, InvalidAmount


class TestAssetRegistry:

    def test_unknown_asset_is_zero(self):
        assert AssetRegistry().get("DPST") == Decimal("0")

    def test_increase_then_decrease(self):
        registry = AssetRegistry()
        assert registry.increase("DPST", Decimal("1000")) == Decimal("1000")
        assert registry.decrease("DPST", Decimal("400")) == Decimal("600")
        assert registry.get("DPST") == Decimal("600")

    def test_decrease_to_exactly_zero(self):
        registry = AssetRegistry()
        registry.increase("DPST", 5)
        registry.decrease("DPST", 5)
        assert registry.get("DPST") == 0
        assert registry.assets() == ["DPST"]

    def test_decrease_beyond_balance_fails_without_change(self):
        registry = AssetRegistry()
        registry.increase("DPST", 10)
        with pytest.raises(InsufficientLedgerBalance):
            registry.decrease("DPST", 11)
        assert registry.get("DPST") == Decimal("10")

    def test_require(self):
        registry = AssetRegistry()
        registry.increase("TKNA", 3)
        registry.require("TKNA", Decimal("3"))
        with pytest.raises(InsufficientLedgerBalance):
            registry.require("TKNA", Decimal("4"))

    def test_rejects_fractional_amounts(self):
        with pytest.raises(InvalidAmount):
            AssetRegistry().increase("DPST", Decimal("0.5"))

    def test_snapshot_restore(self):
        registry = AssetRegistry()
        registry.increase("DPST", 7)
        snap = registry.snapshot()
        registry.increase("DPST", 3)
        registry.increase("TKNB", 1)
        registry.restore(snap)
        assert registry.get("DPST") == 7
        assert registry.get("TKNB") == 0
