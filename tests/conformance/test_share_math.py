"""
Share Math Conformance Tests

INVARIANTS:

    Σ balance_of(account) == total_supply

    deposit(a) then withdraw(all shares minted) returns <= a
        (flooring always favours the pool)

    first deposit into an empty pool mints exactly a shares
"""

import pytest
from decimal import Decimal

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from fundvault import (
    DivisionByZero, compute_shares_for_deposit, compute_tokens_for_shares,
)

from conftest import ALICE, BOB, build_world, deposit_as


amounts = st.integers(min_value=1, max_value=10 ** 20).map(Decimal)


class TestShareFormulaProperties:

    @given(amounts)
    def test_first_deposit_mints_amount(self, amount):
        assert compute_shares_for_deposit(amount, Decimal("0"), Decimal("0")) == amount

    @given(amounts, amounts, amounts)
    def test_round_trip_never_profits(self, amount, supply, available):
        shares = compute_shares_for_deposit(amount, supply, available)
        assume(shares > 0)
        redeemed = compute_tokens_for_shares(shares, supply + shares, available + amount)
        assert redeemed <= amount

    @given(amounts, amounts, amounts)
    def test_shares_are_exact_floor(self, amount, supply, available):
        shares = compute_shares_for_deposit(amount, supply, available)
        assert shares == Decimal(int(amount) * int(supply) // int(available))

    @given(amounts, amounts)
    def test_proportional_pool_is_one_to_one(self, amount, pool):
        assert compute_shares_for_deposit(amount, pool, pool) == amount

    @given(amounts)
    def test_empty_denominators(self, amount):
        with pytest.raises(DivisionByZero):
            compute_shares_for_deposit(amount, amount, Decimal("0"))
        with pytest.raises(DivisionByZero):
            compute_tokens_for_shares(amount, Decimal("0"), amount)


class TestVaultShareProperties:

    @given(st.lists(st.tuples(st.sampled_from([ALICE, BOB]), st.integers(1, 10 ** 6)), min_size=1, max_size=8))
    @settings(max_examples=50)
    def test_balances_sum_to_supply(self, deposits):
        vault, tokens, _, _ = build_world()
        for account, amount in deposits:
            deposit_as(vault, tokens, account, amount)
        assert vault.balance_of(ALICE) + vault.balance_of(BOB) == vault.total_supply
        assert sum(vault.state.shares.holders().values()) == vault.total_supply

    @given(st.integers(1, 10 ** 6), st.integers(1, 10 ** 6), st.integers(0, 10 ** 6))
    @settings(max_examples=50)
    def test_deposit_withdraw_round_trip(self, seed_deposit, amount, gain):
        vault, tokens, _, _ = build_world()
        deposit_as(vault, tokens, ALICE, seed_deposit)
        vault.state.registry.increase("DPST", gain)
        tokens.mint("vault", "DPST", Decimal(gain))
        shares = deposit_as(vault, tokens, BOB, amount)
        assert shares == Decimal((amount * seed_deposit) // (seed_deposit + gain))
        if shares > 0:
            assert vault.withdraw(BOB, shares) <= Decimal(amount)
        assert vault.total_supply == vault.balance_of(ALICE)
