"""
Conservation Law Conformance Tests

INVARIANT: For every token, the sum of all TokenLedger balances (system
wallet included) is zero after any sequence of vault operations. The vault
moves tokens; it never creates or destroys them.

INVARIANT: When only the vault moves its own funds, the available balance of
every asset equals the vault's custody on the token ledger.

INVARIANT: The vault's position with the credit protocol agrees with the
protocol's books.
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from fundvault import VaultError
from fundvault.simulation import SimulatedPoolState, SimulatedPriceFeed

from conftest import ALICE, BOB, MANAGER, TOKENS, build_world, provide_liquidity


@st.composite
def vault_operation(draw):
    """Generate one (operation, caller, amount) step."""
    name = draw(st.sampled_from([
        "deposit", "withdraw", "swap", "supply", "collateral",
        "borrow", "repay", "withdraw_supply",
    ]))
    caller = MANAGER if name not in ("deposit", "withdraw") else draw(st.sampled_from([ALICE, BOB]))
    amount = draw(st.integers(min_value=1, max_value=5000))
    return name, caller, Decimal(amount)


def apply(vault, tokens, step, price_feed, pool):
    name, caller, amount = step
    if name == "deposit":
        tokens.mint(caller, "DPST", amount)
        tokens.approve(caller, vault.address, "DPST", amount)
        vault.deposit(caller, amount)
    elif name == "withdraw":
        vault.withdraw(caller, min(amount, vault.balance_of(caller)) or amount)
    elif name == "swap":
        vault.swap_tokens(caller, "DPST", "TKNA", amount, Decimal("0"), 0, Decimal("0"), price_feed, pool)
    elif name == "supply":
        vault.supply_to_credit(caller, "DPST", amount)
    elif name == "collateral":
        vault.enable_collateral(caller, "DPST")
    elif name == "borrow":
        vault.borrow_from_credit(caller, "DPST", amount)
    elif name == "repay":
        vault.repay_credit_loan(caller, "DPST", amount)
    elif name == "withdraw_supply":
        vault.withdraw_credit_supply(caller, "DPST", amount)


class TestConservationProperties:

    @given(st.lists(vault_operation(), min_size=1, max_size=20))
    @settings(max_examples=100, deadline=None)
    def test_tokens_are_conserved(self, steps):
        vault, tokens, exchange, credit = build_world()
        provide_liquidity(tokens, exchange, "TKNA", 10 ** 6)
        price_feed = SimulatedPriceFeed(Decimal("1"))
        pool = SimulatedPoolState.from_price(Decimal("1"))

        for step in steps:
            try:
                apply(vault, tokens, step, price_feed, pool)
            except VaultError:
                pass

            assert tokens.verify_double_entry()['valid']
            for symbol in TOKENS:
                assert vault.available_tokens(symbol) == tokens.balance_of(vault.address, symbol)

            position = vault.state.positions.get("DPST")
            if position is not None:
                assert position.supplied == credit.supplied.get("DPST", Decimal("0"))
                assert position.borrowed == credit.total_debt.get("DPST", Decimal("0"))

            holders = vault.state.shares.holders()
            assert sum(holders.values(), Decimal("0")) == vault.total_supply
