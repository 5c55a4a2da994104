"""
test_simulation.py - Unit tests for the simulated collaborators
"""

import pytest
from datetime import datetime
from decimal import Decimal

from fundvault import (
    MAX_AMOUNT, Q96, AssetTransfer, CollaboratorRevert, CreditProtocol,
    ExactInputSingleParams, ExchangeRouter, InsufficientAllowance, PoolState, PriceFeed,
)
from fundvault.simulation import (
    CreditRevert, ExchangeRevert, SimulatedPoolState, SimulatedPriceFeed,
    price_to_sqrt_price_x96, price_to_tick,
)

from conftest import ADMIN, ALICE, START, fund, provide_liquidity


def params(amount_in, amount_out_minimum=Decimal("0"), fee=0, token_in="DPST", token_out="TKNB",
           recipient=ALICE, deadline=START):
    return ExactInputSingleParams(
        token_in=token_in, token_out=token_out, fee=fee, recipient=recipient,
        deadline=deadline, amount_in=Decimal(amount_in), amount_out_minimum=Decimal(amount_out_minimum),
    )


class TestProtocols:

    def test_simulators_satisfy_protocols(self, tokens, exchange, credit, price_feed, pool):
        assert isinstance(tokens, AssetTransfer)
        assert isinstance(exchange, ExchangeRouter)
        assert isinstance(credit, CreditProtocol)
        assert isinstance(price_feed, PriceFeed)
        assert isinstance(pool, PoolState)

    def test_reverts_share_a_base(self):
        assert issubclass(ExchangeRevert, CollaboratorRevert)
        assert issubclass(CreditRevert, CollaboratorRevert)


class TestSimulatedExchange:

    def test_quote(self, exchange):
        assert exchange.quote("DPST", "TKNB", Decimal("1000"), 0) == Decimal("40")
        assert exchange.quote("DPST", "TKNB", Decimal("1000"), 500) == Decimal("39")

    def test_invalid_fee_tier(self, exchange):
        with pytest.raises(ExchangeRevert):
            exchange.quote("DPST", "TKNB", Decimal("1"), 1_000_000)

    def test_rate_must_be_positive(self, exchange):
        with pytest.raises(ValueError):
            exchange.set_rate("DPST", "TKNB", Decimal("0"))

    def test_swap_settles_with_recipient(self, tokens, exchange):
        provide_liquidity(tokens, exchange, "TKNB", 40)
        fund(tokens, ALICE, "DPST", 1000)
        tokens.approve(ALICE, exchange.address, "DPST", Decimal("1000"))
        assert exchange.exact_input_single(params(1000, 40)) == Decimal("40")
        assert tokens.balance_of(ALICE, "TKNB") == Decimal("40")
        assert tokens.balance_of(ALICE, "DPST") == Decimal("0")
        assert exchange.inventory("DPST") == Decimal("1000")

    def test_swap_without_approval_moves_nothing(self, tokens, exchange):
        provide_liquidity(tokens, exchange, "TKNB", 40)
        fund(tokens, ALICE, "DPST", 1000)
        with pytest.raises(InsufficientAllowance):
            exchange.exact_input_single(params(1000))
        assert exchange.inventory("TKNB") == Decimal("40")


class TestSimulatedCreditProtocol:

    @pytest.fixture
    def supplied(self, tokens, credit):
        fund(tokens, ALICE, "DPST", 1000)
        tokens.approve(ALICE, credit.address, "DPST", Decimal("1000"))
        credit.supply("DPST", Decimal("1000"), ALICE, 0)
        return credit

    def test_supply_books(self, supplied, tokens):
        assert supplied.token_balances["DPST"] == Decimal("1000")
        assert supplied.supplied["DPST"] == Decimal("1000")
        assert tokens.balance_of(supplied.address, "DPST") == Decimal("1000")

    def test_account_data_counts_supply(self, supplied):
        data = supplied.get_account_data(ALICE)
        assert data.borrow_capacity == Decimal("1000")
        assert data.collateral_value == Decimal("0")
        assert data.health_factor == MAX_AMOUNT

    def test_health_factor(self, supplied):
        supplied.set_collateral_flag("DPST", True)
        supplied.borrow("DPST", Decimal("500"), 2, 0, ALICE)
        data = supplied.get_account_data(ALICE)
        assert data.debt_value == Decimal("500")
        assert data.health_factor == Decimal("2")
        assert data.borrow_capacity == Decimal("500")

    def test_invalid_rate_mode(self, supplied):
        supplied.set_collateral_flag("DPST", True)
        with pytest.raises(CreditRevert):
            supplied.borrow("DPST", Decimal("1"), 0, 0, ALICE)

    def test_disable_collateral_backing_debt(self, supplied):
        supplied.set_collateral_flag("DPST", True)
        supplied.borrow("DPST", Decimal("1"), 2, 0, ALICE)
        with pytest.raises(CreditRevert):
            supplied.set_collateral_flag("DPST", False)

    def test_disable_collateral_without_debt(self, supplied):
        supplied.set_collateral_flag("DPST", True)
        supplied.set_collateral_flag("DPST", False)
        assert supplied.collateral["DPST"] == Decimal("0")

    def test_add_tokens_seeds_reserve(self, tokens, credit):
        provide_liquidity(tokens, credit, "TKNA", 10)
        assert credit.token_balances["TKNA"] == Decimal("10")
        assert credit.supplied.get("TKNA") is None

    def test_missing_price(self, supplied):
        supplied.prices.prices.pop("DPST")
        with pytest.raises(CreditRevert):
            supplied.get_account_data(ALICE)


class TestMarket:

    def test_price_feed_rounds(self):
        feed = SimulatedPriceFeed(Decimal("10"), START)
        feed.set_answer(Decimal("11"), datetime(2025, 1, 2))
        data = feed.latest_round_data()
        assert (data.round_id, data.answer, data.answered_in_round) == (2, Decimal("11"), 2)
        assert data.updated_at == datetime(2025, 1, 2)

    def test_sqrt_encoding_is_exact_for_squares(self):
        assert price_to_sqrt_price_x96(Decimal("4")) == 2 * Q96
        assert price_to_sqrt_price_x96(Decimal("0.25")) == Q96 // 2

    def test_tick(self):
        assert price_to_tick(Decimal("1")) == 0
        assert price_to_tick(Decimal("1.0002")) == 1

    def test_negative_price_refused(self):
        with pytest.raises(ValueError):
            price_to_sqrt_price_x96(Decimal("-1"))

    def test_pool_set_price(self):
        pool = SimulatedPoolState.from_price(Decimal("1"))
        pool.set_price(Decimal("9"))
        assert pool.slot0().sqrt_price_x96 == 3 * Q96
        assert pool.slot0().unlocked is True
