"""
credit.py - Deterministic credit protocol

SimulatedCreditProtocol keeps one book (it serves a single client, the
vault), mirroring the mock used to validate the original system:

    token_balances[asset]   tokens held in the protocol's reserve
    supplied[asset]         principal supplied by the client
    collateral[asset]       part of the supply flagged as collateral
    total_debt[asset]       principal borrowed by the client

Values are converted to the base currency with a PricingSource read at the
token ledger's current time.

The account summary reports borrow capacity against everything supplied,
as the mock does; the collateral flag is enforced when a borrow executes,
which refuses with "Insufficient collateral".
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict

from ..core import MAX_AMOUNT, AccountData, CollaboratorRevert, InterestRateMode
from ..ledger import TokenLedger
from ..pricing_source import PricingSource


class CreditRevert(CollaboratorRevert):
    """Raised when the simulated credit protocol refuses an operation."""
    pass


class SimulatedCreditProtocol:
    """
    Example:
        credit = SimulatedCreditProtocol(tokens, StaticPricingSource({"DPST": 1}))
        credit.supply("DPST", Decimal("1000"), "vault", 0)
        credit.set_collateral_flag("DPST", True)
        credit.borrow("DPST", Decimal("1000"), 2, 0, "vault")
    """

    def __init__(
        self,
        tokens: TokenLedger,
        prices: PricingSource,
        address: str = "credit",
        ltv: Decimal = Decimal("1"),
        liquidation_threshold: Decimal = Decimal("1"),
    ):
        self.tokens = tokens
        self.prices = prices
        self.address = tokens.ensure_wallet(address)
        self.ltv = ltv
        self.liquidation_threshold = liquidation_threshold
        self.token_balances: Dict[str, Decimal] = {}
        self.supplied: Dict[str, Decimal] = {}
        self.collateral: Dict[str, Decimal] = {}
        self.total_debt: Dict[str, Decimal] = {}
        self.collateral_flags: Dict[str, bool] = {}

    # -------------------------------------------------------------------------
    # Valuation
    # -------------------------------------------------------------------------

    def price(self, asset: str) -> Decimal:
        price = self.prices.get_price(asset, self.tokens.current_time)
        if price is None or price <= 0:
            raise CreditRevert(f"No price for {asset}")
        return price

    def _value(self, book: Dict[str, Decimal]) -> Decimal:
        return sum((amount * self.price(asset) for asset, amount in book.items() if amount), Decimal("0"))

    def get_account_data(self, account: str) -> AccountData:
        collateral_value = self._value(self.collateral)
        supplied_value = self._value(self.supplied)
        debt_value = self._value(self.total_debt)
        borrow_capacity = max(Decimal("0"), supplied_value * self.ltv - debt_value)
        if debt_value == 0:
            health_factor = MAX_AMOUNT
        else:
            health_factor = collateral_value * self.liquidation_threshold / debt_value
        return AccountData(
            collateral_value=collateral_value,
            debt_value=debt_value,
            borrow_capacity=borrow_capacity,
            liquidation_threshold=self.liquidation_threshold,
            ltv=self.ltv,
            health_factor=health_factor,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def add_tokens(self, provider: str, asset: str, amount: Decimal) -> None:
        """Seed the reserve from provider (provider must approve first)."""
        self.tokens.transfer_from(self.address, provider, self.address, asset, amount)
        self._add(self.token_balances, asset, amount)

    def supply(self, asset: str, amount: Decimal, on_behalf_of: str, referral_code: int) -> None:
        if amount <= 0:
            raise CreditRevert("Invalid amount")
        self.tokens.transfer_from(self.address, on_behalf_of, self.address, asset, amount)
        self._add(self.token_balances, asset, amount)
        self._add(self.supplied, asset, amount)
        if self.collateral_flags.get(asset):
            self.collateral[asset] = self.supplied[asset]

    def set_collateral_flag(self, asset: str, use_as_collateral: bool) -> None:
        if use_as_collateral:
            if not self.supplied.get(asset):
                raise CreditRevert(f"No supply of {asset} to use as collateral")
            self.collateral_flags[asset] = True
            self.collateral[asset] = self.supplied[asset]
            return
        remaining = {a: v for a, v in self.collateral.items() if a != asset}
        if self._value(self.total_debt) > self._value(remaining) * self.ltv:
            raise CreditRevert("Health factor too low")
        self.collateral_flags[asset] = False
        self.collateral[asset] = Decimal("0")

    def borrow(self, asset: str, amount: Decimal, rate_mode: int, referral_code: int, on_behalf_of: str) -> None:
        if rate_mode not in (InterestRateMode.STABLE, InterestRateMode.VARIABLE):
            raise CreditRevert(f"Invalid interest rate mode {rate_mode}")
        if amount <= 0:
            raise CreditRevert("Invalid amount")
        headroom = self._value(self.collateral) * self.ltv - self._value(self.total_debt)
        if amount * self.price(asset) > headroom:
            raise CreditRevert("Insufficient collateral")
        if self.token_balances.get(asset, Decimal("0")) < amount:
            raise CreditRevert("Insufficient balance")
        self.tokens.transfer(self.address, on_behalf_of, asset, amount)
        self._add(self.token_balances, asset, -amount)
        self._add(self.total_debt, asset, amount)

    def repay(self, asset: str, amount: Decimal, rate_mode: int, on_behalf_of: str) -> Decimal:
        """Repay up to the outstanding debt; returns the amount applied."""
        debt = self.total_debt.get(asset, Decimal("0"))
        if debt == 0:
            raise CreditRevert(f"No debt of {asset} to repay")
        repaid = min(amount, debt)
        self.tokens.transfer_from(self.address, on_behalf_of, self.address, asset, repaid)
        self._add(self.token_balances, asset, repaid)
        self._add(self.total_debt, asset, -repaid)
        return repaid

    def withdraw(self, asset: str, amount: Decimal, to: str) -> Decimal:
        """Withdraw supplied funds; MAX_AMOUNT withdraws everything supplied."""
        supplied = self.supplied.get(asset, Decimal("0"))
        if amount == MAX_AMOUNT:
            amount = supplied
        if amount <= 0 or amount > supplied:
            raise CreditRevert(f"Insufficient supply: {supplied} < {amount}")
        if self.token_balances.get(asset, Decimal("0")) < amount:
            raise CreditRevert(f"Insufficient liquidity of {asset}")
        if self.collateral_flags.get(asset):
            remaining = dict(self.collateral)
            remaining[asset] = supplied - amount
            if self._value(self.total_debt) > self._value(remaining) * self.ltv:
                raise CreditRevert("Health factor too low")
        self.tokens.transfer(self.address, to, asset, amount)
        self._add(self.token_balances, asset, -amount)
        self._add(self.supplied, asset, -amount)
        if self.collateral_flags.get(asset):
            self.collateral[asset] = self.supplied[asset]
        return amount

    @staticmethod
    def _add(book: Dict[str, Decimal], asset: str, delta: Decimal) -> None:
        book[asset] = book.get(asset, Decimal("0")) + delta

    def __repr__(self):
        return f"SimulatedCreditProtocol({self.address}, ltv={self.ltv})"
