"""
lending.py - Credit protocol lifecycle

=== LENDING MODEL ===

The vault can place funds with a credit protocol and borrow against them:

    supply            available -= amount     (tokens go to the protocol)
    enable_collateral no ledger change        (protocol flags the supply)
    borrow            available += amount     (protocol lends tokens out)
    repay             available -= repaid     (repaid <= requested)
    withdraw_supply   available += received   (received <= requested)

Per asset the vault's position moves through

    IDLE -> SUPPLIED -> COLLATERAL_ENABLED -> BORROWED
    BORROWED --repay all--> SUPPLIED / COLLATERAL_ENABLED
    SUPPLIED --withdraw all--> IDLE

The vault does not enforce these transitions; the credit protocol does, and
its refusals surface as CollaboratorError. LendingPosition only mirrors what
the vault has done so far.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .core import (
    MAX_AMOUNT, AssetTransfer, Borrowed, CollateralEnabled, CollaboratorError,
    CreditProtocol, InsufficientBorrowingPower, InterestRateMode, InvalidAmount,
    InvalidPriceData, Repaid, Role, Supplied, SupplyWithdrawn,
    call_collaborator, to_amount, to_positive_amount,
)
from .pricing_source import PricingSource

if TYPE_CHECKING:
    from .state import VaultState


class LendingPhase(str, Enum):
    """Where an asset stands with the credit protocol."""
    IDLE = "idle"
    SUPPLIED = "supplied"
    COLLATERAL_ENABLED = "collateral_enabled"
    BORROWED = "borrowed"


@dataclass
class LendingPosition:
    """
    The vault's own record of one asset's credit position.

    Attributes:
        asset: Asset identifier.
        supplied: Principal supplied and not yet withdrawn.
        borrowed: Principal borrowed and not yet repaid.
        collateral_enabled: Whether enable_collateral succeeded for the asset.
    """
    asset: str
    supplied: Decimal = Decimal("0")
    borrowed: Decimal = Decimal("0")
    collateral_enabled: bool = False

    @property
    def phase(self) -> LendingPhase:
        if self.borrowed > 0:
            return LendingPhase.BORROWED
        if self.supplied > 0 and self.collateral_enabled:
            return LendingPhase.COLLATERAL_ENABLED
        if self.supplied > 0:
            return LendingPhase.SUPPLIED
        return LendingPhase.IDLE

    def copy(self) -> LendingPosition:
        return replace(self)


def to_rate_mode(rate_mode) -> InterestRateMode:
    try:
        return InterestRateMode(rate_mode)
    except ValueError:
        raise InvalidAmount(f"unknown interest rate mode: {rate_mode!r}") from None


class LendingManager:
    """Supply, collateral, borrow, repay and withdraw against one credit protocol."""

    def __init__(
        self,
        credit: CreditProtocol,
        tokens: AssetTransfer,
        asset_prices: Optional[PricingSource],
        referral_code: int = 0,
    ):
        self.credit = credit
        self.tokens = tokens
        self.asset_prices = asset_prices
        self.referral_code = referral_code

    def _approve(self, state: VaultState, asset: str, amount: Decimal) -> None:
        call_collaborator(
            "asset_transfer", self.tokens.approve,
            state.address, self.credit.address, asset, amount,
        )

    def supply(self, state: VaultState, caller: str, asset: str, amount, timestamp: datetime) -> Supplied:
        """
        Raises:
            Unauthorized, InvalidAmount, InsufficientLedgerBalance, CollaboratorError
        """
        state.access.require(caller, Role.FUND_MANAGER)
        amount = to_positive_amount(amount)
        state.registry.require(asset, amount)

        self._approve(state, asset, amount)
        call_collaborator(
            "credit", self.credit.supply, asset, amount, state.address, self.referral_code,
        )

        state.registry.decrease(asset, amount)
        state.position(asset).supplied += amount
        return Supplied(timestamp, asset, amount)

    def enable_collateral(self, state: VaultState, caller: str, asset: str, timestamp: datetime) -> CollateralEnabled:
        state.access.require(caller, Role.FUND_MANAGER)
        call_collaborator("credit", self.credit.set_collateral_flag, asset, True)
        state.position(asset).collateral_enabled = True
        return CollateralEnabled(timestamp, asset)

    def asset_price(self, asset: str, timestamp: datetime) -> Decimal:
        """
        Raises:
            InvalidPriceData: If no positive price is known for asset.
        """
        price = self.asset_prices.get_price(asset, timestamp) if self.asset_prices else None
        if price is None or price <= 0:
            raise InvalidPriceData(f"no positive price for {asset}: {price}")
        return price

    def borrow(self, state: VaultState, caller: str, asset: str, amount, rate_mode, timestamp: datetime) -> Borrowed:
        """
        Borrow amount of asset against the vault's credit position.

        The capacity check uses the third field of the protocol's account
        data; the protocol still refuses borrows its own rules forbid.

        Raises:
            Unauthorized, InvalidAmount, InvalidPriceData,
            InsufficientBorrowingPower, CollaboratorError
        """
        state.access.require(caller, Role.FUND_MANAGER)
        amount = to_positive_amount(amount)
        rate_mode = to_rate_mode(rate_mode)

        _, _, borrow_capacity, _, _, _ = call_collaborator(
            "credit", self.credit.get_account_data, state.address,
        )
        value = self.asset_price(asset, timestamp) * amount
        if value > borrow_capacity:
            raise InsufficientBorrowingPower(
                f"borrowing {amount} {asset} is worth {value}, capacity is {borrow_capacity}"
            )

        call_collaborator(
            "credit", self.credit.borrow,
            asset, amount, int(rate_mode), self.referral_code, state.address,
        )

        state.registry.increase(asset, amount)
        state.position(asset).borrowed += amount
        return Borrowed(timestamp, asset, amount, rate_mode)

    def repay(self, state: VaultState, caller: str, asset: str, amount, rate_mode, timestamp: datetime) -> Repaid:
        """
        Repay debt. MAX_AMOUNT repays whatever is outstanding.

        Raises:
            Unauthorized, InvalidAmount, InsufficientLedgerBalance, CollaboratorError
        """
        state.access.require(caller, Role.FUND_MANAGER)
        amount = to_positive_amount(amount)
        rate_mode = to_rate_mode(rate_mode)
        if amount == MAX_AMOUNT:
            # the protocol may pull at most what the vault has available
            self._approve(state, asset, state.registry.get(asset))
        else:
            state.registry.require(asset, amount)
            self._approve(state, asset, amount)
        repaid = call_collaborator(
            "credit", self.credit.repay, asset, amount, int(rate_mode), state.address,
        )
        repaid = self._reported_amount(repaid, amount, "repaid")

        state.registry.decrease(asset, repaid)
        position = state.position(asset)
        position.borrowed = max(Decimal("0"), position.borrowed - repaid)
        return Repaid(timestamp, asset, amount, repaid)

    def withdraw_supply(self, state: VaultState, caller: str, asset: str, amount, timestamp: datetime) -> SupplyWithdrawn:
        """
        Withdraw supplied funds back into the vault.

        Raises:
            Unauthorized, InvalidAmount, CollaboratorError
        """
        state.access.require(caller, Role.FUND_MANAGER)
        amount = to_positive_amount(amount)

        received = call_collaborator(
            "credit", self.credit.withdraw, asset, amount, state.address,
        )
        received = self._reported_amount(received, amount, "received")

        state.registry.increase(asset, received)
        position = state.position(asset)
        position.supplied = max(Decimal("0"), position.supplied - received)
        return SupplyWithdrawn(timestamp, asset, amount, received)

    @staticmethod
    def _reported_amount(value, requested: Decimal, field_name: str) -> Decimal:
        try:
            value = to_amount(value, field_name)
        except InvalidAmount as e:
            raise CollaboratorError("credit", str(e)) from e
        if value > requested:
            raise CollaboratorError("credit", f"{field_name} {value} exceeds requested {requested}")
        return value
