"""
vault.py - Pooled-Fund Vault

The Vault is the public surface of the system and the only owner of pool
state. Every mutating entry point runs inside one operation scope:

    - the reentrancy flag is set; a nested entry from a collaborator fails
      with ReentrantCall
    - VaultState and the event log are snapshotted
    - on any exception both are restored, so no call commits partially
    - on success the operation's event is appended to Vault.events

Depositors:      deposit, withdraw, transfer_shares
FUND_MANAGER:    swap_tokens, supply_to_credit, enable_collateral,
                 borrow_from_credit, repay_credit_loan, withdraw_credit_supply
ADMIN:           grant_role, revoke_role
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional, Type, TypeVar

from .core import (
    AssetTransfer, CreditProtocol, ExchangeRouter, PoolState, PriceFeed,
    Deposited, InterestRateMode, ReentrantCall, Role, RoleGranted, RoleRevoked,
    SharesTransferred, VaultConfig, VaultEvent, Withdrawn, Unauthorized,
    call_collaborator, to_amount,
)
from .lending import LendingManager, LendingPhase
from .oracle import PoolPriceAdapter, PriceOracleAdapter
from .pricing_source import PricingSource
from .state import VaultState
from .swap import SwapExecutor

E = TypeVar("E", bound=VaultEvent)


class Vault:
    """
    Pooled-fund manager over one accepted deposit asset.

    Thread Safety:
        Not thread-safe. Calls must be serialized by the caller.

    Example:
        vault = Vault("DPST", tokens, exchange, credit, admin="owner")
        vault.grant_role("owner", Role.FUND_MANAGER, "manager")
        tokens.approve("alice", vault.address, "DPST", Decimal("1000"))
        vault.deposit("alice", Decimal("1000"))       # -> Decimal("1000") shares
    """

    def __init__(
        self,
        deposit_asset: str,
        asset_transfer: AssetTransfer,
        exchange: ExchangeRouter,
        credit: CreditProtocol,
        admin: str,
        asset_prices: Optional[PricingSource] = None,
        config: Optional[VaultConfig] = None,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
    ):
        """
        Create and initialize a vault.

        The accepted asset and collaborator bindings are fixed for the life
        of the vault. admin is granted ADMIN and UPGRADER.

        Args:
            deposit_asset: The single asset depositors contribute
            asset_transfer: Token custody (e.g. TokenLedger)
            exchange: Swap router
            credit: Credit protocol
            admin: Initial administrator account
            asset_prices: Prices used by the borrow-power check
            config: Static configuration (defaults to VaultConfig())
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print every committed event and every rejection
        """
        if not deposit_asset:
            raise ValueError("deposit_asset cannot be empty")
        self.config = config or VaultConfig()
        self.asset_transfer = asset_transfer
        self.exchange = exchange
        self.credit = credit
        self.verbose = verbose
        self.events: List[VaultEvent] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._entered = False

        self.state = VaultState.create(
            deposit_asset, self.config.address,
            self.config.share_name, self.config.share_symbol,
        )
        self.swap_executor = SwapExecutor(
            exchange, asset_transfer,
            PriceOracleAdapter(), PoolPriceAdapter(self.config.truncate_sqrt_price),
        )
        self.lending = LendingManager(credit, asset_transfer, asset_prices, self.config.referral_code)

        for role in (Role.ADMIN, Role.UPGRADER):
            self.state.access.grant(admin, role)
            self._emit(RoleGranted(self._current_time, role, admin, admin))

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def address(self) -> str:
        return self.state.address

    @property
    def deposit_asset(self) -> str:
        return self.state.deposit_asset

    @property
    def current_time(self) -> datetime:
        return self._current_time

    @property
    def total_supply(self) -> Decimal:
        return self.state.shares.total_supply

    @property
    def name(self) -> str:
        return self.state.shares.name

    @property
    def symbol(self) -> str:
        return self.state.shares.symbol

    def available_tokens(self, asset: str) -> Decimal:
        """The vault's available balance of asset."""
        return self.state.registry.get(asset)

    def balance_of(self, account: str) -> Decimal:
        """Shares held by account."""
        return self.state.shares.balance_of(account)

    def shares_to_tokens(self, shares) -> Decimal:
        """Deposit-asset value of shares at the current ratio."""
        return self.state.shares.shares_to_tokens(shares)

    def has_role(self, account: str, role: Role) -> bool:
        return self.state.access.has_role(account, role)

    def lending_phase(self, asset: str) -> LendingPhase:
        position = self.state.positions.get(asset)
        return position.phase if position else LendingPhase.IDLE

    def events_of(self, event_type: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._current_time}")
        self._current_time = new_time

    # ========================================================================
    # DEPOSITORS
    # ========================================================================

    def deposit(self, caller: str, amount) -> Decimal:
        """
        Deposit amount of the deposit asset and mint shares to caller.

        caller must have approved the vault on the token ledger.

        Returns:
            Shares minted.

        Raises:
            InvalidAmount, DivisionByZero, CollaboratorError
        """
        with self._operation("deposit"):
            amount = to_amount(amount)
            shares = self.state.shares.quote_deposit(amount)
            call_collaborator(
                "asset_transfer", self.asset_transfer.transfer_from,
                self.address, caller, self.address, self.deposit_asset, amount,
            )
            self.state.registry.increase(self.deposit_asset, amount)
            self.state.shares.mint(caller, shares)
            self._emit(Deposited(self._current_time, caller, amount, shares))
            return shares

    def withdraw(self, caller: str, shares) -> Decimal:
        """
        Burn shares and pay their value in the deposit asset to caller.

        Returns:
            Amount of the deposit asset paid out.

        Raises:
            InvalidAmount, InsufficientShares, DivisionByZero, CollaboratorError
        """
        with self._operation("withdraw"):
            shares = to_amount(shares, "shares")
            amount = self.state.shares.quote_withdraw(caller, shares)
            self.state.shares.burn(caller, shares)
            self.state.registry.decrease(self.deposit_asset, amount)
            call_collaborator(
                "asset_transfer", self.asset_transfer.transfer,
                self.address, caller, self.deposit_asset, amount,
            )
            self._emit(Withdrawn(self._current_time, caller, shares, amount))
            return amount

    def transfer_shares(self, caller: str, to: str, shares) -> None:
        """
        Move shares from caller to another account.

        Raises:
            InvalidAmount, InsufficientShares
        """
        with self._operation("transfer_shares"):
            shares = to_amount(shares, "shares")
            self.state.shares.transfer(caller, to, shares)
            self._emit(SharesTransferred(self._current_time, caller, to, shares))

    # ========================================================================
    # FUND MANAGER: SWAPS
    # ========================================================================

    def swap_tokens(
        self,
        caller: str,
        token_in: str,
        token_out: str,
        amount_in,
        amount_out_minimum,
        fee: int,
        slippage,
        price_feed: PriceFeed,
        pool: PoolState,
    ) -> Decimal:
        """
        Swap vault funds through the exchange under the oracle price guard.

        slippage is a fraction (Decimal("0.01") == 1%); use wad_to_fraction
        for 18-decimal fixed-point input.

        Returns:
            Amount of token_out received.

        Raises:
            Unauthorized, InvalidAmount, InsufficientLedgerBalance,
            InvalidPriceData, PriceDeviation, CollaboratorError
        """
        with self._operation("swap_tokens"):
            event = self.swap_executor.swap(
                self.state, caller, token_in, token_out, amount_in, amount_out_minimum,
                fee, slippage, price_feed, pool,
                deadline=self._current_time + self.config.swap_deadline,
                timestamp=self._current_time,
            )
            self._emit(event)
            return event.amount_out

    # ========================================================================
    # FUND MANAGER: CREDIT PROTOCOL
    # ========================================================================

    def supply_to_credit(self, caller: str, asset: str, amount) -> None:
        with self._operation("supply_to_credit"):
            self._emit(self.lending.supply(self.state, caller, asset, amount, self._current_time))

    def enable_collateral(self, caller: str, asset: str) -> None:
        with self._operation("enable_collateral"):
            self._emit(self.lending.enable_collateral(self.state, caller, asset, self._current_time))

    def borrow_from_credit(self, caller: str, asset: str, amount, rate_mode=InterestRateMode.VARIABLE) -> None:
        with self._operation("borrow_from_credit"):
            self._emit(self.lending.borrow(self.state, caller, asset, amount, rate_mode, self._current_time))

    def repay_credit_loan(self, caller: str, asset: str, amount, rate_mode=InterestRateMode.VARIABLE) -> Decimal:
        """
        Repay a loan. Pass MAX_AMOUNT to repay everything outstanding.

        Returns:
            Amount actually repaid.
        """
        with self._operation("repay_credit_loan"):
            event = self.lending.repay(self.state, caller, asset, amount, rate_mode, self._current_time)
            self._emit(event)
            return event.repaid

    def withdraw_credit_supply(self, caller: str, asset: str, amount) -> Decimal:
        """
        Returns:
            Amount actually released by the credit protocol.
        """
        with self._operation("withdraw_credit_supply"):
            event = self.lending.withdraw_supply(self.state, caller, asset, amount, self._current_time)
            self._emit(event)
            return event.received

    # ========================================================================
    # ADMIN: ROLES
    # ========================================================================

    def grant_role(self, caller: str, role: Role, account: str) -> None:
        """
        Raises:
            Unauthorized: If caller is not ADMIN
        """
        with self._operation("grant_role"):
            self.state.access.require(caller, Role.ADMIN)
            if self.state.access.grant(account, role):
                self._emit(RoleGranted(self._current_time, Role(role), account, caller))

    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        """
        Raises:
            Unauthorized: If caller is not ADMIN
        """
        with self._operation("revoke_role"):
            self.state.access.require(caller, Role.ADMIN)
            if self.state.access.revoke(account, role):
                self._emit(RoleRevoked(self._current_time, Role(role), account, caller))

    def renounce_role(self, caller: str, role: Role, account: Optional[str] = None) -> None:
        """
        Give up one of caller's own roles.

        Raises:
            Unauthorized: If account is given and is not caller
        """
        with self._operation("renounce_role"):
            if account is not None and account != caller:
                raise Unauthorized("roles can only be renounced for self")
            if self.state.access.revoke(caller, role):
                self._emit(RoleRevoked(self._current_time, Role(role), caller, caller))

    # ========================================================================
    # INTERNALS
    # ========================================================================

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        if self._entered:
            self._reject(name, "reentrant call")
            raise ReentrantCall(f"{name} called while another vault operation is in progress")
        self._entered = True
        snapshot = self.state.snapshot()
        mark = len(self.events)
        try:
            yield
        except Exception as e:
            self.state.restore(snapshot)
            del self.events[mark:]
            self._reject(name, f"{getattr(e, 'kind', type(e).__name__)}: {e}")
            raise
        finally:
            self._entered = False

    def _emit(self, event: VaultEvent) -> None:
        self.events.append(event)
        if self.verbose:
            print(f"✓ {event.name}: {event}")

    def _reject(self, operation: str, reason: str) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation}: {reason}")

    def __repr__(self) -> str:
        return (
            f"Vault({self.address}, asset={self.deposit_asset}, "
            f"available={self.available_tokens(self.deposit_asset)}, supply={self.total_supply})"
        )
