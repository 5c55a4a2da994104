"""
shares.py - Proportional-claim accounting

=== SHARE MODEL ===

Depositors hold shares of the pool's deposit asset. The exchange rate is

    shares_for(amount) = amount                                  if supply == 0
                       = floor(amount * supply / available)      otherwise

    tokens_for(shares) = floor(shares * available / supply)

where `available` is the AssetRegistry balance of the deposit asset and
`supply` is the total share supply, both read BEFORE the operation's own
update. Reading them afterwards under-mints every deposit after the first
and mis-prices every withdrawal.

Flooring always favours the pool, so a deposit immediately followed by a
full withdrawal returns at most what was deposited.

=== INVARIANT ===

    Σ balance_of(account) == total_supply
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, Tuple

from .core import (
    Account, DivisionByZero, InsufficientShares, InvalidAmount,
    mul_div_floor, to_amount,
)
from .registry import AssetRegistry


# =============================================================================
# PURE FUNCTIONS
# =============================================================================

def compute_shares_for_deposit(amount: Decimal, total_supply: Decimal, available: Decimal) -> Decimal:
    """
    Shares minted for depositing amount into a pool with the given state.

    Raises:
        DivisionByZero: If shares exist but the pool tracks no deposit asset.

    Example:
        Pool holds 1000 with 1000 shares; depositing 500 mints 500.
    """
    if total_supply == 0:
        return amount
    if available == 0:
        raise DivisionByZero("shares outstanding but available balance is zero")
    return mul_div_floor(amount, total_supply, available)


def compute_tokens_for_shares(shares: Decimal, total_supply: Decimal, available: Decimal) -> Decimal:
    """
    Deposit-asset amount owed for redeeming shares.

    Raises:
        DivisionByZero: If no shares exist.
    """
    if total_supply == 0:
        raise DivisionByZero("no shares outstanding")
    return mul_div_floor(shares, available, total_supply)


# =============================================================================
# SHARE LEDGER
# =============================================================================

class ShareLedger:
    """
    Share balances of every account plus the total supply.

    The deposit asset's available balance lives in the AssetRegistry; the
    ledger reads it as the ratio denominator.
    """

    def __init__(self, deposit_asset: str, registry: AssetRegistry, name: str, symbol: str) -> None:
        self.deposit_asset = deposit_asset
        self.registry = registry
        self.name = name
        self.symbol = symbol
        self._balances: Dict[Account, Decimal] = {}
        self._total_supply = Decimal("0")

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    def balance_of(self, account: Account) -> Decimal:
        return self._balances.get(account, Decimal("0"))

    def holders(self) -> Dict[Account, Decimal]:
        """Accounts with a non-zero share balance."""
        return {a: b for a, b in self._balances.items() if b != 0}

    def available(self) -> Decimal:
        return self.registry.get(self.deposit_asset)

    def shares_for_deposit(self, amount: Decimal) -> Decimal:
        return compute_shares_for_deposit(amount, self._total_supply, self.available())

    def shares_to_tokens(self, shares: Decimal) -> Decimal:
        """
        Price shares against the current pool.

        Raises:
            DivisionByZero: If total supply is zero.
        """
        return compute_tokens_for_shares(to_amount(shares, "shares"), self._total_supply, self.available())

    # -------------------------------------------------------------------------
    # Mutations (called by the vault inside an operation scope)
    # -------------------------------------------------------------------------

    def quote_deposit(self, amount: Decimal) -> Decimal:
        """
        Shares a deposit of amount would mint now.

        Raises:
            InvalidAmount: On zero.
            DivisionByZero: If shares exist but the available balance is zero.
        """
        if amount == 0:
            raise InvalidAmount("deposit amount must be greater than zero")
        return self.shares_for_deposit(amount)

    def quote_withdraw(self, account: Account, shares: Decimal) -> Decimal:
        """
        Amount a withdrawal of shares by account would pay out now.

        Raises:
            InvalidAmount: On zero shares.
            InsufficientShares: If the account holds fewer shares.
            DivisionByZero: If total supply is zero.
        """
        if shares == 0:
            raise InvalidAmount("withdraw shares must be greater than zero")
        self._require_balance(account, shares)
        return self.shares_to_tokens(shares)

    def mint(self, account: Account, shares: Decimal) -> None:
        self._balances[account] = self.balance_of(account) + shares
        self._total_supply += shares

    def burn(self, account: Account, shares: Decimal) -> None:
        self._require_balance(account, shares)
        self._balances[account] = self.balance_of(account) - shares
        self._total_supply -= shares

    def transfer(self, source: Account, dest: Account, shares: Decimal) -> None:
        if shares == 0:
            raise InvalidAmount("transfer shares must be greater than zero")
        self._require_balance(source, shares)
        self._balances[source] = self.balance_of(source) - shares
        self._balances[dest] = self.balance_of(dest) + shares

    def _require_balance(self, account: Account, shares: Decimal) -> None:
        held = self.balance_of(account)
        if held < shares:
            raise InsufficientShares(f"{account} holds {held} shares, needs {shares}")

    def snapshot(self) -> Tuple[Dict[Account, Decimal], Decimal]:
        return dict(self._balances), self._total_supply

    def restore(self, snapshot: Tuple[Dict[Account, Decimal], Decimal]) -> None:
        balances, supply = snapshot
        self._balances = dict(balances)
        self._total_supply = supply

    def __repr__(self) -> str:
        return f"ShareLedger({self.symbol}, supply={self._total_supply}, holders={len(self.holders())})"
