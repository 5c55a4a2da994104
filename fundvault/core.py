"""
Core types and pure functions for the pooled-fund vault.

This module provides the foundational pieces every other module builds on:
1. Constants: roles, sentinels, fixed-point scales, configuration defaults
2. Exceptions: VaultError and its kinds, CollaboratorRevert for external systems
3. Immutable records: VaultConfig, vault events, collaborator return types
4. Protocols: the interfaces of the external collaborators (token transfer,
   exchange, credit protocol, price feed, pool state)
5. Numeric helpers: amount validation and exact floor arithmetic

Everything here is pure. Only Vault (vault.py) and the collaborators mutate state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation, getcontext
from enum import Enum, IntEnum
from typing import Any, NamedTuple, Optional, Protocol, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Amounts and prices are Decimal. The global context is configured once at
# module load time so every module computes with the same precision.
#
# Amounts range up to uint256 max (78 digits). Precision 100 keeps sums of
# such amounts exact.
#
# PRECONDITION: No other code should modify the global Decimal context.
#
_VAULT_DECIMAL_CONTEXT = getcontext()
_VAULT_DECIMAL_CONTEXT.prec = 100
_VAULT_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for token issuance and redemption on the TokenLedger.
SYSTEM_WALLET = "system"

# "Repay everything outstanding" sentinel (uint256 max in the credit protocol).
MAX_AMOUNT = Decimal(2 ** 256 - 1)

# 18-decimal fixed point, used for slippage fractions expressed on-chain.
WAD = 10 ** 18

# Q64.96 fixed point of the pool's square-root price.
Q96 = 2 ** 96

# Configuration defaults
DEFAULT_VAULT_ADDRESS = "vault"
DEFAULT_SHARE_NAME = "Vault Share"
DEFAULT_SHARE_SYMBOL = "VSHARE"
DEFAULT_REFERRAL_CODE = 0
DEFAULT_SWAP_DEADLINE = timedelta(0)


class Role(str, Enum):
    """Capability grants checked by AccessControl."""
    ADMIN = "DEFAULT_ADMIN_ROLE"           # Grants and revokes roles
    UPGRADER = "UPGRADER_ROLE"             # Reserved; upgrades are not modelled
    FUND_MANAGER = "FUND_MANAGER_ROLE"     # Swaps and credit operations


class InterestRateMode(IntEnum):
    """Borrow rate mode understood by the credit protocol."""
    STABLE = 1
    VARIABLE = 2


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Account, wallet and asset identifiers are plain strings.
Account = str
Asset = str

# Anything accepted where an amount is expected.
AmountLike = Union[Decimal, int, str]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class VaultError(Exception):
    """Base exception for all vault errors. ``kind`` names the failure."""
    kind = "VaultError"


class InvalidAmount(VaultError):
    """Raised for zero or malformed amounts and parameters."""
    kind = "InvalidAmount"


class Unauthorized(VaultError):
    """Raised when the caller lacks the required role."""
    kind = "Unauthorized"


class InsufficientLedgerBalance(VaultError):
    """Raised when the vault's available balance cannot cover an amount."""
    kind = "InsufficientLedgerBalance"


class InsufficientShares(VaultError):
    """Raised when an account holds fewer shares than it tries to spend."""
    kind = "InsufficientShares"


class DivisionByZero(VaultError):
    """Raised when a share ratio is requested against an empty denominator."""
    kind = "DivisionByZero"


class PriceDeviation(VaultError):
    """Raised when the pool price falls outside the oracle slippage band."""
    kind = "PriceDeviation"


class InvalidPriceData(VaultError):
    """Raised on a non-positive or missing price reading."""
    kind = "InvalidPriceData"


class InsufficientBorrowingPower(VaultError):
    """Raised when a borrow exceeds the capacity reported by the credit protocol."""
    kind = "InsufficientBorrowingPower"


class ReentrantCall(VaultError):
    """Raised when a vault entry point is invoked while another is in progress."""
    kind = "ReentrantCall"


class CollaboratorError(VaultError):
    """Raised when an external collaborator rejects a call."""
    kind = "CollaboratorError"

    def __init__(self, collaborator: str, reason: str):
        super().__init__(f"{collaborator}: {reason}")
        self.collaborator = collaborator
        self.reason = reason


class CollaboratorRevert(Exception):
    """
    Base exception raised by external collaborators.

    The vault never lets these escape: they are re-raised as CollaboratorError
    carrying the collaborator name and this reason.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultConfig:
    """
    Static configuration of a vault, fixed at construction.

    Attributes:
        address: Wallet identifier of the vault on the token ledger.
        share_name: Human-readable name of the share token.
        share_symbol: Ticker of the share token.
        referral_code: Referral code forwarded to the credit protocol.
        swap_deadline: Added to the vault's logical time to form swap deadlines.
        truncate_sqrt_price: Derive pool prices by truncating sqrtPriceX96 to
            an integer before squaring (True) or exactly (False).
    """
    address: str = DEFAULT_VAULT_ADDRESS
    share_name: str = DEFAULT_SHARE_NAME
    share_symbol: str = DEFAULT_SHARE_SYMBOL
    referral_code: int = DEFAULT_REFERRAL_CODE
    swap_deadline: timedelta = DEFAULT_SWAP_DEADLINE
    truncate_sqrt_price: bool = True

    def __post_init__(self):
        if not self.address or not self.address.strip():
            raise ValueError("VaultConfig address cannot be empty")
        if self.address == SYSTEM_WALLET:
            raise ValueError(f"VaultConfig address cannot be {SYSTEM_WALLET!r}")
        if self.referral_code < 0:
            raise ValueError("VaultConfig referral_code must be non-negative")
        if self.swap_deadline < timedelta(0):
            raise ValueError("VaultConfig swap_deadline must be non-negative")


# ============================================================================
# EVENTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultEvent:
    """Base record appended to Vault.events when an operation commits."""
    timestamp: datetime

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, slots=True)
class Deposited(VaultEvent):
    account: Account
    amount: Decimal
    shares: Decimal


@dataclass(frozen=True, slots=True)
class Withdrawn(VaultEvent):
    account: Account
    shares: Decimal
    amount: Decimal


@dataclass(frozen=True, slots=True)
class SharesTransferred(VaultEvent):
    source: Account
    dest: Account
    shares: Decimal


@dataclass(frozen=True, slots=True)
class TokenSwapped(VaultEvent):
    token_in: Asset
    token_out: Asset
    amount_in: Decimal
    amount_out: Decimal


@dataclass(frozen=True, slots=True)
class Supplied(VaultEvent):
    asset: Asset
    amount: Decimal


@dataclass(frozen=True, slots=True)
class CollateralEnabled(VaultEvent):
    asset: Asset


@dataclass(frozen=True, slots=True)
class Borrowed(VaultEvent):
    asset: Asset
    amount: Decimal
    rate_mode: InterestRateMode


@dataclass(frozen=True, slots=True)
class Repaid(VaultEvent):
    asset: Asset
    requested: Decimal
    repaid: Decimal


@dataclass(frozen=True, slots=True)
class SupplyWithdrawn(VaultEvent):
    asset: Asset
    requested: Decimal
    received: Decimal


@dataclass(frozen=True, slots=True)
class RoleGranted(VaultEvent):
    role: Role
    account: Account
    sender: Account


@dataclass(frozen=True, slots=True)
class RoleRevoked(VaultEvent):
    role: Role
    account: Account
    sender: Account


# ============================================================================
# COLLABORATOR RECORDS
# ============================================================================

class RoundData(NamedTuple):
    """Latest round reported by a price feed."""
    round_id: int
    answer: Decimal
    started_at: datetime
    updated_at: datetime
    answered_in_round: int


class Slot0(NamedTuple):
    """Spot state of a concentrated-liquidity pool."""
    sqrt_price_x96: int
    tick: int
    observation_index: int = 0
    observation_cardinality: int = 1
    observation_cardinality_next: int = 1
    fee_protocol: int = 0
    unlocked: bool = True


class AccountData(NamedTuple):
    """Account summary reported by the credit protocol, in its base currency."""
    collateral_value: Decimal
    debt_value: Decimal
    borrow_capacity: Decimal
    liquidation_threshold: Decimal
    ltv: Decimal
    health_factor: Decimal


@dataclass(frozen=True, slots=True)
class ExactInputSingleParams:
    """Parameters of a single-hop exact-input swap."""
    token_in: Asset
    token_out: Asset
    fee: int
    recipient: Account
    deadline: datetime
    amount_in: Decimal
    amount_out_minimum: Decimal
    sqrt_price_limit_x96: int = 0


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetTransfer(Protocol):
    """Token custody: balances, allowances and authorized moves."""

    def balance_of(self, account: Account, token: Asset) -> Decimal:
        ...

    def approve(self, owner: Account, spender: Account, token: Asset, amount: Decimal) -> None:
        ...

    def transfer(self, source: Account, dest: Account, token: Asset, amount: Decimal) -> None:
        ...

    def transfer_from(
        self, spender: Account, source: Account, dest: Account, token: Asset, amount: Decimal
    ) -> None:
        ...


@runtime_checkable
class ExchangeRouter(Protocol):
    """Swap venue. Enforces amount_out_minimum itself."""
    address: Account

    def exact_input_single(self, params: ExactInputSingleParams) -> Decimal:
        ...


@runtime_checkable
class CreditProtocol(Protocol):
    """Lending pool supporting supply, collateral, borrow, repay and withdraw."""
    address: Account

    def supply(self, asset: Asset, amount: Decimal, on_behalf_of: Account, referral_code: int) -> None:
        ...

    def set_collateral_flag(self, asset: Asset, use_as_collateral: bool) -> None:
        ...

    def borrow(
        self, asset: Asset, amount: Decimal, rate_mode: int, referral_code: int, on_behalf_of: Account
    ) -> None:
        ...

    def repay(self, asset: Asset, amount: Decimal, rate_mode: int, on_behalf_of: Account) -> Decimal:
        ...

    def withdraw(self, asset: Asset, amount: Decimal, to: Account) -> Decimal:
        ...

    def get_account_data(self, account: Account) -> AccountData:
        ...


@runtime_checkable
class PriceFeed(Protocol):
    """Oracle price feed."""

    def latest_round_data(self) -> RoundData:
        ...


@runtime_checkable
class PoolState(Protocol):
    """Exchange pool exposing its square-root price encoding."""

    def slot0(self) -> Slot0:
        ...


# ============================================================================
# NUMERIC HELPERS
# ============================================================================

def to_amount(value: Any, field_name: str = "amount") -> Decimal:
    """
    Normalize an amount to a non-negative integral Decimal.

    Ints and strings are converted through Decimal(str(value)) so that no
    float rounding sneaks in. Floats are refused outright.

    Raises:
        InvalidAmount: If the value is not a finite, non-negative whole number.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"{field_name} must be Decimal, int or str, got {type(value).__name__}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmount(f"{field_name} is not a number: {value!r}") from None
    if not value.is_finite():
        raise InvalidAmount(f"{field_name} must be finite, got {value}")
    if value < 0:
        raise InvalidAmount(f"{field_name} must be non-negative, got {value}")
    if value != value.to_integral_value():
        raise InvalidAmount(f"{field_name} must be a whole number of base units, got {value}")
    return Decimal(int(value))


def to_positive_amount(value: Any, field_name: str = "amount") -> Decimal:
    """Like to_amount, but zero is also InvalidAmount."""
    amount = to_amount(value, field_name)
    if amount == 0:
        raise InvalidAmount(f"{field_name} must be greater than zero")
    return amount


def mul_div_floor(a: Decimal, b: Decimal, denominator: Decimal) -> Decimal:
    """
    Compute floor(a * b / denominator) exactly for whole-number Decimals.

    Integer arithmetic is used so that products wider than the Decimal
    context precision stay exact.

    Raises:
        DivisionByZero: If denominator is zero.
    """
    if denominator == 0:
        raise DivisionByZero(f"cannot divide {a} * {b} by zero")
    return Decimal(int(a) * int(b) // int(denominator))


def wad_to_fraction(value: int) -> Decimal:
    """Convert an 18-decimal fixed-point integer (e.g. 10**16 == 1%) to a Decimal fraction."""
    return Decimal(value) / Decimal(WAD)


def call_collaborator(collaborator: str, fn, *args, **kwargs):
    """
    Invoke an external collaborator, surfacing its rejections as CollaboratorError.

    Only CollaboratorRevert is translated. Vault errors raised by a nested
    call (e.g. ReentrantCall) propagate unchanged.
    """
    try:
        return fn(*args, **kwargs)
    except CollaboratorRevert as e:
        raise CollaboratorError(collaborator, e.reason) from e
