"""
fundvault - Pooled-Fund Vault

Depositors contribute one accepted asset and receive shares; fund managers
route the pool through an exchange and a credit protocol under an oracle
price guard.

Usage:
    from decimal import Decimal
    from fundvault import Vault, Role, TokenLedger, Token, StaticPricingSource
    from fundvault.simulation import SimulatedExchange, SimulatedCreditProtocol

    tokens = TokenLedger("chain")
    tokens.register_token(Token("DPST", "Deposit Token"))
    for wallet in ("owner", "manager", "alice", "vault"):
        tokens.register_wallet(wallet)
    tokens.mint("alice", "DPST", Decimal("1000"))

    prices = StaticPricingSource({"DPST": Decimal("1")})
    vault = Vault(
        "DPST", tokens,
        SimulatedExchange(tokens),
        SimulatedCreditProtocol(tokens, prices),
        admin="owner", asset_prices=prices,
    )
    vault.grant_role("owner", Role.FUND_MANAGER, "manager")

    # Depositors approve the vault, then deposit
    tokens.approve("alice", vault.address, "DPST", Decimal("1000"))
    shares = vault.deposit("alice", Decimal("1000"))      # 1000 shares

    # Fund manager puts the pool to work
    vault.supply_to_credit("manager", "DPST", Decimal("1000"))
"""

# Core types
from .core import (
    SYSTEM_WALLET,
    MAX_AMOUNT,
    WAD,
    Q96,
    Role,
    InterestRateMode,
    VaultError,
    InvalidAmount,
    Unauthorized,
    InsufficientLedgerBalance,
    InsufficientShares,
    DivisionByZero,
    PriceDeviation,
    InvalidPriceData,
    InsufficientBorrowingPower,
    ReentrantCall,
    CollaboratorError,
    CollaboratorRevert,
    VaultConfig,
    VaultEvent,
    Deposited,
    Withdrawn,
    SharesTransferred,
    TokenSwapped,
    Supplied,
    CollateralEnabled,
    Borrowed,
    Repaid,
    SupplyWithdrawn,
    RoleGranted,
    RoleRevoked,
    RoundData,
    Slot0,
    AccountData,
    ExactInputSingleParams,
    AssetTransfer,
    ExchangeRouter,
    CreditProtocol,
    PriceFeed,
    PoolState,
    to_amount,
    mul_div_floor,
    wad_to_fraction,
)

# Token custody
from .ledger import (
    TokenLedger,
    Token,
    TokenMove,
    TransferRecord,
    TokenLedgerError,
    InsufficientFunds,
    InsufficientAllowance,
    SelfTransfer,
    TokenNotRegistered,
    WalletNotRegistered,
)

# Components
from .registry import AssetRegistry
from .access import AccessControl
from .shares import ShareLedger, compute_shares_for_deposit, compute_tokens_for_shares
from .oracle import (
    PriceOracleAdapter,
    PoolPriceAdapter,
    sqrt_price_to_price,
    slippage_band,
    check_price_deviation,
)
from .swap import SwapExecutor
from .lending import LendingManager, LendingPhase, LendingPosition
from .state import VaultState
from .vault import Vault

# Pricing
from .pricing_source import (
    PricingSource,
    StaticPricingSource,
    TimeSeriesPricingSource,
    Observation,
)

__all__ = [
    # Core
    'SYSTEM_WALLET', 'MAX_AMOUNT', 'WAD', 'Q96', 'Role', 'InterestRateMode',
    'VaultError', 'InvalidAmount', 'Unauthorized', 'InsufficientLedgerBalance',
    'InsufficientShares', 'DivisionByZero', 'PriceDeviation', 'InvalidPriceData',
    'InsufficientBorrowingPower', 'ReentrantCall', 'CollaboratorError', 'CollaboratorRevert',
    'VaultConfig',
    # Events
    'VaultEvent', 'Deposited', 'Withdrawn', 'SharesTransferred', 'TokenSwapped',
    'Supplied', 'CollateralEnabled', 'Borrowed', 'Repaid', 'SupplyWithdrawn',
    'RoleGranted', 'RoleRevoked',
    # Collaborators
    'RoundData', 'Slot0', 'AccountData', 'ExactInputSingleParams',
    'AssetTransfer', 'ExchangeRouter', 'CreditProtocol', 'PriceFeed', 'PoolState',
    # Helpers
    'to_amount', 'mul_div_floor', 'wad_to_fraction',
    # Token custody
    'TokenLedger', 'Token', 'TokenMove', 'TransferRecord', 'TokenLedgerError',
    'InsufficientFunds', 'InsufficientAllowance', 'SelfTransfer', 'TokenNotRegistered', 'WalletNotRegistered',
    # Components
    'AssetRegistry', 'AccessControl', 'ShareLedger',
    'compute_shares_for_deposit', 'compute_tokens_for_shares',
    'PriceOracleAdapter', 'PoolPriceAdapter', 'sqrt_price_to_price', 'slippage_band',
    'check_price_deviation',
    'SwapExecutor', 'LendingManager', 'LendingPhase', 'LendingPosition',
    'VaultState', 'Vault',
    # Pricing
    'PricingSource', 'StaticPricingSource', 'TimeSeriesPricingSource', 'Observation',
]
