"""
conftest.py - Shared pytest fixtures for vault tests

Provides common fixtures used across unit, functional and conformance tests:
- Token ledgers (empty, with tokens and wallets registered)
- Simulated collaborators (exchange, credit protocol, price feed, pool)
- Vaults (fresh, with a fund manager, funded by depositors)
"""

import pytest
from datetime import datetime
from decimal import Decimal

from fundvault import (
    Role, StaticPricingSource, Token, TokenLedger, Vault, VaultConfig,
)
from fundvault.simulation import (
    SimulatedCreditProtocol, SimulatedExchange, SimulatedPoolState, SimulatedPriceFeed,
)


START = datetime(2025, 1, 1)

ADMIN = "owner"
MANAGER = "manager"
ALICE = "alice"
BOB = "bob"
VAULT = "vault"

TOKENS = ("DPST", "TKNA", "TKNB")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def fund(tokens: TokenLedger, wallet: str, token: str, amount) -> None:
    """Issue amount of token to wallet through the system wallet."""
    tokens.ensure_wallet(wallet)
    tokens.mint(wallet, token, Decimal(amount))


def deposit_as(vault: Vault, tokens: TokenLedger, account: str, amount) -> Decimal:
    """Fund account, approve the vault and deposit amount."""
    amount = Decimal(amount)
    fund(tokens, account, vault.deposit_asset, amount)
    tokens.approve(account, vault.address, vault.deposit_asset, amount)
    return vault.deposit(account, amount)


def build_world(**vault_kwargs):
    """
    Fresh token ledger, simulators and managed vault, for tests that cannot
    use function-scoped fixtures (hypothesis).

    Returns:
        (vault, tokens, exchange, credit)
    """
    ledger = TokenLedger("chain", START, verbose=False, test_mode=True)
    for symbol in TOKENS:
        ledger.register_token(Token(symbol, symbol))
    for wallet in (ADMIN, MANAGER, ALICE, BOB, VAULT):
        ledger.register_wallet(wallet)
    prices = StaticPricingSource({symbol: Decimal("1") for symbol in TOKENS})
    ex = SimulatedExchange(ledger)
    ex.set_rate("DPST", "TKNA", Decimal("1"))
    cr = SimulatedCreditProtocol(ledger, prices)
    v = Vault(
        "DPST", ledger, ex, cr, admin=ADMIN, asset_prices=prices,
        config=VaultConfig(address=VAULT), initial_time=START, **vault_kwargs,
    )
    v.grant_role(ADMIN, Role.FUND_MANAGER, MANAGER)
    return v, ledger, ex, cr


def provide_liquidity(tokens: TokenLedger, target, token: str, amount) -> None:
    """Seed a simulated exchange or credit reserve from the admin wallet."""
    amount = Decimal(amount)
    fund(tokens, ADMIN, token, amount)
    tokens.approve(ADMIN, target.address, token, amount)
    if isinstance(target, SimulatedCreditProtocol):
        target.add_tokens(ADMIN, token, amount)
    else:
        target.add_liquidity(ADMIN, token, amount)


# =============================================================================
# TOKEN LEDGER FIXTURES
# =============================================================================

@pytest.fixture
def empty_tokens():
    """Fresh token ledger with no registrations."""
    return TokenLedger("test", START, verbose=False, test_mode=True)


@pytest.fixture
def tokens():
    """Token ledger with DPST, TKNA, TKNB and the standard wallets."""
    ledger = TokenLedger("chain", START, verbose=False, test_mode=True)
    ledger.register_token(Token("DPST", "Deposit Token"))
    ledger.register_token(Token("TKNA", "Token A"))
    ledger.register_token(Token("TKNB", "Token B"))
    for wallet in (ADMIN, MANAGER, ALICE, BOB, VAULT):
        ledger.register_wallet(wallet)
    return ledger


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def prices():
    return StaticPricingSource({"DPST": Decimal("1"), "TKNA": Decimal("1"), "TKNB": Decimal("25")})


@pytest.fixture
def exchange(tokens):
    ex = SimulatedExchange(tokens)
    ex.set_rate("DPST", "TKNB", Decimal("0.04"))
    ex.set_rate("TKNB", "DPST", Decimal("25"))
    ex.set_rate("DPST", "TKNA", Decimal("1"))
    return ex


@pytest.fixture
def credit(tokens, prices):
    return SimulatedCreditProtocol(tokens, prices)


@pytest.fixture
def price_feed():
    """Oracle answering 4 (a price the truncated sqrt encoding reproduces exactly)."""
    return SimulatedPriceFeed(Decimal("4"), START)


@pytest.fixture
def pool():
    return SimulatedPoolState.from_price(Decimal("4"))


# =============================================================================
# VAULT FIXTURES
# =============================================================================

@pytest.fixture
def vault(tokens, exchange, credit, prices):
    """Vault over DPST with no fund manager yet."""
    return Vault(
        "DPST", tokens, exchange, credit,
        admin=ADMIN, asset_prices=prices,
        config=VaultConfig(address=VAULT), initial_time=START,
    )


@pytest.fixture
def managed_vault(vault):
    """Vault with MANAGER holding FUND_MANAGER."""
    vault.grant_role(ADMIN, Role.FUND_MANAGER, MANAGER)
    return vault


@pytest.fixture
def funded_vault(managed_vault, tokens):
    """Managed vault holding 1000 DPST deposited by alice."""
    deposit_as(managed_vault, tokens, ALICE, 1000)
    return managed_vault
