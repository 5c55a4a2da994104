#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Vault Step by Step

A walkthrough of the pooled-fund vault. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:   Foundation      - Token ledger, collaborators, the vault and its roles
  4-5:   Depositors      - Shares, proportional pricing, withdrawals
  6-7:   Swaps           - The oracle price guard and its rejections
  8-9:   Credit          - Supply, collateral, borrow, repay, withdraw
  10:    Guarantees      - Rollback, audit trail, conservation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import sys

from fundvault import (
    Role, StaticPricingSource, Token, TokenLedger, Vault, VaultConfig,
    VaultError, wad_to_fraction,
)
from fundvault.simulation import (
    SimulatedCreditProtocol, SimulatedExchange, SimulatedPoolState, SimulatedPriceFeed,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    alice_deposit: Decimal = Decimal("1000")
    bob_deposit: Decimal = Decimal("500")

    # Swap DPST -> TKNB
    swap_amount: Decimal = Decimal("500")
    swap_minimum: Decimal = Decimal("20")
    swap_rate: Decimal = Decimal("0.04")
    oracle_price: Decimal = Decimal("4")
    slippage_wad: int = 10 ** 16          # 1%

    # Credit protocol
    supply_amount: Decimal = Decimal("500")
    borrow_amount: Decimal = Decimal("300")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_books(vault: Vault, tokens: TokenLedger):
    for asset in ("DPST", "TKNB"):
        print(f"  {asset}: available={vault.available_tokens(asset):>6}   "
              f"custody={tokens.balance_of(vault.address, asset):>6}")
    print(f"  shares: total_supply={vault.total_supply}")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_token_ledger():
    step_header(1, "The Token Ledger",
        "Tokens live on a double-entry ledger; the vault only holds a wallet there.")

    print("""
    The TokenLedger plays the role of the token contracts:
    - balances per wallet, never negative (except the system wallet)
    - allowances: a spender may move tokens only after approve()
    - every move is logged, and every token sums to zero across wallets
    """)
    wait_for_enter()

    tokens = TokenLedger("chain", CONFIG.start_time, verbose=True)
    tokens.register_token(Token("DPST", "Deposit Token"))
    tokens.register_token(Token("TKNB", "Token B"))
    for wallet in ("owner", "manager", "alice", "bob", "vault"):
        tokens.register_wallet(wallet)

    section_header("Issuing tokens to depositors")
    tokens.mint("alice", "DPST", CONFIG.alice_deposit)
    tokens.mint("bob", "DPST", CONFIG.bob_deposit)
    print(f"\nDPST circulating: {tokens.circulating_supply('DPST')}")
    return tokens


def step_02_collaborators(tokens: TokenLedger):
    step_header(2, "External Collaborators",
        "The vault talks to an exchange, a credit protocol, a price feed and a pool.")

    print("""
    Each collaborator is a Protocol. The simulation package provides
    deterministic stand-ins that settle on the same TokenLedger.
    """)
    wait_for_enter()

    prices = StaticPricingSource({"DPST": Decimal("1"), "TKNB": Decimal("25")})
    exchange = SimulatedExchange(tokens)
    exchange.set_rate("DPST", "TKNB", CONFIG.swap_rate)
    credit = SimulatedCreditProtocol(tokens, prices)

    tokens.mint("owner", "TKNB", Decimal("40"))
    tokens.approve("owner", exchange.address, "TKNB", Decimal("40"))
    exchange.add_liquidity("owner", "TKNB", Decimal("40"))

    print(f"\n{exchange}")
    print(f"{credit}")
    return prices, exchange, credit


def step_03_vault(tokens, prices, exchange, credit):
    step_header(3, "The Vault and its Roles",
        "Roles gate privileged operations; the admin grants FUND_MANAGER.")
    wait_for_enter()

    vault = Vault(
        "DPST", tokens, exchange, credit, admin="owner", asset_prices=prices,
        config=VaultConfig(address="vault"), initial_time=CONFIG.start_time, verbose=True,
    )
    vault.grant_role("owner", Role.FUND_MANAGER, "manager")

    section_header("Only ADMIN can grant")
    try:
        vault.grant_role("alice", Role.FUND_MANAGER, "alice")
    except VaultError as e:
        print(f"  -> {e.kind}")
    return vault


# ============================================================================
# PHASE 2: DEPOSITORS
# ============================================================================

def step_04_deposits(vault: Vault, tokens: TokenLedger):
    step_header(4, "Deposits and Shares",
        "The first deposit mints 1:1; later deposits are priced against the pool.")

    print("""
        shares = amount                                   (empty pool)
        shares = floor(amount * total_supply / available) (otherwise)
    """)
    wait_for_enter()

    tokens.approve("alice", vault.address, "DPST", CONFIG.alice_deposit)
    print(f"alice receives {vault.deposit('alice', CONFIG.alice_deposit)} shares")
    tokens.approve("bob", vault.address, "DPST", CONFIG.bob_deposit)
    print(f"bob receives {vault.deposit('bob', CONFIG.bob_deposit)} shares")

    section_header("Books")
    show_books(vault, tokens)


def step_05_withdraw(vault: Vault, tokens: TokenLedger):
    step_header(5, "Withdrawals",
        "Burning shares pays out their value in the deposit asset.")
    wait_for_enter()

    paid = vault.withdraw("bob", vault.balance_of("bob"))
    print(f"bob redeems everything and receives {paid} DPST")
    print(f"bob's DPST on the ledger: {tokens.balance_of('bob', 'DPST')}")

    section_header("Books")
    show_books(vault, tokens)


# ============================================================================
# PHASE 3: SWAPS
# ============================================================================

def step_06_price_guard(vault: Vault):
    step_header(6, "The Oracle Price Guard",
        "A swap runs only if the pool price is within slippage of the oracle.")

    print("""
        oracle * (1 - slippage) <= pool <= oracle * (1 + slippage)

    The pool price comes from its sqrtPriceX96 encoding. Slippage is given
    as an 18-decimal fixed-point value and converted with wad_to_fraction.
    """)
    wait_for_enter()

    drifted_pool = SimulatedPoolState.from_price(Decimal("9"))
    feed = SimulatedPriceFeed(CONFIG.oracle_price)
    try:
        vault.swap_tokens(
            "manager", "DPST", "TKNB", CONFIG.swap_amount, CONFIG.swap_minimum, 0,
            wad_to_fraction(CONFIG.slippage_wad), feed, drifted_pool,
        )
    except VaultError as e:
        print(f"  -> {e.kind}: {e}")


def step_07_swap(vault: Vault, tokens: TokenLedger):
    step_header(7, "Executing a Swap",
        "With prices in agreement, the exchange pays out and the books follow.")
    wait_for_enter()

    pool = SimulatedPoolState.from_price(CONFIG.oracle_price)
    feed = SimulatedPriceFeed(CONFIG.oracle_price)
    received = vault.swap_tokens(
        "manager", "DPST", "TKNB", CONFIG.swap_amount, CONFIG.swap_minimum, 0,
        wad_to_fraction(CONFIG.slippage_wad), feed, pool,
    )
    print(f"received {received} TKNB")

    section_header("Books")
    show_books(vault, tokens)


# ============================================================================
# PHASE 4: CREDIT
# ============================================================================

def step_08_borrow(vault: Vault, tokens: TokenLedger, credit: SimulatedCreditProtocol):
    step_header(8, "Supply, Collateral, Borrow",
        "Funds supplied to the credit protocol can back a loan once flagged as collateral.")
    wait_for_enter()

    tokens.mint("alice", "DPST", CONFIG.supply_amount)
    tokens.approve("alice", vault.address, "DPST", CONFIG.supply_amount)
    vault.deposit("alice", CONFIG.supply_amount)

    vault.supply_to_credit("manager", "DPST", CONFIG.supply_amount)
    print(f"phase: {vault.lending_phase('DPST').value}")

    section_header("Borrowing before enabling collateral")
    try:
        vault.borrow_from_credit("manager", "DPST", CONFIG.borrow_amount)
    except VaultError as e:
        print(f"  -> {e.kind}: {e}")

    vault.enable_collateral("manager", "DPST")
    vault.borrow_from_credit("manager", "DPST", CONFIG.borrow_amount)
    print(f"phase: {vault.lending_phase('DPST').value}")
    print(f"protocol account data: {credit.get_account_data(vault.address)}")


def step_09_repay(vault: Vault, tokens: TokenLedger):
    step_header(9, "Repay and Withdraw",
        "Repaying clears the debt; withdrawing returns the supply to the pool.")
    wait_for_enter()

    repaid = vault.repay_credit_loan("manager", "DPST", CONFIG.borrow_amount)
    received = vault.withdraw_credit_supply("manager", "DPST", CONFIG.supply_amount)
    print(f"repaid {repaid}, received {received}, phase: {vault.lending_phase('DPST').value}")

    section_header("Books")
    show_books(vault, tokens)


# ============================================================================
# PHASE 5: GUARANTEES
# ============================================================================

def step_10_guarantees(vault: Vault, tokens: TokenLedger):
    step_header(10, "Rollback, Audit Trail, Conservation",
        "Failed operations leave no trace; every token is accounted for.")
    wait_for_enter()

    before = vault.state.snapshot()
    try:
        vault.supply_to_credit("manager", "DPST", Decimal("10") ** 9)
    except VaultError as e:
        print(f"  -> {e.kind}")
    print(f"state unchanged after failure: {vault.state.snapshot() == before}")

    section_header("Audit trail")
    for event in vault.events:
        print(f"  {event.timestamp:%Y-%m-%d %H:%M}  {event.name}")

    section_header("Conservation")
    result = tokens.verify_double_entry()
    print(f"  valid: {result['valid']}   supplies: {result['supplies']}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       FUNDVAULT - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    tokens = step_01_token_ledger()
    prices, exchange, credit = step_02_collaborators(tokens)
    vault = step_03_vault(tokens, prices, exchange, credit)

    step_04_deposits(vault, tokens)
    step_05_withdraw(vault, tokens)

    step_06_price_guard(vault)
    step_07_swap(vault, tokens)

    step_08_borrow(vault, tokens, credit)
    step_09_repay(vault, tokens)

    step_10_guarantees(vault, tokens)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See fundvault/vault.py for the operation scope and entry points
      - See fundvault/simulation/ for the simulated collaborators
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
