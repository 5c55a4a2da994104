"""
Simulation module - Deterministic stand-ins for the vault's external collaborators.

All simulators settle on a shared TokenLedger, so real token balances can be
audited with TokenLedger.verify_double_entry() after any sequence of calls.
"""

from .exchange import FEE_DENOMINATOR, ExchangeRevert, SimulatedExchange
from .credit import CreditRevert, SimulatedCreditProtocol
from .market import (
    PricingSourceFeed,
    SimulatedPoolState,
    SimulatedPriceFeed,
    price_to_sqrt_price_x96,
    price_to_tick,
)

__all__ = [
    "FEE_DENOMINATOR",
    "ExchangeRevert",
    "SimulatedExchange",
    "CreditRevert",
    "SimulatedCreditProtocol",
    "PricingSourceFeed",
    "SimulatedPoolState",
    "SimulatedPriceFeed",
    "price_to_sqrt_price_x96",
    "price_to_tick",
]
