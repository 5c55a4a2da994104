"""
exchange.py - Deterministic swap venue

SimulatedExchange quotes fixed rates per (token_in, token_out) pair, takes
the pool fee tier (hundredths of a bip, 3000 == 0.3%) out of the output, and
settles on the TokenLedger from its own inventory.

Settlement is with the swap's recipient: the vault both pays token_in and
receives token_out, exactly as when it calls a router directly.
"""

from __future__ import annotations
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Tuple

from ..core import CollaboratorRevert, ExactInputSingleParams
from ..ledger import TokenLedger

# Fee tiers are expressed in hundredths of a basis point.
FEE_DENOMINATOR = 1_000_000


class ExchangeRevert(CollaboratorRevert):
    """Raised when the simulated exchange refuses a swap."""
    pass


class SimulatedExchange:
    """
    Fixed-rate exchange router.

    Example:
        exchange = SimulatedExchange(tokens)
        exchange.set_rate("DPST", "TKNB", Decimal("0.04"))
        exchange.add_liquidity("owner", "TKNB", Decimal("40"))
    """

    def __init__(self, tokens: TokenLedger, address: str = "exchange"):
        self.tokens = tokens
        self.address = tokens.ensure_wallet(address)
        self.rates: Dict[Tuple[str, str], Decimal] = {}
        self.calls: List[ExactInputSingleParams] = []

    def set_rate(self, token_in: str, token_out: str, rate: Decimal) -> None:
        """Units of token_out paid per unit of token_in, before fees."""
        rate = rate if isinstance(rate, Decimal) else Decimal(str(rate))
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rates[(token_in, token_out)] = rate

    def add_liquidity(self, provider: str, token: str, amount: Decimal) -> None:
        """Move inventory from provider into the exchange (provider must approve first)."""
        self.tokens.transfer_from(self.address, provider, self.address, token, amount)

    def inventory(self, token: str) -> Decimal:
        return self.tokens.balance_of(self.address, token)

    def quote(self, token_in: str, token_out: str, amount_in: Decimal, fee: int) -> Decimal:
        """
        Output for amount_in, rounded down to whole units.

        Raises:
            ExchangeRevert: If the pair has no rate or the fee tier is invalid.
        """
        rate = self.rates.get((token_in, token_out))
        if rate is None:
            raise ExchangeRevert(f"no pool for {token_in}/{token_out}")
        if not 0 <= fee < FEE_DENOMINATOR:
            raise ExchangeRevert(f"invalid fee tier {fee}")
        gross = amount_in * rate * (FEE_DENOMINATOR - fee) / FEE_DENOMINATOR
        return gross.to_integral_value(rounding=ROUND_DOWN)

    def exact_input_single(self, params: ExactInputSingleParams) -> Decimal:
        """
        Swap exactly params.amount_in of token_in.

        Raises:
            ExchangeRevert: "Too little received" below amount_out_minimum,
                or not enough inventory to pay out.
            InsufficientAllowance, InsufficientFunds: If the recipient cannot pay.
        """
        self.calls.append(params)
        if params.deadline < self.tokens.current_time:
            raise ExchangeRevert("Transaction too old")
        amount_out = self.quote(params.token_in, params.token_out, params.amount_in, params.fee)
        if amount_out < params.amount_out_minimum:
            raise ExchangeRevert(f"Too little received: {amount_out} < {params.amount_out_minimum}")
        if self.inventory(params.token_out) < amount_out:
            raise ExchangeRevert(f"insufficient {params.token_out} liquidity for {amount_out}")

        self.tokens.transfer_from(
            self.address, params.recipient, self.address, params.token_in, params.amount_in,
        )
        self.tokens.transfer(self.address, params.recipient, params.token_out, amount_out)
        return amount_out

    def __repr__(self):
        return f"SimulatedExchange({self.address}, {len(self.rates)} pairs)"
