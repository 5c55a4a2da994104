"""
swap.py - Guarded trade execution

SwapExecutor routes the vault's funds through an exchange, but only when the
pool's spot price agrees with an oracle price to within a slippage band.

Order of checks (any failure aborts with no ledger change):
    1. caller holds FUND_MANAGER
    2. available balance of token_in covers amount_in
    3. oracle price is positive
    4. pool price is derived from the pool's sqrtPriceX96
    5. pool price lies inside the inclusive slippage band
    6. exchange executes the swap (it enforces amount_out_minimum)
    7. ledger commit: token_in decreased, token_out increased
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from .core import (
    AssetTransfer, CollaboratorError, ExchangeRouter, ExactInputSingleParams,
    InvalidAmount, PoolState, PriceFeed, Role, TokenSwapped,
    call_collaborator, to_amount, to_positive_amount,
)
from .oracle import PoolPriceAdapter, PriceOracleAdapter, check_price_deviation

if TYPE_CHECKING:
    from .state import VaultState


def to_slippage(value) -> Decimal:
    """Normalize a slippage fraction; floats are refused like amounts."""
    if isinstance(value, (bool, float)):
        raise InvalidAmount(f"slippage must be Decimal, int or str, got {type(value).__name__}")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise InvalidAmount(f"slippage is not a number: {value!r}") from None


class SwapExecutor:
    """Executes oracle-guarded swaps on behalf of a vault."""

    def __init__(
        self,
        exchange: ExchangeRouter,
        tokens: AssetTransfer,
        oracle_adapter: PriceOracleAdapter,
        pool_adapter: PoolPriceAdapter,
    ):
        self.exchange = exchange
        self.tokens = tokens
        self.oracle_adapter = oracle_adapter
        self.pool_adapter = pool_adapter

    def swap(
        self,
        state: VaultState,
        caller: str,
        token_in: str,
        token_out: str,
        amount_in,
        amount_out_minimum,
        fee: int,
        slippage,
        price_feed: PriceFeed,
        pool: PoolState,
        deadline: datetime,
        timestamp: datetime,
    ) -> TokenSwapped:
        """
        Swap amount_in of token_in for token_out.

        Returns:
            The TokenSwapped event to record.

        Raises:
            Unauthorized, InvalidAmount, InsufficientLedgerBalance,
            InvalidPriceData, PriceDeviation, CollaboratorError
        """
        state.access.require(caller, Role.FUND_MANAGER)

        amount_in = to_positive_amount(amount_in, "amount_in")
        amount_out_minimum = to_amount(amount_out_minimum, "amount_out_minimum")
        slippage = to_slippage(slippage)
        if isinstance(fee, bool) or not isinstance(fee, int) or fee < 0:
            raise InvalidAmount(f"fee must be a non-negative integer, got {fee!r}")
        if token_in == token_out:
            raise InvalidAmount("token_in and token_out must differ")

        state.registry.require(token_in, amount_in)

        oracle_price = self.oracle_adapter.read(price_feed)
        pool_price = self.pool_adapter.read(pool)
        check_price_deviation(oracle_price, pool_price, slippage)

        call_collaborator(
            "asset_transfer", self.tokens.approve,
            state.address, self.exchange.address, token_in, amount_in,
        )
        params = ExactInputSingleParams(
            token_in=token_in,
            token_out=token_out,
            fee=fee,
            recipient=state.address,
            deadline=deadline,
            amount_in=amount_in,
            amount_out_minimum=amount_out_minimum,
            sqrt_price_limit_x96=0,
        )
        amount_out = call_collaborator("exchange", self.exchange.exact_input_single, params)
        try:
            amount_out = to_amount(amount_out, "amount_out")
        except InvalidAmount as e:
            raise CollaboratorError("exchange", str(e)) from e

        state.registry.decrease(token_in, amount_in)
        state.registry.increase(token_out, amount_out)
        return TokenSwapped(timestamp, token_in, token_out, amount_in, amount_out)
