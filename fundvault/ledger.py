"""
ledger.py - Double-Entry Token Ledger

TokenLedger is the asset-transfer collaborator: it holds the real token
balances of every party (depositors, the vault, the exchange, the credit
protocol) and moves them only with authorization.

Key responsibilities:
    - Implements the AssetTransfer protocol used by the vault
    - Executes moves atomically (all moves succeed or all fail)
    - Tracks allowances for transfer_from
    - Issues and redeems tokens through SYSTEM_WALLET, so that for every
      token the sum of all wallet balances is always zero
    - Always validates and always logs
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Set, Tuple

from .core import (
    CollaboratorRevert, MAX_AMOUNT, SYSTEM_WALLET,
    Account, Asset, to_amount,
)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class TokenLedgerError(CollaboratorRevert):
    """Base exception for all token ledger errors."""
    pass


class InsufficientFunds(TokenLedgerError):
    """Raised when a move would take a wallet balance below zero."""
    pass


class InsufficientAllowance(TokenLedgerError):
    """Raised when transfer_from exceeds the spender's allowance."""
    pass


class SelfTransfer(TokenLedgerError):
    """Raised when a transfer names the same wallet as source and dest."""
    pass


class TokenNotRegistered(TokenLedgerError):
    """Raised when operating on a token that has not been registered."""
    pass


class WalletNotRegistered(TokenLedgerError):
    """Raised when operating on a wallet that has not been registered."""
    pass


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class Token:
    """
    Definition of a token held on the ledger.

    Attributes:
        symbol: Identifier of the token (used as the asset id by the vault).
        name: Human-readable name.
        decimals: Display decimals; balances are always whole base units.
    """
    symbol: str
    name: str
    decimals: int = 18

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        if self.decimals < 0:
            raise ValueError("Token decimals must be non-negative")


@dataclass(frozen=True, slots=True)
class TokenMove:
    """
    A single transfer of whole base units between two wallets.

    This class is immutable and validated in __post_init__.
    """
    quantity: Decimal
    token: str
    source: str
    dest: str
    memo: str = ""

    def __post_init__(self):
        if not self.source or not self.dest:
            raise ValueError("TokenMove source and dest cannot be empty")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"TokenMove quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"TokenMove quantity must be positive, got {self.quantity}")

    def __repr__(self) -> str:
        return f"TokenMove({self.quantity} {self.token}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class TransferRecord:
    """
    Executed, immutable record of a batch of moves.

    Attributes:
        moves: The moves applied, in order.
        exec_id: Unique execution identifier (ledger + sequence).
        sequence_number: Monotonic sequence within the ledger.
        execution_time: Logical time when applied.
        memo: Free-form description (e.g. "transfer_from:vault").
    """
    moves: Tuple[TokenMove, ...]
    exec_id: str
    sequence_number: int
    execution_time: datetime
    memo: str = ""
    tokens: frozenset = field(default=frozenset())

    def __post_init__(self):
        if not self.moves:
            raise ValueError("TransferRecord must have moves")
        if not self.tokens:
            object.__setattr__(self, 'tokens', frozenset(m.token for m in self.moves))


# ============================================================================
# TOKEN LEDGER
# ============================================================================

class TokenLedger:
    """
    Double-entry token ledger with allowances and a full audit trail.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own TokenLedger.

    Example:
        tokens = TokenLedger("chain")
        tokens.register_token(Token("DPST", "Deposit Token"))
        tokens.register_wallet("alice")
        tokens.register_wallet("vault")
        tokens.mint("alice", "DPST", Decimal("1000"))
        tokens.approve("alice", "vault", "DPST", Decimal("1000"))
        tokens.transfer_from("vault", "alice", "vault", "DPST", Decimal("1000"))
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = False,
        test_mode: bool = False,
    ):
        """
        Create a token ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print every applied or rejected batch
            test_mode: Allow set_balance() calls that bypass double entry
        """
        self.name = name
        self.tokens: Dict[str, Token] = {}
        self.registered_wallets: Set[str] = set()
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.allowances: Dict[Tuple[str, str, str], Decimal] = {}
        self.transfer_log: List[TransferRecord] = []
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0

        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def is_registered(self, wallet_id: str) -> bool:
        return wallet_id in self.registered_wallets

    def get_token(self, symbol: str) -> Token:
        if symbol not in self.tokens:
            raise TokenNotRegistered(f"Token {symbol} not registered")
        return self.tokens[symbol]

    def balance_of(self, account: Account, token: Asset) -> Decimal:
        """
        Return the balance of a token in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            TokenNotRegistered: If token is not registered
        """
        self._check_wallet(account)
        self.get_token(token)
        return self.balances[account].get(token, Decimal("0"))

    def allowance(self, owner: Account, spender: Account, token: Asset) -> Decimal:
        return self.allowances.get((owner, spender, token), Decimal("0"))

    def circulating_supply(self, token: Asset) -> Decimal:
        """Total amount issued and not redeemed (the negation of the system balance)."""
        self.get_token(token)
        return -self.balances[SYSTEM_WALLET].get(token, Decimal("0"))

    def total_supply(self, token: Asset) -> Decimal:
        """
        Sum of the token across all wallets, system wallet included.

        Zero for every token unless set_balance() was used in test mode.
        Wallets are sorted before summation for a deterministic order.
        """
        self.get_token(token)
        return sum(
            (self.balances[w].get(token, Decimal("0")) for w in sorted(self.registered_wallets)),
            Decimal("0"),
        )

    def verify_double_entry(self, tolerance: Decimal = Decimal("0")) -> Dict[str, Any]:
        """
        Verify the conservation law for every registered token.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every token sums to zero
            - 'supplies': Dict[str, Decimal] - total_supply() per token
            - 'discrepancies': List[Dict] - tokens that do not sum to zero
        """
        supplies = {}
        discrepancies = []
        for symbol in sorted(self.tokens):
            supplies[symbol] = self.total_supply(symbol)
            if abs(supplies[symbol]) > tolerance:
                discrepancies.append({'token': symbol, 'actual': supplies[symbol]})
        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

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
    # REGISTRATION
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet.

        Raises:
            ValueError: If wallet is already registered
        """
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def ensure_wallet(self, wallet_id: str) -> str:
        """Register a wallet if it is not registered yet."""
        if wallet_id not in self.registered_wallets:
            self.register_wallet(wallet_id)
        return wallet_id

    def register_token(self, token: Token) -> None:
        """
        Register a new token.

        Raises:
            ValueError: If the symbol is already registered
        """
        if token.symbol in self.tokens:
            raise ValueError(f"Token {token.symbol} already registered")
        self.tokens[token.symbol] = token
        if self.verbose:
            print(f"📝 Registered: {token.symbol} ({token.name}) [decimals={token.decimals}]")

    def set_balance(self, wallet_id: str, token: Asset, quantity: Decimal) -> None:
        """
        Overwrite a wallet balance directly.

        WARNING: bypasses double entry. Only available in test mode.

        Raises:
            TokenLedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise TokenLedgerError(
                "set_balance() is disabled in production mode. "
                "Use mint() or transfer() to modify balances."
            )
        self._check_wallet(wallet_id)
        self.get_token(token)
        self.balances[wallet_id][token] = to_amount(quantity, "quantity")

    # ========================================================================
    # AUTHORIZATION
    # ========================================================================

    def approve(self, owner: Account, spender: Account, token: Asset, amount: Decimal) -> None:
        """Set the amount spender may move out of owner's wallet (overwrites)."""
        self._check_wallet(owner)
        self._check_wallet(spender)
        self.get_token(token)
        self.allowances[(owner, spender, token)] = to_amount(amount)

    # ========================================================================
    # TRANSFERS (Mutating)
    # ========================================================================

    def transfer(self, source: Account, dest: Account, token: Asset, amount: Decimal) -> None:
        """Move tokens from source to dest on source's own authority."""
        quantity = to_amount(amount)
        if quantity == 0:
            return
        self._check_distinct(source, dest)
        self.execute([TokenMove(quantity, token, source, dest)], memo=f"transfer:{source}")

    def transfer_from(
        self, spender: Account, source: Account, dest: Account, token: Asset, amount: Decimal
    ) -> None:
        """
        Move tokens out of source on spender's allowance.

        The allowance is consumed only if the move is applied. An allowance of
        MAX_AMOUNT is never consumed.

        Raises:
            InsufficientAllowance: If the allowance does not cover amount
            InsufficientFunds: If source cannot cover amount
            SelfTransfer: If source and dest are the same wallet
        """
        quantity = to_amount(amount)
        if quantity == 0:
            return
        self._check_distinct(source, dest)
        allowed = self.allowance(source, spender, token)
        if allowed < quantity:
            self._reject(f"allowance {source}->{spender} {token}: {allowed} < {quantity}")
            raise InsufficientAllowance(
                f"{spender} may move {allowed} {token} from {source}, requested {quantity}"
            )
        self.execute([TokenMove(quantity, token, source, dest)], memo=f"transfer_from:{spender}")
        if allowed != MAX_AMOUNT:
            self.allowances[(source, spender, token)] = allowed - quantity

    def mint(self, to: Account, token: Asset, amount: Decimal) -> None:
        """Issue new tokens to a wallet (SYSTEM_WALLET -> to)."""
        quantity = to_amount(amount)
        if quantity == 0:
            return
        self.execute([TokenMove(quantity, token, SYSTEM_WALLET, to)], memo="mint")

    def burn(self, source: Account, token: Asset, amount: Decimal) -> None:
        """Redeem tokens from a wallet (source -> SYSTEM_WALLET)."""
        quantity = to_amount(amount)
        if quantity == 0:
            return
        self.execute([TokenMove(quantity, token, source, SYSTEM_WALLET)], memo="burn")

    def execute(self, moves: List[TokenMove], memo: str = "") -> TransferRecord:
        """
        Apply a batch of moves atomically.

        All moves are validated against registration and the non-negative
        balance constraint before any of them is applied.

        Raises:
            TokenNotRegistered, WalletNotRegistered: On unknown identifiers
            InsufficientFunds: If any non-system wallet would go negative
        """
        if not moves:
            raise ValueError("execute() requires at least one move")

        for move in moves:
            self.get_token(move.token)
            self._check_wallet(move.source)
            self._check_wallet(move.dest)

        # Net balance changes, so a batch may route through a wallet
        net: Dict[Tuple[str, str], Decimal] = {}
        for move in moves:
            key_src = (move.source, move.token)
            key_dst = (move.dest, move.token)
            net[key_src] = net.get(key_src, Decimal("0")) - move.quantity
            net[key_dst] = net.get(key_dst, Decimal("0")) + move.quantity

        # SYSTEM_WALLET is exempt from the balance constraint
        for (wallet, token), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet][token] + delta
            if proposed < 0:
                current = self.balances[wallet][token]
                self._reject(f"{wallet} {token}: {current} + {delta} < 0")
                raise InsufficientFunds(
                    f"{wallet} holds {current} {token}, needs {-delta}"
                )

        sequence = self._next_sequence
        self._next_sequence += 1
        record = TransferRecord(
            moves=tuple(moves),
            exec_id=f"exec:{self.name}:{sequence:012d}",
            sequence_number=sequence,
            execution_time=self._current_time,
            memo=memo,
        )
        for move in moves:
            self.balances[move.source][move.token] -= move.quantity
            self.balances[move.dest][move.token] += move.quantity

        self.transfer_log.append(record)
        if self.verbose:
            for move in moves:
                print(f"✓ {record.exec_id} {move!r} [{memo}]")
        return record

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _check_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")

    def _check_distinct(self, source: Account, dest: Account) -> None:
        if source == dest:
            self._reject(f"self-transfer {source}")
            raise SelfTransfer(f"{source} cannot transfer to itself")

    def _reject(self, reason: str) -> None:
        if self.verbose:
            print(f"✗ REJECTED: {reason}")
