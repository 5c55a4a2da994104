"""
access.py - Role grants and authorization checks

AccessControl only stores grants and answers questions about them. Who may
grant what is decided by the vault (ADMIN gates grant_role / revoke_role).
"""

from __future__ import annotations
from typing import FrozenSet, Set, Tuple

from .core import Account, Role, Unauthorized


class AccessControl:
    """Set of (account, role) grants."""

    def __init__(self) -> None:
        self._grants: Set[Tuple[Account, Role]] = set()

    def has_role(self, account: Account, role: Role) -> bool:
        return (account, Role(role)) in self._grants

    def grant(self, account: Account, role: Role) -> bool:
        """Grant role to account. Returns True if the grant set changed."""
        key = (account, Role(role))
        if key in self._grants:
            return False
        self._grants.add(key)
        return True

    def revoke(self, account: Account, role: Role) -> bool:
        """Revoke role from account. Returns True if the grant set changed."""
        key = (account, Role(role))
        if key not in self._grants:
            return False
        self._grants.remove(key)
        return True

    def require(self, account: Account, role: Role) -> None:
        """
        Check that account holds role. No side effects.

        Raises:
            Unauthorized: If the account lacks the role.
        """
        if not self.has_role(account, role):
            raise Unauthorized(f"account {account} is missing role {Role(role).value}")

    def members(self, role: Role) -> FrozenSet[Account]:
        role = Role(role)
        return frozenset(account for account, r in self._grants if r == role)

    def snapshot(self) -> FrozenSet[Tuple[Account, Role]]:
        return frozenset(self._grants)

    def restore(self, snapshot: FrozenSet[Tuple[Account, Role]]) -> None:
        self._grants = set(snapshot)

    def __repr__(self) -> str:
        return f"AccessControl({len(self._grants)} grants)"
