"""
test_access.py - Unit tests for AccessControl and the vault's role entry points
"""

import pytest

from fundvault import AccessControl, Role, RoleGranted, RoleRevoked, Unauthorized

from conftest import ADMIN, ALICE, MANAGER


class TestAccessControl:

    def test_grant_and_require(self):
        access = AccessControl()
        assert access.grant("bob", Role.FUND_MANAGER) is True
        access.require("bob", Role.FUND_MANAGER)
        assert access.has_role("bob", "FUND_MANAGER_ROLE")

    def test_grant_twice_is_unchanged(self):
        access = AccessControl()
        access.grant("bob", Role.ADMIN)
        assert access.grant("bob", Role.ADMIN) is False

    def test_require_missing_role(self):
        with pytest.raises(Unauthorized):
            AccessControl().require("bob", Role.FUND_MANAGER)

    def test_revoke(self):
        access = AccessControl()
        access.grant("bob", Role.FUND_MANAGER)
        assert access.revoke("bob", Role.FUND_MANAGER) is True
        assert access.revoke("bob", Role.FUND_MANAGER) is False
        assert not access.has_role("bob", Role.FUND_MANAGER)

    def test_members(self):
        access = AccessControl()
        access.grant("a", Role.FUND_MANAGER)
        access.grant("b", Role.FUND_MANAGER)
        access.grant("a", Role.ADMIN)
        assert access.members(Role.FUND_MANAGER) == frozenset({"a", "b"})


class TestVaultRoles:

    def test_admin_bootstrapped(self, vault):
        assert vault.has_role(ADMIN, Role.ADMIN)
        assert vault.has_role(ADMIN, Role.UPGRADER)
        assert not vault.has_role(ADMIN, Role.FUND_MANAGER)
        assert [e.role for e in vault.events_of(RoleGranted)] == [Role.ADMIN, Role.UPGRADER]

    def test_grant_role_requires_admin(self, vault):
        with pytest.raises(Unauthorized):
            vault.grant_role(ALICE, Role.FUND_MANAGER, ALICE)
        assert not vault.has_role(ALICE, Role.FUND_MANAGER)

    def test_grant_and_revoke_emit_events(self, vault):
        vault.grant_role(ADMIN, Role.FUND_MANAGER, MANAGER)
        vault.revoke_role(ADMIN, Role.FUND_MANAGER, MANAGER)
        granted = vault.events_of(RoleGranted)[-1]
        revoked = vault.events_of(RoleRevoked)[-1]
        assert (granted.account, granted.sender) == (MANAGER, ADMIN)
        assert (revoked.role, revoked.account) == (Role.FUND_MANAGER, MANAGER)

    def test_regrant_emits_nothing(self, managed_vault):
        count = len(managed_vault.events)
        managed_vault.grant_role(ADMIN, Role.FUND_MANAGER, MANAGER)
        assert len(managed_vault.events) == count

    def test_renounce_own_role(self, managed_vault):
        managed_vault.renounce_role(MANAGER, Role.FUND_MANAGER)
        assert not managed_vault.has_role(MANAGER, Role.FUND_MANAGER)

    def test_renounce_for_someone_else_fails(self, managed_vault):
        with pytest.raises(Unauthorized):
            managed_vault.renounce_role(ADMIN, Role.FUND_MANAGER, MANAGER)
        assert managed_vault.has_role(MANAGER, Role.FUND_MANAGER)
