"""
Integration tests for invitations and sharing through VaultClient.

Tests cover:
- Owner invites, invitee accepts by code and gains the role
- Deny and revoke
- Share permission checks
- Blank codes rejected locally
"""

import pytest

from vaultsync import VaultClient
from vaultsync.errors import ErrorCode
from vaultsync.models import Collection, InvitationStatus, Vault
from vaultsync.remote.memory import InMemoryRemoteStore


@pytest.fixture
def remote(clock):
    remote = InMemoryRemoteStore(clock=clock)
    remote.seed_vault(Vault(id="v1", name="Home", owner_id="alice"))
    remote.seed_collection(Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry"))
    return remote


@pytest.fixture
def alice(remote, settings, clock):
    client = VaultClient(remote, "alice", settings=settings, clock=clock)
    client.start()
    return client


@pytest.fixture
def bob(remote, settings, clock):
    client = VaultClient(remote, "bob", settings=settings, clock=clock)
    client.start()
    return client


class TestInvitations:
    """Invitation round trips."""

    @pytest.mark.asyncio
    async def test_invite_and_accept(self, alice, bob, remote):
        invited = await alice.invite_to_vault("v1", "bob", "Editor", can_create=True)
        assert invited.ok
        invitation = remote.invitations[invited.id]
        assert invitation.role == "editor"

        pending = await bob.list_my_invitations()
        assert [i.code for i in pending] == [invitation.code]

        joined = await bob.accept_invitation_code(f"  {invitation.code} ")
        assert joined.ok
        assert joined.id == "v1"

        membership = bob.store.active_membership("v1", "bob")
        assert membership is not None
        assert membership.role == "editor"
        assert [v.id for v in bob.shared_vaults()] == ["v1"]

        caps = bob.capabilities_for_vault("v1")
        assert caps.can_edit
        assert caps.can_create_collections
        assert not caps.can_delete

    @pytest.mark.asyncio
    async def test_accept_without_membership_listener(self, alice, remote, settings, clock):
        """The joined membership is mirrored even before any snapshot arrives."""
        invited = await alice.invite_to_vault("v1", "bob", "manager")
        code = remote.invitations[invited.id].code

        bob = VaultClient(remote, "bob", settings=settings, clock=clock)
        joined = await bob.accept_invitation_code(code)

        assert joined.id == "v1"
        assert bob.store.active_membership("v1", "bob").role == "manager"

    @pytest.mark.asyncio
    async def test_deny(self, alice, bob, remote):
        invited = await alice.invite_to_vault("v1", "bob", "reviewer")
        code = remote.invitations[invited.id].code

        denied = await bob.deny_invitation_code(code)

        assert denied.ok
        assert remote.invitations[invited.id].status == InvitationStatus.DENIED
        assert bob.shared_vaults() == []

    @pytest.mark.asyncio
    async def test_bad_code(self, bob):
        result = await bob.accept_invitation_code("NOPE1234")
        assert result.code == ErrorCode.REJECTED
        assert result.message == "Invite code is invalid or expired"

    @pytest.mark.asyncio
    async def test_blank_code_rejected_locally(self, bob, remote):
        accept = await bob.accept_invitation_code("   ")
        deny = await bob.deny_invitation_code("")

        assert accept.code == ErrorCode.VALIDATION
        assert deny.code == ErrorCode.VALIDATION
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_only_owner_shares(self, alice, bob, remote):
        await alice.invite_to_vault("v1", "bob", "manager")
        code = next(iter(remote.invitations.values())).code
        await bob.accept_invitation_code(code)

        result = await bob.invite_to_vault("v1", "carol", "reviewer")

        assert result.code == ErrorCode.PERMISSION_DENIED
        assert remote.calls_for("create_invitation") == [
            {"vault_id": "v1", "invitee": "bob", "role": "manager", "can_create": False}
        ]

    @pytest.mark.asyncio
    async def test_revoke(self, alice, bob, remote):
        invited = await alice.invite_to_vault("v1", "bob", "editor")
        await bob.accept_invitation_code(remote.invitations[invited.id].code)

        revoked = await alice.revoke_membership("v1", "bob")

        assert revoked.ok
        assert bob.store.active_membership("v1", "bob") is None
        assert bob.store.get_role_for_vault("v1", "bob") is None
