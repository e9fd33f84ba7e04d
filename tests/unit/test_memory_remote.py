"""
Unit tests for the in-memory remote store.

Tests cover:
- Id assignment and ownership inheritance
- Stale-write rejection
- Moves and cascading deletes
- Snapshot subscriptions
- Invitations
- Testing helpers
"""

import asyncio

import pytest

from vaultsync.models import (
    Asset,
    Collection,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipStatus,
    Vault,
)
from vaultsync.remote.base import CONFLICT_CODE, RemoteStore
from vaultsync.remote.memory import InMemoryRemoteStore


class TestInMemoryRemoteStore:
    """Tests for InMemoryRemoteStore."""

    @pytest.fixture
    def remote(self, clock):
        remote = InMemoryRemoteStore(clock=clock)
        remote.seed_vault(Vault(id="v1", name="Home", owner_id="alice"))
        remote.seed_vault(Vault(id="v2", name="Attic", owner_id="alice"))
        remote.seed_collection(Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry"))
        remote.seed_asset(Asset(id="a1", collection_id="c1", vault_id="v1", owner_id="alice", title="Ring"))
        return remote

    def test_implements_protocol(self, remote):
        assert isinstance(remote, RemoteStore)

    @pytest.mark.asyncio
    async def test_create_assigns_ids(self, remote):
        first = await remote.create_collection({"vault_id": "v1", "name": "Art"})
        second = await remote.create_collection({"vault_id": "v1", "name": "Books"})
        assert (first.id, second.id) == ("col_1", "col_2")
        assert first.edited_at < second.edited_at

    @pytest.mark.asyncio
    async def test_create_inherits_owner_and_vault(self, remote):
        """Ownership comes from the vault, vault_id from the collection."""
        result = await remote.create_asset({"collection_id": "c1", "title": "Pin", "owner_id": "bob"})
        asset = remote.assets[result.id]
        assert asset.owner_id == "alice"
        assert asset.vault_id == "v1"

    @pytest.mark.asyncio
    async def test_create_under_missing_parent(self, remote):
        result = await remote.create_asset({"collection_id": "nope", "title": "Pin"})
        assert not result.ok
        assert result.code == "not_found"

    @pytest.mark.asyncio
    async def test_set_next_id(self, remote):
        remote.set_next_id("collection", 42)
        result = await remote.create_collection({"vault_id": "v1", "name": "Art"})
        assert result.id == "col_42"

    @pytest.mark.asyncio
    async def test_stale_update_rejected(self, remote):
        current = remote.assets["a1"].edited_at
        remote.touch("asset", "a1")
        result = await remote.update_asset("a1", {"title": "Gold ring"}, expected_edited_at=current)
        assert result.code == CONFLICT_CODE
        assert result.is_conflict
        assert remote.assets["a1"].title == "Ring"

    @pytest.mark.asyncio
    async def test_update_applies_editable_fields_only(self, remote):
        current = remote.assets["a1"].edited_at
        result = await remote.update_asset(
            "a1", {"title": "Gold ring", "owner_id": "mallory"}, expected_edited_at=current
        )
        assert result.ok
        assert remote.assets["a1"].title == "Gold ring"
        assert remote.assets["a1"].owner_id == "alice"
        assert remote.assets["a1"].edited_at == result.edited_at

    @pytest.mark.asyncio
    async def test_move_collection_moves_assets(self, remote):
        result = await remote.move_collection("c1", "v2")
        assert result.ok
        assert remote.collections["c1"].vault_id == "v2"
        assert remote.assets["a1"].vault_id == "v2"

    @pytest.mark.asyncio
    async def test_move_asset_checks_target_vault(self, remote):
        result = await remote.move_asset("a1", "v2", "c1")
        assert not result.ok
        assert remote.assets["a1"].vault_id == "v1"

    @pytest.mark.asyncio
    async def test_delete_vault_cascades(self, remote):
        result = await remote.delete_vault("v1")
        assert result.ok
        assert "c1" not in remote.collections
        assert "a1" not in remote.assets

    def test_subscribe_delivers_snapshots(self, remote):
        seen = []
        unsubscribe = remote.subscribe_vault_assets("v1", seen.append)
        assert [a.id for a in seen[-1]] == ["a1"]

        remote.seed_asset(Asset(id="a2", collection_id="c1", vault_id="v1", owner_id="alice", title="Pin"))
        assert {a.id for a in seen[-1]} == {"a1", "a2"}

        unsubscribe()
        count = len(seen)
        remote.seed_asset(Asset(id="a3", collection_id="c1", vault_id="v1", owner_id="alice", title="Cuff"))
        assert len(seen) == count

    def test_auto_publish_off(self, remote):
        seen = []
        remote.subscribe_vault_collections("v1", seen.append)
        remote.auto_publish = False
        remote.seed_collection(Collection(id="c2", vault_id="v1", owner_id="alice", name="Art"))
        assert len(seen) == 1
        remote.publish("v1", force=True)
        assert len(seen) == 2

    def test_vault_snapshot_includes_shared(self, remote):
        remote.seed_vault(Vault(id="v3", name="Office", owner_id="carol"))
        remote.seed_membership(Membership(user_id="alice", vault_id="v3", role="editor"))
        seen = []
        remote.subscribe_vaults("alice", seen.append)
        assert {v.id for v in seen[-1]} == {"v1", "v2", "v3"}

    @pytest.mark.asyncio
    async def test_invitation_flow(self, remote):
        created = await remote.create_invitation("v1", "bob", "editor", can_create=True)
        invitation = remote.invitations[created.id]
        assert len(invitation.code) == 8

        pending = await remote.list_my_invitations("bob")
        assert [i.id for i in pending] == [created.id]

        accepted = await remote.accept_invitation_code(invitation.code, "bob")
        assert accepted.vault_id == "v1"
        membership = remote.memberships[("v1", "bob")]
        assert membership.status == MembershipStatus.ACTIVE
        assert membership.can_create
        assert await remote.list_my_invitations("bob") == []

    @pytest.mark.asyncio
    async def test_deny_and_revoke(self, remote):
        remote.seed_invitation(
            Invitation(id="i1", vault_id="v1", status=InvitationStatus.PENDING, invitee="bob", code="ABC")
        )
        denied = await remote.deny_invitation_code("ABC", "bob")
        assert denied.ok
        assert remote.invitations["i1"].status == InvitationStatus.DENIED
        assert not (await remote.accept_invitation_code("ABC", "bob")).ok

        remote.seed_membership(Membership(user_id="bob", vault_id="v1", role="editor"))
        await remote.revoke_membership("v1", "bob")
        assert remote.memberships[("v1", "bob")].status == MembershipStatus.REVOKED

    @pytest.mark.asyncio
    async def test_pause_records_call_first(self, remote):
        remote.pause()
        task = asyncio.create_task(remote.delete_asset("a1"))
        await asyncio.sleep(0)
        assert remote.calls_for("delete_asset") == [{"asset_id": "a1"}]
        assert "a1" in remote.assets
        remote.resume()
        assert (await task).ok

    @pytest.mark.asyncio
    async def test_injected_failures(self, remote):
        remote.fail_next("create_vault", "quota exceeded")
        remote.raise_next("create_vault", ConnectionError("down"))
        failed = await remote.create_vault({"name": "X", "owner_id": "alice"})
        assert failed.message == "quota exceeded"
        with pytest.raises(ConnectionError):
            await remote.create_vault({"name": "X", "owner_id": "alice"})
        assert (await remote.create_vault({"name": "X", "owner_id": "alice"})).ok
