"""
Unit tests for the entity mirror.

Tests cover:
- Role resolution (ownership, memberships, inheritance)
- Create-permission rules
- Snapshot replacement and cascades
- Listener notification
"""

import pytest

from vaultsync.models import (
    Asset,
    Collection,
    EntityKind,
    Membership,
    MembershipStatus,
    Vault,
)
from vaultsync.sync.store import EntityStore


class TestRoleResolution:
    """Tests for get_role_for_*."""

    @pytest.fixture
    def store(self):
        store = EntityStore()
        store.replace_vaults(
            [
                Vault(id="v1", name="Home", owner_id="alice"),
                Vault(id="v2", name="Office", owner_id="carol"),
            ]
        )
        store.upsert_collection(Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry"))
        store.upsert_asset(
            Asset(id="a1", collection_id="c1", vault_id="v1", owner_id="alice", title="Ring")
        )
        return store

    def test_owner_role(self, store):
        """The vault owner gets the owner role."""
        assert store.get_role_for_vault("v1", "alice") == "owner"

    def test_owner_outranks_membership(self, store):
        """Ownership wins over an editor membership for the same user."""
        store.upsert_membership(Membership(user_id="alice", vault_id="v1", role="editor"))
        assert store.get_role_for_vault("v1", "alice") == "owner"

    def test_active_membership_role(self, store):
        """Delegates get their normalized membership role."""
        store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="Viewer"))
        assert store.get_role_for_vault("v1", "bob") == "reviewer"

    def test_inactive_membership_has_no_role(self, store):
        """Only ACTIVE memberships grant a role."""
        for status in (MembershipStatus.PENDING, MembershipStatus.DENIED, MembershipStatus.REVOKED):
            store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="manager", status=status))
            assert store.get_role_for_vault("v1", "bob") is None

    def test_stranger_has_no_role(self, store):
        assert store.get_role_for_vault("v1", "mallory") is None
        assert store.get_role_for_vault("missing", "alice") is None

    def test_children_inherit_vault_role(self, store):
        """Collections and assets resolve through their vault."""
        store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="editor"))
        assert store.get_role_for_collection("c1", "bob") == "editor"
        assert store.get_role_for_asset("a1", "bob") == "editor"
        assert store.get_role_for_asset("a1", "alice") == "owner"
        assert store.get_role_for_asset("missing", "alice") is None


class TestCreatePermission:
    """Tests for can_create_* rules."""

    @pytest.fixture
    def store(self):
        store = EntityStore()
        store.upsert_vault(Vault(id="v1", name="Home", owner_id="alice"))
        store.upsert_collection(Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry"))
        return store

    def test_owner_can_create(self, store):
        assert store.can_create_in_vault("v1", "alice")
        assert store.can_create_assets_in_collection("c1", "alice")

    def test_active_manager_can_create(self, store):
        """Managers create regardless of the flag."""
        store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="manager", can_create=False))
        assert store.can_create_collections_in_vault("v1", "bob")

    def test_pending_manager_cannot_create(self, store):
        store.upsert_membership(
            Membership(user_id="bob", vault_id="v1", role="manager", status=MembershipStatus.PENDING)
        )
        assert not store.can_create_in_vault("v1", "bob")

    def test_editor_needs_flag(self, store):
        """Below manager the explicit flag decides."""
        store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="editor", can_create=False))
        assert not store.can_create_in_vault("v1", "bob")
        store.upsert_membership(Membership(user_id="bob", vault_id="v1", role="editor", can_create=True))
        assert store.can_create_in_vault("v1", "bob")
        assert store.can_create_assets_in_collection("c1", "bob")

    def test_blank_ids(self, store):
        assert not store.can_create_in_vault("", "alice")
        assert not store.can_create_in_vault("v1", "")
        assert not store.can_create_assets_in_collection("missing", "alice")


class TestMirror:
    """Tests for ingest, cascades and listeners."""

    @pytest.fixture
    def store(self):
        store = EntityStore()
        store.replace_vaults(
            [
                Vault(id="v1", name="Home", owner_id="alice"),
                Vault(id="v2", name="Attic", owner_id="alice"),
            ]
        )
        store.replace_vault_collections(
            "v1",
            [
                Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry"),
                Collection(id="c2", vault_id="v1", owner_id="alice", name="Art"),
            ],
        )
        store.replace_vault_assets(
            "v1",
            [
                Asset(id="a1", collection_id="c1", vault_id="v1", owner_id="alice", title="Ring",
                      quantity=2, estimated_value=100.0),
                Asset(id="a2", collection_id="c2", vault_id="v1", owner_id="alice", title="Print",
                      estimated_value=50.0),
            ],
        )
        return store

    def test_snapshot_replaces_vault_children(self, store):
        """A snapshot drops collections missing from it."""
        store.replace_vault_collections(
            "v1", [Collection(id="c1", vault_id="v1", owner_id="alice", name="Jewelry")]
        )
        assert [c.id for c in store.collections_in_vault("v1")] == ["c1"]

    def test_vault_total_value(self, store):
        assert store.vault_total_value("v1") == 250.0

    def test_discard_collection_cascades(self, store):
        store.discard_collection("c1")
        assert store.get_collection("c1") is None
        assert store.get_asset("a1") is None
        assert store.get_asset("a2") is not None

    def test_discard_vault_cascades(self, store):
        store.discard_vault("v1")
        assert store.collections_in_vault("v1") == []
        assert store.assets_in_vault("v1") == []

    def test_move_collection_carries_assets(self, store):
        """Assets follow their collection into the new vault."""
        store.move_collection("c1", "v2")
        assert store.get_collection("c1").vault_id == "v2"
        assert store.get_asset("a1").vault_id == "v2"
        assert store.get_asset("a2").vault_id == "v1"

    def test_apply_patch(self, store):
        store.apply_patch(EntityKind.ASSET, "a1", {"title": "Gold ring", "bogus": 1}, edited_at=99)
        asset = store.get_asset("a1")
        assert asset.title == "Gold ring"
        assert asset.edited_at == 99

    def test_apply_patch_ignores_parent_fields(self, store):
        store.apply_patch(
            EntityKind.ASSET, "a1", {"vault_id": "v2", "collection_id": "c2", "owner_id": "bob"}, edited_at=5
        )
        asset = store.get_asset("a1")
        assert (asset.vault_id, asset.collection_id, asset.owner_id) == ("v1", "c1", "alice")

    def test_shared_vaults_sorted_by_name(self):
        store = EntityStore()
        store.replace_vaults(
            [
                Vault(id="v1", name="zeta", owner_id="alice"),
                Vault(id="v2", name="Alpha", owner_id="carol"),
                Vault(id="v3", name="Mine", owner_id="bob"),
            ]
        )
        store.replace_memberships(
            [
                Membership(user_id="bob", vault_id="v1", role="reviewer"),
                Membership(user_id="bob", vault_id="v2", role="editor"),
            ]
        )
        assert [v.id for v in store.shared_vaults("bob")] == ["v2", "v1"]
        assert [v.id for v in store.owned_vaults("bob")] == ["v3"]

    def test_listeners(self, store):
        """Listeners see every change and can be removed."""
        seen = []
        remove = store.add_listener(lambda kind, vault_id: seen.append((kind, vault_id)))
        store.upsert_asset(Asset(id="a3", collection_id="c1", vault_id="v1", owner_id="alice", title="Pin"))
        remove()
        store.discard_asset("a3")
        assert seen == [(EntityKind.ASSET, "v1")]


class TestMembershipDocuments:
    """Tests for Membership.from_document."""

    def test_explicit_flag(self):
        m = Membership.from_document(
            {"user_id": "bob", "vault_id": "v1", "role": "Editor", "status": "active", "can_create": True}
        )
        assert m.role == "editor"
        assert m.status == MembershipStatus.ACTIVE
        assert m.can_create

    def test_permissions_map(self):
        m = Membership.from_document(
            {"user_id": "bob", "vault_id": "v1", "role": "editor", "permissions": {"Create": True}}
        )
        assert m.can_create

    def test_legacy_role_table(self):
        """Without flags the legacy role mapping decides."""
        manager = Membership.from_document({"user_id": "bob", "vault_id": "v1", "role": "manager"})
        editor = Membership.from_document({"user_id": "bob", "vault_id": "v1", "role": "editor"})
        assert manager.can_create
        assert not editor.can_create

    def test_unknown_status_is_pending(self):
        m = Membership.from_document({"user_id": "bob", "vault_id": "v1", "role": "editor", "status": "weird"})
        assert m.status == MembershipStatus.PENDING
        assert not m.is_active
