"""
Entity hierarchy mirror for VaultSync.

EntityStore holds the authoritative copy of vaults, collections, assets
and memberships as delivered by remote subscriptions. It is the one shared
mutable resource of the client core and is passed explicitly to every
component that needs it.

Role and create-permission lookups are answered from this mirror with
dictionary lookups; they never reach the network.

Invariants:
    - Snapshots replace a vault's children wholesale
    - Effective role: owner if user is vault.owner_id, else the ACTIVE
      membership role for the vault, else None
    - Collections and assets inherit the role of their vault
    - Listeners run synchronously after every change

How to change safely:
    - Keep lookups free of I/O so capability checks stay synchronous
    - Any new mutation method must call _notify
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any, Optional

from ..access.roles import Role, normalize_role
from ..models import EDITABLE_FIELDS, Asset, Collection, EntityKind, Membership, Vault

logger = logging.getLogger(__name__)

StoreListener = Callable[[EntityKind, Optional[str]], None]


class EntityStore:
    """In-memory mirror of the remote hierarchy.

    Example:
        >>> store = EntityStore()
        >>> store.replace_vaults([Vault(id="v1", name="Home", owner_id="alice")])
        >>> store.get_role_for_vault("v1", "alice")
        'owner'
    """

    def __init__(self) -> None:
        self._vaults: dict[str, Vault] = {}
        self._collections: dict[str, Collection] = {}
        self._assets: dict[str, Asset] = {}
        self._memberships: dict[tuple[str, str], Membership] = {}
        self._listeners: list[StoreListener] = []

    # Listeners

    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener.

        Returns:
            Callable removing the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, kind: EntityKind, vault_id: str | None) -> None:
        for listener in list(self._listeners):
            listener(kind, vault_id)

    # Ingest

    def replace_vaults(self, vaults: Iterable[Vault]) -> None:
        """Replace the set of vaults visible to the user."""
        self._vaults = {v.id: v for v in vaults}
        self._notify(EntityKind.VAULT, None)

    def upsert_vault(self, vault: Vault) -> None:
        self._vaults[vault.id] = vault
        self._notify(EntityKind.VAULT, vault.id)

    def replace_vault_collections(self, vault_id: str, collections: Iterable[Collection]) -> None:
        """Replace every collection of a vault with a fresh snapshot."""
        kept = {k: c for k, c in self._collections.items() if c.vault_id != vault_id}
        for collection in collections:
            kept[collection.id] = collection
        self._collections = kept
        logger.debug(
            "Collections snapshot applied",
            extra={"vault_id": vault_id, "count": sum(1 for c in kept.values() if c.vault_id == vault_id)},
        )
        self._notify(EntityKind.COLLECTION, vault_id)

    def replace_vault_assets(self, vault_id: str, assets: Iterable[Asset]) -> None:
        """Replace every asset of a vault with a fresh snapshot."""
        kept = {k: a for k, a in self._assets.items() if a.vault_id != vault_id}
        for asset in assets:
            kept[asset.id] = asset
        self._assets = kept
        self._notify(EntityKind.ASSET, vault_id)

    def upsert_collection(self, collection: Collection) -> None:
        self._collections[collection.id] = collection
        self._notify(EntityKind.COLLECTION, collection.vault_id)

    def upsert_asset(self, asset: Asset) -> None:
        self._assets[asset.id] = asset
        self._notify(EntityKind.ASSET, asset.vault_id)

    def replace_memberships(self, memberships: Iterable[Membership]) -> None:
        self._memberships = {(m.vault_id, m.user_id): m for m in memberships}
        self._notify(EntityKind.VAULT, None)

    def upsert_membership(self, membership: Membership) -> None:
        self._memberships[(membership.vault_id, membership.user_id)] = membership
        self._notify(EntityKind.VAULT, membership.vault_id)

    def discard_vault(self, vault_id: str) -> None:
        """Drop a vault and everything under it."""
        self._vaults.pop(vault_id, None)
        self._collections = {k: c for k, c in self._collections.items() if c.vault_id != vault_id}
        self._assets = {k: a for k, a in self._assets.items() if a.vault_id != vault_id}
        self._notify(EntityKind.VAULT, vault_id)

    def discard_collection(self, collection_id: str) -> None:
        """Drop a collection and its assets."""
        collection = self._collections.pop(collection_id, None)
        self._assets = {k: a for k, a in self._assets.items() if a.collection_id != collection_id}
        self._notify(EntityKind.COLLECTION, collection.vault_id if collection else None)

    def discard_asset(self, asset_id: str) -> None:
        asset = self._assets.pop(asset_id, None)
        self._notify(EntityKind.ASSET, asset.vault_id if asset else None)

    def apply_patch(self, kind: EntityKind, node_id: str, patch: dict[str, Any], edited_at: int | None) -> None:
        """Apply a confirmed edit to the mirrored node."""
        table: dict[str, Any] = self._table(kind)
        current = table.get(node_id)
        if current is None:
            return
        changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS[kind]}
        if edited_at is not None:
            changes["edited_at"] = edited_at
        table[node_id] = replace(current, **changes)
        self._notify(kind, getattr(table[node_id], "vault_id", node_id))

    def move_collection(self, collection_id: str, target_vault_id: str) -> None:
        """Re-parent a collection; its assets follow it to the new vault."""
        collection = self._collections.get(collection_id)
        if collection is None:
            return
        source_vault_id = collection.vault_id
        self._collections[collection_id] = replace(collection, vault_id=target_vault_id)
        for asset_id, asset in list(self._assets.items()):
            if asset.collection_id == collection_id:
                self._assets[asset_id] = replace(asset, vault_id=target_vault_id)
        self._notify(EntityKind.COLLECTION, source_vault_id)
        self._notify(EntityKind.COLLECTION, target_vault_id)

    def move_asset(self, asset_id: str, target_vault_id: str, target_collection_id: str) -> None:
        asset = self._assets.get(asset_id)
        if asset is None:
            return
        self._assets[asset_id] = replace(
            asset, vault_id=target_vault_id, collection_id=target_collection_id
        )
        self._notify(EntityKind.ASSET, asset.vault_id)
        self._notify(EntityKind.ASSET, target_vault_id)

    # Lookups

    def _table(self, kind: EntityKind) -> dict[str, Any]:
        if kind == EntityKind.VAULT:
            return self._vaults
        if kind == EntityKind.COLLECTION:
            return self._collections
        return self._assets

    def get(self, kind: EntityKind, node_id: str) -> Vault | Collection | Asset | None:
        return self._table(kind).get(node_id)

    def get_vault(self, vault_id: str) -> Vault | None:
        return self._vaults.get(vault_id)

    def get_collection(self, collection_id: str) -> Collection | None:
        return self._collections.get(collection_id)

    def get_asset(self, asset_id: str) -> Asset | None:
        return self._assets.get(asset_id)

    def vaults(self) -> list[Vault]:
        return list(self._vaults.values())

    def owned_vaults(self, owner_id: str) -> list[Vault]:
        return [v for v in self._vaults.values() if v.owner_id == owner_id]

    def shared_vaults(self, user_id: str) -> list[Vault]:
        """Vaults the user reaches through an ACTIVE membership, by name."""
        shared = [
            v
            for v in self._vaults.values()
            if v.owner_id != user_id and self.active_membership(v.id, user_id) is not None
        ]
        return sorted(shared, key=lambda v: v.name.lower())

    def collections_in_vault(self, vault_id: str) -> list[Collection]:
        return [c for c in self._collections.values() if c.vault_id == vault_id]

    def assets_in_collection(self, collection_id: str) -> list[Asset]:
        return [a for a in self._assets.values() if a.collection_id == collection_id]

    def assets_in_vault(self, vault_id: str) -> list[Asset]:
        return [a for a in self._assets.values() if a.vault_id == vault_id]

    def vault_total_value(self, vault_id: str) -> float:
        """Sum of quantity * estimated_value over a vault's assets."""
        return sum(a.total_value for a in self.assets_in_vault(vault_id))

    def memberships(self) -> list[Membership]:
        return list(self._memberships.values())

    def active_membership(self, vault_id: str, user_id: str) -> Membership | None:
        membership = self._memberships.get((vault_id, user_id))
        if membership is None or not membership.is_active:
            return None
        return membership

    # Roles

    def get_role_for_vault(self, vault_id: str, user_id: str) -> str | None:
        vault = self._vaults.get(vault_id)
        if vault is None:
            return None
        if vault.owner_id == user_id:
            return Role.OWNER.value
        membership = self.active_membership(vault_id, user_id)
        return normalize_role(membership.role) if membership else None

    def get_role_for_collection(self, collection_id: str, user_id: str) -> str | None:
        collection = self._collections.get(collection_id)
        if collection is None:
            return None
        return self.get_role_for_vault(collection.vault_id, user_id)

    def get_role_for_asset(self, asset_id: str, user_id: str) -> str | None:
        asset = self._assets.get(asset_id)
        if asset is None:
            return None
        return self.get_role_for_vault(asset.vault_id, user_id)

    def can_create_in_vault(self, vault_id: str, user_id: str) -> bool:
        """Whether the user may create children anywhere in the vault."""
        if not vault_id or not user_id:
            return False
        vault = self._vaults.get(vault_id)
        if vault is None:
            return False
        if vault.owner_id == user_id:
            return True
        membership = self.active_membership(vault_id, user_id)
        if membership is None:
            return False
        if normalize_role(membership.role) == Role.MANAGER.value:
            return True
        return bool(membership.can_create)

    def can_create_collections_in_vault(self, vault_id: str, user_id: str) -> bool:
        return self.can_create_in_vault(vault_id, user_id)

    def can_create_assets_in_collection(self, collection_id: str, user_id: str) -> bool:
        collection = self._collections.get(collection_id)
        if collection is None:
            return False
        return self.can_create_in_vault(collection.vault_id, user_id)
