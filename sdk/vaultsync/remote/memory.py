"""
In-memory remote store implementation for testing.

This module provides a simple in-memory backend for:
- Unit and integration tests
- Local development and demos without a managed backend

It behaves like the managed document store the client talks to in
production: it assigns ids, inherits ownership from the parent vault,
rejects stale writes, and pushes full per-vault snapshots to subscribers
after every change.

Invariants:
    - All data is lost on process exit
    - Every call is recorded in ``calls`` at issue time, before any pause
    - edited_at strictly increases across writes

How to change safely:
    - This is test-only code, changes don't affect production adapters
    - Keep the interface compatible with the RemoteStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..models import (
    EDITABLE_FIELDS,
    Asset,
    Collection,
    EntityKind,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipStatus,
    Vault,
    now_ms,
)
from .base import CONFLICT_CODE, RemoteResult, Unsubscribe

logger = logging.getLogger(__name__)


class InMemoryRemoteStore:
    """In-memory implementation of RemoteStore for testing.

    Attributes:
        calls: Log of (operation, arguments) in issue order
        auto_publish: Whether mutations push snapshots to subscribers

    Example:
        >>> remote = InMemoryRemoteStore()
        >>> remote.seed_vault(Vault(id="v1", name="Home", owner_id="alice"))
        >>> result = await remote.create_collection(
        ...     {"vault_id": "v1", "name": "Jewelry", "owner_id": "alice"}
        ... )
        >>> result.id
        'col_1'
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        """Initialize in-memory store.

        Args:
            clock: Millisecond clock used for created_at/edited_at
        """
        self._clock = clock or now_ms
        self._last_tick = 0
        self.vaults: dict[str, Vault] = {}
        self.collections: dict[str, Collection] = {}
        self.assets: dict[str, Asset] = {}
        self.memberships: dict[tuple[str, str], Membership] = {}
        self.invitations: dict[str, Invitation] = {}

        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.auto_publish = True

        self._counters = {
            "vault": itertools.count(1),
            "collection": itertools.count(1),
            "asset": itertools.count(1),
            "invitation": itertools.count(1),
        }
        self._prefixes = {"vault": "vlt_", "collection": "col_", "asset": "ast_", "invitation": "inv_"}
        self._gate = asyncio.Event()
        self._gate.set()
        self._failures: dict[str, deque[RemoteResult | Exception]] = defaultdict(deque)
        self._subscribers: dict[tuple[str, str], list[Callable[[list[Any]], None]]] = defaultdict(list)

    # Call plumbing

    async def _enter(self, operation: str, **arguments: Any) -> RemoteResult | None:
        self.calls.append((operation, arguments))
        await self._gate.wait()
        queued = self._failures.get(operation)
        if queued:
            failure = queued.popleft()
            if isinstance(failure, Exception):
                raise failure
            logger.debug("Injected failure", extra={"operation": operation})
            return failure
        return None

    def _tick(self) -> int:
        self._last_tick = max(self._clock(), self._last_tick + 1)
        return self._last_tick

    def _next_id(self, kind: str) -> str:
        return f"{self._prefixes[kind]}{next(self._counters[kind])}"

    # Creates

    async def create_vault(self, fields: dict[str, Any]) -> RemoteResult:
        injected = await self._enter("create_vault", fields=dict(fields))
        if injected:
            return injected
        ts = self._tick()
        vault = Vault(
            id=self._next_id("vault"),
            name=fields.get("name", ""),
            owner_id=fields["owner_id"],
            created_at=ts,
            edited_at=ts,
            description=fields.get("description", ""),
        )
        self.vaults[vault.id] = vault
        self._publish_vaults()
        return RemoteResult.success(id=vault.id, edited_at=ts)

    async def create_collection(self, fields: dict[str, Any]) -> RemoteResult:
        injected = await self._enter("create_collection", fields=dict(fields))
        if injected:
            return injected
        vault = self.vaults.get(fields.get("vault_id", ""))
        if vault is None:
            return RemoteResult.failure("Vault not found", code="not_found")
        ts = self._tick()
        collection = Collection(
            id=self._next_id("collection"),
            vault_id=vault.id,
            owner_id=vault.owner_id,
            name=fields.get("name", ""),
            created_at=ts,
            edited_at=ts,
            description=fields.get("description", ""),
        )
        self.collections[collection.id] = collection
        self.publish(vault.id)
        return RemoteResult.success(id=collection.id, edited_at=ts)

    async def create_asset(self, fields: dict[str, Any]) -> RemoteResult:
        injected = await self._enter("create_asset", fields=dict(fields))
        if injected:
            return injected
        collection = self.collections.get(fields.get("collection_id", ""))
        if collection is None:
            return RemoteResult.failure("Collection not found", code="not_found")
        ts = self._tick()
        asset = Asset(
            id=self._next_id("asset"),
            collection_id=collection.id,
            vault_id=collection.vault_id,
            owner_id=collection.owner_id,
            title=fields.get("title", ""),
            category=fields.get("category", ""),
            quantity=fields.get("quantity", 1),
            estimated_value=fields.get("estimated_value"),
            created_at=ts,
            edited_at=ts,
        )
        self.assets[asset.id] = asset
        self.publish(collection.vault_id)
        return RemoteResult.success(id=asset.id, edited_at=ts)

    # Updates

    async def update_vault(
        self, vault_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult:
        injected = await self._enter(
            "update_vault", vault_id=vault_id, patch=dict(patch), expected_edited_at=expected_edited_at
        )
        if injected:
            return injected
        result = self._apply_update("vault", self.vaults, vault_id, patch, expected_edited_at)
        if result.ok:
            self._publish_vaults()
        return result

    async def update_collection(
        self, collection_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult:
        injected = await self._enter(
            "update_collection",
            collection_id=collection_id,
            patch=dict(patch),
            expected_edited_at=expected_edited_at,
        )
        if injected:
            return injected
        result = self._apply_update("collection", self.collections, collection_id, patch, expected_edited_at)
        if result.ok:
            self.publish(self.collections[collection_id].vault_id)
        return result

    async def update_asset(
        self, asset_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult:
        injected = await self._enter(
            "update_asset", asset_id=asset_id, patch=dict(patch), expected_edited_at=expected_edited_at
        )
        if injected:
            return injected
        result = self._apply_update("asset", self.assets, asset_id, patch, expected_edited_at)
        if result.ok:
            self.publish(self.assets[asset_id].vault_id)
        return result

    def _apply_update(
        self,
        kind: str,
        table: dict[str, Any],
        node_id: str,
        patch: dict[str, Any],
        expected_edited_at: int | None,
    ) -> RemoteResult:
        current = table.get(node_id)
        if current is None:
            return RemoteResult.failure(f"{kind.capitalize()} not found", code="not_found")
        if expected_edited_at is not None and current.edited_at != expected_edited_at:
            return RemoteResult.failure(
                f"This {kind} changed on another device. Reload and try again.",
                code=CONFLICT_CODE,
            )
        allowed = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS[EntityKind(kind)]}
        ts = self._tick()
        table[node_id] = replace(current, **allowed, edited_at=ts)
        return RemoteResult.success(id=node_id, edited_at=ts)

    # Moves

    async def move_collection(self, collection_id: str, target_vault_id: str) -> RemoteResult:
        injected = await self._enter(
            "move_collection", collection_id=collection_id, target_vault_id=target_vault_id
        )
        if injected:
            return injected
        collection = self.collections.get(collection_id)
        if collection is None or target_vault_id not in self.vaults:
            return RemoteResult.failure("Collection or target vault not found", code="not_found")
        source_vault_id = collection.vault_id
        ts = self._tick()
        self.collections[collection_id] = replace(collection, vault_id=target_vault_id, edited_at=ts)
        for asset_id, asset in list(self.assets.items()):
            if asset.collection_id == collection_id:
                self.assets[asset_id] = replace(asset, vault_id=target_vault_id)
        self.publish(source_vault_id)
        self.publish(target_vault_id)
        return RemoteResult.success(id=collection_id, edited_at=ts)

    async def move_asset(
        self, asset_id: str, target_vault_id: str, target_collection_id: str
    ) -> RemoteResult:
        injected = await self._enter(
            "move_asset",
            asset_id=asset_id,
            target_vault_id=target_vault_id,
            target_collection_id=target_collection_id,
        )
        if injected:
            return injected
        asset = self.assets.get(asset_id)
        target = self.collections.get(target_collection_id)
        if asset is None or target is None:
            return RemoteResult.failure("Asset or target collection not found", code="not_found")
        if target.vault_id != target_vault_id:
            return RemoteResult.failure("Target collection is not in the target vault")
        source_vault_id = asset.vault_id
        ts = self._tick()
        self.assets[asset_id] = replace(
            asset, vault_id=target_vault_id, collection_id=target_collection_id, edited_at=ts
        )
        self.publish(source_vault_id)
        if target_vault_id != source_vault_id:
            self.publish(target_vault_id)
        return RemoteResult.success(id=asset_id, edited_at=ts)

    # Deletes

    async def delete_asset(self, asset_id: str) -> RemoteResult:
        injected = await self._enter("delete_asset", asset_id=asset_id)
        if injected:
            return injected
        asset = self.assets.pop(asset_id, None)
        if asset is None:
            return RemoteResult.failure("Asset not found", code="not_found")
        self.publish(asset.vault_id)
        return RemoteResult.success(id=asset_id)

    async def delete_collection(self, collection_id: str) -> RemoteResult:
        injected = await self._enter("delete_collection", collection_id=collection_id)
        if injected:
            return injected
        collection = self.collections.pop(collection_id, None)
        if collection is None:
            return RemoteResult.failure("Collection not found", code="not_found")
        for asset_id in [a.id for a in self.assets.values() if a.collection_id == collection_id]:
            del self.assets[asset_id]
        self.publish(collection.vault_id)
        return RemoteResult.success(id=collection_id)

    async def delete_vault(self, vault_id: str) -> RemoteResult:
        injected = await self._enter("delete_vault", vault_id=vault_id)
        if injected:
            return injected
        if self.vaults.pop(vault_id, None) is None:
            return RemoteResult.failure("Vault not found", code="not_found")
        self.collections = {k: c for k, c in self.collections.items() if c.vault_id != vault_id}
        self.assets = {k: a for k, a in self.assets.items() if a.vault_id != vault_id}
        self.publish(vault_id)
        self._publish_vaults()
        return RemoteResult.success(id=vault_id)

    # Subscriptions

    def _subscribe(self, channel: str, key: str, on_change: Callable[[list[Any]], None]) -> Unsubscribe:
        callbacks = self._subscribers[(channel, key)]
        callbacks.append(on_change)
        on_change(self._snapshot(channel, key))

        def unsubscribe() -> None:
            if on_change in callbacks:
                callbacks.remove(on_change)

        return unsubscribe

    def _snapshot(self, channel: str, key: str) -> list[Any]:
        if channel == "collections":
            return [replace(c) for c in self.collections.values() if c.vault_id == key]
        if channel == "assets":
            return [replace(a) for a in self.assets.values() if a.vault_id == key]
        if channel == "vaults":
            visible = {m.vault_id for m in self.memberships.values() if m.user_id == key and m.is_active}
            return [replace(v) for v in self.vaults.values() if v.owner_id == key or v.id in visible]
        if channel == "memberships":
            owned = {v.id for v in self.vaults.values() if v.owner_id == key}
            return [
                replace(m)
                for m in self.memberships.values()
                if m.user_id == key or m.vault_id in owned
            ]
        raise ValueError(f"Unknown channel: {channel}")

    def subscribe_vaults(self, user_id: str, on_change: Callable[[list[Vault]], None]) -> Unsubscribe:
        return self._subscribe("vaults", user_id, on_change)

    def subscribe_memberships(
        self, user_id: str, on_change: Callable[[list[Membership]], None]
    ) -> Unsubscribe:
        return self._subscribe("memberships", user_id, on_change)

    def subscribe_vault_collections(
        self, vault_id: str, on_change: Callable[[list[Collection]], None]
    ) -> Unsubscribe:
        return self._subscribe("collections", vault_id, on_change)

    def subscribe_vault_assets(self, vault_id: str, on_change: Callable[[list[Asset]], None]) -> Unsubscribe:
        return self._subscribe("assets", vault_id, on_change)

    def publish(self, vault_id: str, *, force: bool = False) -> None:
        """Push collection and asset snapshots for a vault to subscribers."""
        if not (self.auto_publish or force):
            return
        for channel in ("collections", "assets"):
            for callback in list(self._subscribers.get((channel, vault_id), [])):
                callback(self._snapshot(channel, vault_id))

    def _publish_vaults(self) -> None:
        if not self.auto_publish:
            return
        for (channel, user_id), callbacks in list(self._subscribers.items()):
            if channel in ("vaults", "memberships"):
                for callback in list(callbacks):
                    callback(self._snapshot(channel, user_id))

    # Invitations

    async def list_my_invitations(self, user_id: str) -> list[Invitation]:
        await self._enter("list_my_invitations", user_id=user_id)
        return [
            replace(i)
            for i in self.invitations.values()
            if i.invitee == user_id and i.status == InvitationStatus.PENDING
        ]

    def _find_invitation(self, code: str) -> Invitation | None:
        for invitation in self.invitations.values():
            if invitation.code == code:
                return invitation
        return None

    async def accept_invitation_code(self, code: str, user_id: str) -> RemoteResult:
        injected = await self._enter("accept_invitation_code", code=code, user_id=user_id)
        if injected:
            return injected
        invitation = self._find_invitation(code)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return RemoteResult.failure("Invite code is invalid or expired", code="not_found")
        invitation.status = InvitationStatus.ACCEPTED
        self.memberships[(invitation.vault_id, user_id)] = Membership(
            user_id=user_id,
            vault_id=invitation.vault_id,
            role=invitation.role,
            status=MembershipStatus.ACTIVE,
            can_create=invitation.can_create,
        )
        self._publish_vaults()
        return RemoteResult.success(id=invitation.id, vault_id=invitation.vault_id)

    async def deny_invitation_code(self, code: str, user_id: str) -> RemoteResult:
        injected = await self._enter("deny_invitation_code", code=code, user_id=user_id)
        if injected:
            return injected
        invitation = self._find_invitation(code)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return RemoteResult.failure("Invite code is invalid or expired", code="not_found")
        invitation.status = InvitationStatus.DENIED
        return RemoteResult.success(id=invitation.id, vault_id=invitation.vault_id)

    async def create_invitation(
        self, vault_id: str, invitee: str, role: str, *, can_create: bool = False
    ) -> RemoteResult:
        injected = await self._enter(
            "create_invitation", vault_id=vault_id, invitee=invitee, role=role, can_create=can_create
        )
        if injected:
            return injected
        if vault_id not in self.vaults:
            return RemoteResult.failure("Vault not found", code="not_found")
        invitation = Invitation(
            id=self._next_id("invitation"),
            vault_id=vault_id,
            status=InvitationStatus.PENDING,
            invitee=invitee,
            role=role,
            code=uuid.uuid4().hex[:8].upper(),
            can_create=can_create,
        )
        self.invitations[invitation.id] = invitation
        return RemoteResult.success(id=invitation.id, vault_id=vault_id)

    async def revoke_membership(self, vault_id: str, user_id: str) -> RemoteResult:
        injected = await self._enter("revoke_membership", vault_id=vault_id, user_id=user_id)
        if injected:
            return injected
        membership = self.memberships.get((vault_id, user_id))
        if membership is None:
            return RemoteResult.failure("Membership not found", code="not_found")
        membership.status = MembershipStatus.REVOKED
        self._publish_vaults()
        return RemoteResult.success(id=user_id, vault_id=vault_id)

    # Testing helpers

    def seed_vault(self, vault: Vault) -> Vault:
        """Insert a vault directly (testing helper)."""
        self.vaults[vault.id] = vault
        self._publish_vaults()
        return vault

    def seed_collection(self, collection: Collection) -> Collection:
        """Insert a collection directly (testing helper)."""
        self.collections[collection.id] = collection
        self.publish(collection.vault_id)
        return collection

    def seed_asset(self, asset: Asset) -> Asset:
        """Insert an asset directly (testing helper)."""
        self.assets[asset.id] = asset
        self.publish(asset.vault_id)
        return asset

    def seed_membership(self, membership: Membership) -> Membership:
        """Insert a membership directly (testing helper)."""
        self.memberships[(membership.vault_id, membership.user_id)] = membership
        self._publish_vaults()
        return membership

    def seed_invitation(self, invitation: Invitation) -> Invitation:
        """Insert an invitation directly (testing helper)."""
        self.invitations[invitation.id] = invitation
        return invitation

    def touch(self, kind: str, node_id: str) -> int:
        """Bump a node's edited_at as a concurrent editor would (testing helper)."""
        table = {"vault": self.vaults, "collection": self.collections, "asset": self.assets}[kind]
        ts = self._tick()
        table[node_id] = replace(table[node_id], edited_at=ts)
        return ts

    def set_next_id(self, kind: str, value: int) -> None:
        """Make the next created id of a kind use this number (testing helper)."""
        self._counters[kind] = itertools.count(value)

    def fail_next(self, operation: str, message: str, code: str | None = None) -> None:
        """Make the next call of an operation return ok=False (testing helper)."""
        self._failures[operation].append(RemoteResult.failure(message, code=code))

    def raise_next(self, operation: str, exception: Exception) -> None:
        """Make the next call of an operation raise (testing helper)."""
        self._failures[operation].append(exception)

    def pause(self) -> None:
        """Hold every call after it is recorded until resume() (testing helper)."""
        self._gate.clear()

    def resume(self) -> None:
        """Release held calls (testing helper)."""
        self._gate.set()

    def calls_for(self, operation: str) -> list[dict[str, Any]]:
        """Arguments of every recorded call of an operation (testing helper)."""
        return [args for op, args in self.calls if op == operation]

    def subscriber_count(self, channel: str, key: str) -> int:
        """Number of live subscriptions on a channel (testing helper)."""
        return len(self._subscribers.get((channel, key), []))
