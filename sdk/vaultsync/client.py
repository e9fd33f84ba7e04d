"""
VaultClient - one entry point wiring the client core together.

The client owns one EntityStore and hands it explicitly to every
component: the subscription arena, the optimistic mutation manager, the
conflict guard and the move/clone orchestrator. Nothing here is a global.

Invariants:
    - One client per signed-in user
    - Vault and membership listeners are open between start() and close()
    - Every mutation returns a MutationResult

How to change safely:
    - New mutations belong in the component that owns their state; the
      client only forwards
    - Keep capability queries synchronous (mirror lookups only)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from .access.capabilities import (
    AssetCapabilities,
    CollectionCapabilities,
    VaultCapabilities,
    asset_capabilities,
    collection_capabilities,
    vault_capabilities,
)
from .access.roles import normalize_role
from .config import Settings, get_settings
from .errors import ErrorCode, ValidationError
from .models import Asset, Collection, EntityKind, Invitation, Membership, SelectionState, Vault
from .remote.base import RemoteStore, Unsubscribe
from .sync.conflict import ConflictGuard
from .sync.optimistic import OptimisticMutationManager
from .sync.orchestrator import MoveCloneOrchestrator, MoveTarget
from .sync.results import MutationResult
from .sync.store import EntityStore
from .sync.subscriptions import SubscriptionArena

logger = logging.getLogger(__name__)


class VaultClient:
    """Client core for one signed-in user.

    Example:
        >>> async with VaultClient(remote, user_id="alice") as client:
        ...     with client.lease("v1"):
        ...         result = await client.create_collection("v1", "Jewelry")
        ...         client.collections_for_vault("v1")
    """

    def __init__(
        self,
        remote: RemoteStore,
        user_id: str,
        *,
        settings: Settings | None = None,
        store: EntityStore | None = None,
        clock: Callable[[], int] | None = None,
        connectivity: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize client.

        Args:
            remote: Remote store adapter
            user_id: Signed-in user
            settings: Optional settings; defaults to get_settings()
            store: Optional pre-populated mirror
            clock: Millisecond clock for provisional timestamps
            connectivity: Returns False when the backend is unreachable
        """
        if not user_id:
            raise ValidationError("user_id is required", field_name="user_id")
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.remote = remote
        self.store = store or EntityStore()
        self.selection = SelectionState()
        self._connectivity = connectivity

        self.arena = SubscriptionArena(remote, self.store)
        self.guard = ConflictGuard(self.store)
        self.manager = OptimisticMutationManager(
            self.store,
            remote,
            user_id,
            settings=self.settings,
            clock=clock,
            connectivity=connectivity,
            selection=self.selection,
            guard=self.guard,
        )
        self.orchestrator = MoveCloneOrchestrator(
            self.store,
            remote,
            self.manager,
            settings=self.settings,
            connectivity=connectivity,
        )
        self._unsubscribes: list[Unsubscribe] = []

    # Lifecycle

    @property
    def started(self) -> bool:
        return bool(self._unsubscribes)

    def start(self) -> None:
        """Open the user's vault and membership listeners."""
        if self._unsubscribes:
            return
        self._unsubscribes.append(self.remote.subscribe_vaults(self.user_id, self.store.replace_vaults))
        self._unsubscribes.append(
            self.remote.subscribe_memberships(self.user_id, self._on_memberships)
        )
        logger.info("Vault client started", extra={"user_id": self.user_id})

    def _on_memberships(self, items: Iterable[Membership | dict[str, Any]]) -> None:
        self.store.replace_memberships(
            m if isinstance(m, Membership) else Membership.from_document(m) for m in items
        )

    async def close(self) -> None:
        """Wait for background flushes, then drop every listener."""
        await self.manager.drain()
        self.arena.close_all()
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        self.manager.close()
        logger.info("Vault client closed", extra={"user_id": self.user_id})

    async def __aenter__(self) -> VaultClient:
        self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def is_online(self) -> bool:
        return self._connectivity() if self._connectivity is not None else True

    # Subscriptions

    def retain_collections(self, vault_id: str) -> int:
        return self.arena.retain_collections(vault_id)

    def release_collections(self, vault_id: str) -> int:
        return self.arena.release_collections(vault_id)

    def retain_assets(self, vault_id: str) -> int:
        return self.arena.retain_assets(vault_id)

    def release_assets(self, vault_id: str) -> int:
        return self.arena.release_assets(vault_id)

    @contextmanager
    def lease(self, vault_id: str) -> Iterator[None]:
        with self.arena.lease(vault_id):
            yield

    # Views

    def owned_vaults(self) -> list[Vault]:
        return [v for v in self.store.owned_vaults(self.user_id) if v.id not in self.manager.tombstones]

    def shared_vaults(self) -> list[Vault]:
        return [v for v in self.store.shared_vaults(self.user_id) if v.id not in self.manager.tombstones]

    def collections_for_vault(self, vault_id: str) -> list[Collection]:
        return self.manager.collections_for_vault(vault_id)

    def assets_for_collection(self, collection_id: str) -> list[Asset]:
        return self.manager.assets_for_collection(collection_id)

    def assets_for_vault(self, vault_id: str) -> list[Asset]:
        return self.manager.assets_for_vault(vault_id)

    def vault_total_value(self, vault_id: str) -> float:
        """Sum of quantity * estimated_value over the merged asset view."""
        return sum(a.total_value for a in self.assets_for_vault(vault_id))

    def draft_for(self, kind: EntityKind, parent_id: str) -> dict[str, Any]:
        return self.manager.draft_for(kind, parent_id)

    def reload_pending(self, node_id: str) -> bool:
        return self.guard.reload_pending(node_id)

    # Capabilities

    def capabilities_for_vault(self, vault_id: str) -> VaultCapabilities:
        return vault_capabilities(
            self.store.get_role_for_vault(vault_id, self.user_id),
            can_create_collections=self.store.can_create_collections_in_vault(vault_id, self.user_id),
        )

    def capabilities_for_collection(self, collection_id: str) -> CollectionCapabilities:
        """Capabilities on a collection, provisional ones included."""
        collection = self.manager.find_collection(collection_id)
        can_create = (
            collection is not None and self.store.can_create_in_vault(collection.vault_id, self.user_id)
        )
        return collection_capabilities(
            self.manager.role_for_collection(collection_id), can_create_assets=can_create
        )

    def capabilities_for_asset(self, asset_id: str) -> AssetCapabilities:
        return asset_capabilities(self.manager.role_for_asset(asset_id))

    # Mutations

    async def create_vault(self, name: str, description: str = "") -> MutationResult:
        return await self.manager.create_vault(name, description)

    async def create_collection(self, vault_id: str, name: str, description: str = "") -> MutationResult:
        return await self.manager.create_collection(vault_id, name, description)

    async def create_asset(self, collection_id: str, title: str, **fields: Any) -> MutationResult:
        return await self.manager.create_asset(collection_id, title, **fields)

    async def update_vault(self, vault_id: str, patch: dict[str, Any]) -> MutationResult:
        return await self.manager.update_vault(vault_id, patch)

    async def update_collection(self, collection_id: str, patch: dict[str, Any]) -> MutationResult:
        return await self.manager.update_collection(collection_id, patch)

    async def update_asset(self, asset_id: str, patch: dict[str, Any]) -> MutationResult:
        return await self.manager.update_asset(asset_id, patch)

    async def delete_vault(self, vault_id: str) -> MutationResult:
        return await self.manager.delete_vault(vault_id)

    async def delete_collection(self, collection_id: str) -> MutationResult:
        return await self.manager.delete_collection(collection_id)

    async def delete_asset(self, asset_id: str) -> MutationResult:
        return await self.manager.delete_asset(asset_id)

    async def move_collection(self, collection_id: str, target_vault_id: str) -> MutationResult:
        return await self.orchestrator.move_collection(collection_id, target_vault_id)

    async def move_asset(
        self, asset_id: str, target_vault_id: str, target_collection_id: str
    ) -> MutationResult:
        return await self.orchestrator.move_asset(asset_id, target_vault_id, target_collection_id)

    async def clone_collection(self, collection_id: str, *, include_assets: bool = True) -> MutationResult:
        return await self.orchestrator.clone_collection(collection_id, include_assets=include_assets)

    async def clone_asset(self, asset_id: str) -> MutationResult:
        return await self.orchestrator.clone_asset(asset_id)

    def move_targets_for_collection(self, collection_id: str) -> list[Vault]:
        return self.orchestrator.move_targets_for_collection(collection_id)

    def move_targets_for_asset(self, asset_id: str) -> list[MoveTarget]:
        return self.orchestrator.move_targets_for_asset(asset_id)

    async def drain(self) -> None:
        await self.manager.drain()

    # Invitations and sharing

    async def list_my_invitations(self) -> list[Invitation]:
        return await self.remote.list_my_invitations(self.user_id)

    async def accept_invitation_code(self, code: str) -> MutationResult:
        """Join a vault with an invite code.

        Returns:
            MutationResult whose id is the joined vault id
        """
        clean = (code or "").strip()
        if not clean:
            return MutationResult.failure(ErrorCode.VALIDATION, "Enter an invite code")
        if not self.is_online():
            return MutationResult.offline()
        invitation = next(
            (i for i in await self.remote.list_my_invitations(self.user_id) if i.code == clean), None
        )
        result = await self.remote.accept_invitation_code(clean, self.user_id)
        if not result.ok:
            return MutationResult.failure(ErrorCode.REJECTED, result.message or "Unable to accept invitation")
        if result.vault_id and self.store.active_membership(result.vault_id, self.user_id) is None:
            self.store.upsert_membership(
                Membership(
                    user_id=self.user_id,
                    vault_id=result.vault_id,
                    role=normalize_role(invitation.role) if invitation else None,
                    can_create=invitation.can_create if invitation else False,
                )
            )
        logger.info("Invitation accepted", extra={"user_id": self.user_id, "vault_id": result.vault_id})
        return MutationResult.success(result.vault_id)

    async def deny_invitation_code(self, code: str) -> MutationResult:
        clean = (code or "").strip()
        if not clean:
            return MutationResult.failure(ErrorCode.VALIDATION, "Enter an invite code")
        if not self.is_online():
            return MutationResult.offline()
        result = await self.remote.deny_invitation_code(clean, self.user_id)
        if not result.ok:
            return MutationResult.failure(ErrorCode.REJECTED, result.message or "Unable to deny invitation")
        return MutationResult.success(result.id)

    async def invite_to_vault(
        self, vault_id: str, invitee: str, role: str, *, can_create: bool = False
    ) -> MutationResult:
        """Invite a user to a vault (owner only)."""
        if not invitee or not invitee.strip():
            raise ValidationError("invitee is required", field_name="invitee")
        if not self.is_online():
            return MutationResult.offline()
        if not self.capabilities_for_vault(vault_id).can_share:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to share", id=vault_id)
        result = await self.remote.create_invitation(
            vault_id, invitee.strip(), normalize_role(role) or "reviewer", can_create=can_create
        )
        if not result.ok:
            return MutationResult.failure(ErrorCode.REJECTED, result.message or "Unable to send invitation")
        return MutationResult.success(result.id)

    async def revoke_membership(self, vault_id: str, user_id: str) -> MutationResult:
        """Revoke a delegate's access to a vault (owner only)."""
        if not self.is_online():
            return MutationResult.offline()
        if not self.capabilities_for_vault(vault_id).can_share:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to share", id=vault_id)
        result = await self.remote.revoke_membership(vault_id, user_id)
        if not result.ok:
            return MutationResult.failure(ErrorCode.REJECTED, result.message or "Unable to revoke access")
        return MutationResult.success(user_id)
