"""
Optimistic mutation engine for VaultSync.

User actions are applied to local state before the remote store confirms
them, so the UI never waits on a round-trip:

- Create: a provisional entity (temp id) is appended to an optimistic list
  and the remote create is issued. On success the entry is promoted in
  place to the server id; on failure it is removed and the draft restored.
- Pending-on-parent: an asset created under a still-provisional collection
  is held back and flushed, in creation order, once the parent confirms.
- Dedup: merged views hide optimistic entries the mirror already covers,
  either by id or by the near-duplicate heuristic (same parent,
  case-insensitive title, created within the dedup window).
- Delete: the node is tombstoned immediately and restored on failure.

Invariants:
    - Local state changes complete before the first await of a mutation
    - Rollback of a failed or raising create runs in a finally block
    - Promotion keeps the entry object; only its reference and id change
    - Promoting the same entry twice is a no-op
    - Pending children of a parent that fails are discarded with it

How to change safely:
    - Every new mutation must return MutationResult, never raise for
      expected failures
    - Keep the capability check ahead of any local change
    - The near-duplicate heuristic is approximate: two distinct entities
      with the same title created inside the window collapse in views
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

from ..access.capabilities import asset_capabilities, collection_capabilities, vault_capabilities
from ..config import Settings, get_settings
from ..errors import ErrorCode, ValidationError
from ..models import (
    EDITABLE_FIELDS,
    Asset,
    Collection,
    Confirmed,
    EntityKind,
    EntityRef,
    Provisional,
    SelectionState,
    Vault,
    clamp_name,
    now_ms,
)
from ..remote.base import RemoteStore
from .conflict import ConflictGuard
from .results import MutationResult
from .store import EntityStore

logger = logging.getLogger(__name__)

T = TypeVar("T", Collection, Asset)

Child = Union[Collection, Asset]


@dataclass
class OptimisticEntry(Generic[T]):
    """A locally created entity awaiting (or just past) remote confirmation.

    Attributes:
        temp_id: Id assigned at creation; kept after promotion as an alias
        ref: Provisional until the remote create succeeds, then Confirmed
        entity: The entity shown in views; its id follows ref
        draft: User input to restore if the create fails
        pending_parent_temp_id: Provisional parent this entry waits on
    """

    temp_id: str
    ref: EntityRef
    entity: T
    draft: dict[str, Any] = field(default_factory=dict)
    pending_parent_temp_id: str | None = None

    @property
    def id(self) -> str:
        return self.ref.id

    @property
    def is_provisional(self) -> bool:
        return isinstance(self.ref, Provisional)


class OptimisticMutationManager:
    """Applies mutations locally first and reconciles with the remote store.

    Example:
        >>> manager = OptimisticMutationManager(store, remote, user_id="alice")
        >>> result = await manager.create_collection("v1", "Jewelry")
        >>> result.ok, result.id
        (True, 'col_1')
    """

    def __init__(
        self,
        store: EntityStore,
        remote: RemoteStore,
        user_id: str,
        *,
        settings: Settings | None = None,
        clock: Callable[[], int] | None = None,
        connectivity: Callable[[], bool] | None = None,
        selection: SelectionState | None = None,
        guard: ConflictGuard | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Entity mirror shared with the subscription arena
            remote: Remote store adapter
            user_id: Acting user
            settings: Limits and temp id prefix
            clock: Millisecond clock for provisional timestamps
            connectivity: Returns False when the backend is unreachable
            selection: UI selection to keep pointing at promoted ids
            guard: Conflict guard used for edits
        """
        self._store = store
        self._remote = remote
        self._user_id = user_id
        self._settings = settings or get_settings()
        self._clock = clock or now_ms
        self._connectivity = connectivity
        self._selection = selection
        self._guard = guard or ConflictGuard(store)

        self._temp_counter = itertools.count(1)
        self._collections: list[OptimisticEntry[Collection]] = []
        self._assets: list[OptimisticEntry[Asset]] = []
        self._pending: dict[str, list[OptimisticEntry[Asset]]] = {}
        self._aliases: dict[str, str] = {}
        self._tombstones: dict[str, EntityKind] = {}
        self._drafts: dict[tuple[EntityKind, str], dict[str, Any]] = {}
        self._outcomes: dict[str, MutationResult] = {}
        self._tasks: set[asyncio.Task[None]] = set()

        self._remove_listener = store.add_listener(lambda kind, vault_id: self.reconcile())

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def guard(self) -> ConflictGuard:
        return self._guard

    # Introspection

    @property
    def optimistic_collections(self) -> list[Collection]:
        return [e.entity for e in self._collections]

    @property
    def optimistic_assets(self) -> list[Asset]:
        return [e.entity for e in self._assets]

    @property
    def tombstones(self) -> dict[str, EntityKind]:
        return dict(self._tombstones)

    def pending_children(self, parent_temp_id: str) -> list[Asset]:
        """Assets still waiting on a provisional collection, in creation order."""
        return [e.entity for e in self._pending.get(parent_temp_id, [])]

    def is_provisional(self, node_id: str) -> bool:
        entry = self._find_entry(node_id)
        return entry is not None and entry.is_provisional

    def resolve_id(self, node_id: str) -> str:
        """Map a promoted temp id to its real id; other ids pass through."""
        return self._aliases.get(node_id, node_id)

    def outcome(self, temp_id: str) -> MutationResult | None:
        """Final result of a create that was accepted as pending."""
        return self._outcomes.get(temp_id)

    def draft_for(self, kind: EntityKind, parent_id: str) -> dict[str, Any]:
        """Draft restored by the last failed create under a parent."""
        return dict(self._drafts.get((kind, parent_id), {}))

    def clear_draft(self, kind: EntityKind, parent_id: str) -> None:
        self._drafts.pop((kind, parent_id), None)

    # Helpers

    def _online(self) -> bool:
        return self._connectivity() if self._connectivity is not None else True

    def _clamp(self, value: Any) -> str:
        return clamp_name(value, self._settings.name_max_length)

    def new_temp_id(self) -> str:
        return f"{self._settings.temp_id_prefix}{next(self._temp_counter)}"

    def _find_entry(self, node_id: str) -> OptimisticEntry[Any] | None:
        for entry in itertools.chain(self._collections, self._assets):
            if entry.temp_id == node_id or entry.id == node_id:
                return entry
        return None

    def _find_collection_entry(self, node_id: str) -> OptimisticEntry[Collection] | None:
        for entry in self._collections:
            if entry.temp_id == node_id or entry.id == node_id:
                return entry
        return None

    def _find_asset_entry(self, node_id: str) -> OptimisticEntry[Asset] | None:
        for entry in self._assets:
            if entry.temp_id == node_id or entry.id == node_id:
                return entry
        return None

    def find_collection(self, collection_id: str) -> Collection | None:
        """Look up a collection in the mirror, then among optimistic entries."""
        collection = self._store.get_collection(self.resolve_id(collection_id))
        if collection is not None:
            return collection
        entry = self._find_collection_entry(collection_id)
        return entry.entity if entry else None

    def find_asset(self, asset_id: str) -> Asset | None:
        asset = self._store.get_asset(self.resolve_id(asset_id))
        if asset is not None:
            return asset
        entry = self._find_asset_entry(asset_id)
        return entry.entity if entry else None

    def role_for_collection(self, collection_id: str) -> str | None:
        collection = self.find_collection(collection_id)
        if collection is None:
            return None
        return self._store.get_role_for_vault(collection.vault_id, self._user_id)

    def role_for_asset(self, asset_id: str) -> str | None:
        asset = self.find_asset(asset_id)
        if asset is None:
            return None
        return self._store.get_role_for_vault(asset.vault_id, self._user_id)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for every background flush, including ones they start."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def close(self) -> None:
        self._remove_listener()

    # Promotion

    def promote(self, temp_id: str, real_id: str, edited_at: int | None = None) -> bool:
        """Promote a provisional entity to its confirmed id.

        Returns:
            True if the entry changed, False if unknown or already promoted
        """
        entry = self._find_entry(temp_id)
        if entry is None:
            return False
        return self._promote_entry(entry, real_id, edited_at)

    def _promote_entry(self, entry: OptimisticEntry[Any], real_id: str, edited_at: int | None = None) -> bool:
        if not entry.is_provisional:
            return False

        entry.ref = Confirmed(real_id)
        entry.entity.id = real_id
        if edited_at is not None:
            entry.entity.edited_at = edited_at
        self._aliases[entry.temp_id] = real_id
        if self._selection is not None:
            self._selection.rename(entry.temp_id, real_id)

        logger.info(
            "Provisional entity confirmed",
            extra={"temp_id": entry.temp_id, "id": real_id},
        )

        children = self._pending.get(entry.temp_id)
        if children:
            for child in children:
                child.entity.collection_id = real_id
            self._spawn(self._flush_pending(entry.temp_id))

        self.reconcile()
        return True

    # Reconciliation

    def _is_near_duplicate(self, candidate: Child, authoritative: Iterable[Child]) -> bool:
        title = candidate.title.casefold()
        window = self._settings.dedup_window_ms
        for real in authoritative:
            if real.id == candidate.id:
                return True
            if (
                real.parent_id == candidate.parent_id
                and real.title.casefold() == title
                and abs(real.created_at - candidate.created_at) <= window
            ):
                return True
        return False

    def reconcile(self) -> int:
        """Drop confirmed optimistic entries the mirror now covers.

        Returns:
            Number of entries removed
        """
        removed = 0
        for entry in list(self._collections):
            if entry.is_provisional:
                continue
            siblings = self._store.collections_in_vault(entry.entity.vault_id)
            if self._is_near_duplicate(entry.entity, siblings):
                self._collections.remove(entry)
                removed += 1
        for entry in list(self._assets):
            if entry.is_provisional:
                continue
            siblings = self._store.assets_in_collection(entry.entity.collection_id)
            if self._is_near_duplicate(entry.entity, siblings):
                self._assets.remove(entry)
                removed += 1
        if removed:
            logger.debug("Optimistic entries reconciled", extra={"removed": removed})
        return removed

    # Views

    def _collection_hidden(self, collection: Collection) -> bool:
        return collection.id in self._tombstones or collection.vault_id in self._tombstones

    def _asset_hidden(self, asset: Asset) -> bool:
        return (
            asset.id in self._tombstones
            or asset.collection_id in self._tombstones
            or asset.vault_id in self._tombstones
        )

    def _merge(self, authoritative: list[Child], candidates: Iterable[Child]) -> list[Child]:
        merged = list(authoritative)
        for candidate in candidates:
            if self._is_near_duplicate(candidate, merged):
                continue
            merged.append(candidate)
        return merged

    def collections_for_vault(self, vault_id: str) -> list[Collection]:
        """Authoritative and optimistic collections of a vault, deduped."""
        if vault_id in self._tombstones:
            return []
        authoritative = [
            c for c in self._store.collections_in_vault(vault_id) if not self._collection_hidden(c)
        ]
        candidates = [
            e.entity
            for e in self._collections
            if e.entity.vault_id == vault_id and not self._collection_hidden(e.entity)
        ]
        return self._merge(authoritative, candidates)

    def assets_for_collection(self, collection_id: str) -> list[Asset]:
        """Authoritative and optimistic assets of a collection, deduped."""
        real_id = self.resolve_id(collection_id)
        if real_id in self._tombstones or collection_id in self._tombstones:
            return []
        parents = {collection_id, real_id}
        authoritative = [
            a for a in self._store.assets_in_collection(real_id) if not self._asset_hidden(a)
        ]
        candidates = [
            e.entity
            for e in self._assets
            if e.entity.collection_id in parents and not self._asset_hidden(e.entity)
        ]
        return self._merge(authoritative, candidates)

    def assets_for_vault(self, vault_id: str) -> list[Asset]:
        if vault_id in self._tombstones:
            return []
        authoritative = [a for a in self._store.assets_in_vault(vault_id) if not self._asset_hidden(a)]
        candidates = [
            e.entity
            for e in self._assets
            if e.entity.vault_id == vault_id and not self._asset_hidden(e.entity)
        ]
        return self._merge(authoritative, candidates)

    # Creates

    async def create_vault(self, name: str, description: str = "") -> MutationResult:
        """Create a vault owned by the acting user.

        Vault creation is not optimistic; the vault appears once confirmed.
        """
        if not self._online():
            return MutationResult.offline()
        clean = self._clamp(name) or "Untitled"
        result = await self._remote.create_vault(
            {"name": clean, "description": description, "owner_id": self._user_id}
        )
        if not result.ok or not result.id:
            return MutationResult.failure(
                ErrorCode.REJECTED,
                result.message or "Unable to create vault",
                draft={"name": clean, "description": description},
            )
        if self._store.get_vault(result.id) is None:
            ts = result.edited_at or self._clock()
            self._store.upsert_vault(
                Vault(
                    id=result.id,
                    name=clean,
                    owner_id=self._user_id,
                    created_at=ts,
                    edited_at=ts,
                    description=description,
                )
            )
        return MutationResult.success(result.id)

    async def create_collection(self, vault_id: str, name: str, description: str = "") -> MutationResult:
        """Create a collection optimistically.

        Args:
            vault_id: Owning vault
            name: Collection name, clamped to the configured maximum
            description: Free-form description

        Returns:
            MutationResult with the confirmed id, or the restored draft on failure

        Raises:
            ValidationError: If vault_id is blank
        """
        if not vault_id:
            raise ValidationError("vault_id is required", field_name="vault_id")
        if not self._online():
            return MutationResult.offline()
        vault = self._store.get_vault(vault_id)
        if vault is None or vault_id in self._tombstones:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Vault not found")
        if not self._store.can_create_collections_in_vault(vault_id, self._user_id):
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to add collections")

        clean = self._clamp(name) or "Untitled"
        temp_id = self.new_temp_id()
        ts = self._clock()
        entry: OptimisticEntry[Collection] = OptimisticEntry(
            temp_id=temp_id,
            ref=Provisional(temp_id),
            entity=Collection(
                id=temp_id,
                vault_id=vault_id,
                owner_id=vault.owner_id,
                name=clean,
                created_at=ts,
                edited_at=ts,
                description=description,
            ),
            draft={"name": clean, "description": description},
        )
        self._collections.append(entry)
        self.clear_draft(EntityKind.COLLECTION, vault_id)
        logger.debug("Optimistic collection added", extra={"temp_id": temp_id, "vault_id": vault_id})

        confirmed = False
        try:
            result = await self._remote.create_collection(
                {
                    "vault_id": vault_id,
                    "owner_id": vault.owner_id,
                    "name": clean,
                    "description": description,
                }
            )
            if result.ok and result.id:
                self._promote_entry(entry, result.id, result.edited_at)
                confirmed = True
                return MutationResult.success(result.id)
            return self._failed_create(
                entry, EntityKind.COLLECTION, vault_id, result.message or "Unable to create collection"
            )
        finally:
            if not confirmed:
                self._discard_collection_entry(entry)

    async def create_asset(
        self,
        collection_id: str,
        title: str,
        *,
        category: str = "",
        quantity: int = 1,
        estimated_value: float | None = None,
    ) -> MutationResult:
        """Create an asset optimistically.

        When the collection is itself still provisional the asset is held
        back (``pending=True``) and sent once the collection confirms.

        Raises:
            ValidationError: If collection_id is blank or quantity is negative
        """
        if not collection_id:
            raise ValidationError("collection_id is required", field_name="collection_id")
        if quantity < 0:
            raise ValidationError("quantity must not be negative", field_name="quantity")
        if not self._online():
            return MutationResult.offline()

        parent_entry = self._find_collection_entry(collection_id)
        parent = self.find_collection(collection_id)
        if parent is None or self._collection_hidden(parent):
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Collection not found")
        if not self._store.can_create_in_vault(parent.vault_id, self._user_id):
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to add assets")

        pending_parent = parent_entry.temp_id if parent_entry and parent_entry.is_provisional else None
        clean = self._clamp(title) or "Untitled"
        temp_id = self.new_temp_id()
        ts = self._clock()
        entry: OptimisticEntry[Asset] = OptimisticEntry(
            temp_id=temp_id,
            ref=Provisional(temp_id),
            entity=Asset(
                id=temp_id,
                collection_id=parent.id,
                vault_id=parent.vault_id,
                owner_id=parent.owner_id,
                title=clean,
                category=category,
                quantity=quantity,
                estimated_value=estimated_value,
                created_at=ts,
                edited_at=ts,
            ),
            draft={
                "title": clean,
                "category": category,
                "quantity": quantity,
                "estimated_value": estimated_value,
            },
            pending_parent_temp_id=pending_parent,
        )
        self._assets.append(entry)
        self.clear_draft(EntityKind.ASSET, parent.id)

        if pending_parent is not None:
            self._pending.setdefault(pending_parent, []).append(entry)
            logger.debug(
                "Optimistic asset waiting on provisional collection",
                extra={"temp_id": temp_id, "parent_temp_id": pending_parent},
            )
            return MutationResult.success(temp_id, pending=True)

        logger.debug("Optimistic asset added", extra={"temp_id": temp_id, "collection_id": parent.id})
        return await self._send_asset_create(entry)

    async def _send_asset_create(self, entry: OptimisticEntry[Asset]) -> MutationResult:
        asset = entry.entity
        confirmed = False
        try:
            result = await self._remote.create_asset(
                {
                    "vault_id": asset.vault_id,
                    "collection_id": asset.collection_id,
                    "owner_id": asset.owner_id,
                    "title": asset.title,
                    "category": asset.category,
                    "quantity": asset.quantity,
                    "estimated_value": asset.estimated_value,
                }
            )
            if result.ok and result.id:
                self._promote_entry(entry, result.id, result.edited_at)
                confirmed = True
                return MutationResult.success(result.id)
            return self._failed_create(
                entry, EntityKind.ASSET, asset.collection_id, result.message or "Unable to create asset"
            )
        finally:
            if not confirmed:
                self._discard_asset_entry(entry)

    async def _flush_pending(self, parent_temp_id: str) -> None:
        """Send assets held on a now-confirmed collection, in creation order."""
        queue = self._pending.get(parent_temp_id, [])
        try:
            while queue:
                child = queue[0]
                child.pending_parent_temp_id = None
                if child in self._assets:
                    try:
                        self._outcomes[child.temp_id] = await self._send_asset_create(child)
                    except Exception as exc:
                        logger.exception(
                            "Pending asset create raised",
                            extra={"temp_id": child.temp_id, "parent_temp_id": parent_temp_id},
                        )
                        self._outcomes[child.temp_id] = MutationResult.failure(
                            ErrorCode.REJECTED, str(exc), id=child.temp_id, draft=child.draft
                        )
                if queue and queue[0] is child:
                    queue.pop(0)
        finally:
            if not queue:
                self._pending.pop(parent_temp_id, None)

    def _failed_create(
        self, entry: OptimisticEntry[Any], kind: EntityKind, parent_id: str, message: str
    ) -> MutationResult:
        self._drafts[(kind, parent_id)] = dict(entry.draft)
        logger.warning(
            "Remote create rejected",
            extra={"kind": kind.value, "temp_id": entry.temp_id, "message": message},
        )
        return MutationResult.failure(ErrorCode.REJECTED, message, id=entry.temp_id, draft=entry.draft)

    def _discard_collection_entry(self, entry: OptimisticEntry[Collection]) -> None:
        if entry in self._collections:
            self._collections.remove(entry)
        for child in self._pending.pop(entry.temp_id, []):
            self._discard_asset_entry(child)
            self._outcomes[child.temp_id] = MutationResult.failure(
                ErrorCode.ORPHANED,
                "Parent collection could not be saved",
                id=child.temp_id,
                draft=child.draft,
            )
            logger.warning(
                "Discarded orphaned pending asset",
                extra={"temp_id": child.temp_id, "parent_temp_id": entry.temp_id},
            )

    def _discard_asset_entry(self, entry: OptimisticEntry[Asset]) -> None:
        if entry in self._assets:
            self._assets.remove(entry)

    # Moves

    def apply_move_collection(self, collection_id: str, target_vault_id: str) -> None:
        """Re-parent a confirmed collection locally after the remote move."""
        self._store.move_collection(collection_id, target_vault_id)
        for entry in self._collections:
            if entry.id == collection_id:
                entry.entity.vault_id = target_vault_id
        for entry in self._assets:
            if entry.entity.collection_id == collection_id:
                entry.entity.vault_id = target_vault_id
        if self._selection is not None and self._selection.collection_id == collection_id:
            self._selection.vault_id = target_vault_id

    def apply_move_asset(self, asset_id: str, target_vault_id: str, target_collection_id: str) -> None:
        """Re-parent a confirmed asset locally after the remote move."""
        self._store.move_asset(asset_id, target_vault_id, target_collection_id)
        for entry in self._assets:
            if entry.id == asset_id:
                entry.entity.vault_id = target_vault_id
                entry.entity.collection_id = target_collection_id
        if self._selection is not None and self._selection.asset_id == asset_id:
            self._selection.vault_id = target_vault_id
            self._selection.collection_id = target_collection_id

    # Edits

    async def update_vault(self, vault_id: str, patch: dict[str, Any]) -> MutationResult:
        vault = self._store.get_vault(vault_id)
        if vault is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Vault not found")
        caps = vault_capabilities(self._store.get_role_for_vault(vault_id, self._user_id))
        return await self._update(EntityKind.VAULT, vault_id, patch, caps.can_edit, self._remote.update_vault)

    async def update_collection(self, collection_id: str, patch: dict[str, Any]) -> MutationResult:
        caps = collection_capabilities(self.role_for_collection(collection_id))
        return await self._update(
            EntityKind.COLLECTION, collection_id, patch, caps.can_edit, self._remote.update_collection
        )

    async def update_asset(self, asset_id: str, patch: dict[str, Any]) -> MutationResult:
        if "quantity" in patch and patch["quantity"] is not None and patch["quantity"] < 0:
            raise ValidationError("quantity must not be negative", field_name="quantity")
        caps = asset_capabilities(self.role_for_asset(asset_id))
        return await self._update(EntityKind.ASSET, asset_id, patch, caps.can_edit, self._remote.update_asset)

    async def _update(
        self,
        kind: EntityKind,
        node_id: str,
        patch: dict[str, Any],
        can_edit: bool,
        send: Callable[..., Any],
    ) -> MutationResult:
        unknown = sorted(set(patch) - EDITABLE_FIELDS[kind])
        if unknown:
            raise ValidationError(
                f"Cannot edit {', '.join(unknown)} on a {kind.value}; use a move to re-parent",
                field_name=unknown[0],
            )
        if not self._online():
            return MutationResult.offline()
        if self.is_provisional(node_id):
            return MutationResult.failure(ErrorCode.PENDING, "Still saving, try again shortly", id=node_id)
        real_id = self.resolve_id(node_id)
        entry = self._find_entry(real_id)
        if self._store.get(kind, real_id) is None and entry is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, f"{kind.value.capitalize()} not found")
        if not can_edit:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to edit", id=real_id)

        clean = dict(patch)
        for key in ("name", "title"):
            if key in clean:
                clean[key] = self._clamp(clean[key]) or "Untitled"

        fallback = entry.entity.edited_at if entry is not None else None
        result = await self._guard.submit(kind, real_id, clean, send, fallback_watermark=fallback)
        if result.ok and entry is not None and self._store.get(kind, real_id) is None:
            for key, value in clean.items():
                if hasattr(entry.entity, key):
                    setattr(entry.entity, key, value)
        return result

    # Deletes

    async def delete_asset(self, asset_id: str) -> MutationResult:
        """Delete an asset, hiding it immediately.

        Only the vault owner may delete. The tombstone is lifted when the
        remote call settles either way.
        """
        if not self._online():
            return MutationResult.offline()
        if self.is_provisional(asset_id):
            return MutationResult.failure(ErrorCode.PENDING, "Asset is still being saved", id=asset_id)
        real_id = self.resolve_id(asset_id)
        asset = self.find_asset(real_id)
        if asset is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Asset not found")
        if not asset_capabilities(self.role_for_asset(real_id)).can_delete:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to delete", id=real_id)

        if real_id in self._tombstones:
            return MutationResult.failure(ErrorCode.PENDING, "Delete already in progress", id=real_id)
        self._tombstones[real_id] = EntityKind.ASSET
        try:
            result = await self._remote.delete_asset(real_id)
            if not result.ok:
                logger.warning("Remote delete rejected", extra={"asset_id": real_id, "message": result.message})
                return MutationResult.failure(
                    ErrorCode.REJECTED, result.message or "Unable to delete asset", id=real_id
                )
            entry = self._find_asset_entry(real_id)
            if entry is not None:
                self._discard_asset_entry(entry)
            self._store.discard_asset(real_id)
            return MutationResult.success(real_id)
        finally:
            self._tombstones.pop(real_id, None)

    async def delete_collection(self, collection_id: str) -> MutationResult:
        """Delete a collection and its assets (owner only)."""
        if not self._online():
            return MutationResult.offline()
        if self.is_provisional(collection_id):
            return MutationResult.failure(ErrorCode.PENDING, "Collection is still being saved", id=collection_id)
        real_id = self.resolve_id(collection_id)
        if self.find_collection(real_id) is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Collection not found")
        if not collection_capabilities(self.role_for_collection(real_id)).can_delete:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to delete", id=real_id)

        if real_id in self._tombstones:
            return MutationResult.failure(ErrorCode.PENDING, "Delete already in progress", id=real_id)
        self._tombstones[real_id] = EntityKind.COLLECTION
        try:
            result = await self._remote.delete_collection(real_id)
            if not result.ok:
                return MutationResult.failure(
                    ErrorCode.REJECTED, result.message or "Unable to delete collection", id=real_id
                )
            self._collections = [e for e in self._collections if e.id != real_id]
            self._assets = [e for e in self._assets if e.entity.collection_id != real_id]
            self._store.discard_collection(real_id)
            return MutationResult.success(real_id)
        finally:
            self._tombstones.pop(real_id, None)

    async def delete_vault(self, vault_id: str) -> MutationResult:
        """Delete a vault and everything in it (owner only)."""
        if not self._online():
            return MutationResult.offline()
        if self._store.get_vault(vault_id) is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Vault not found")
        if not vault_capabilities(self._store.get_role_for_vault(vault_id, self._user_id)).can_delete:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to delete", id=vault_id)

        if vault_id in self._tombstones:
            return MutationResult.failure(ErrorCode.PENDING, "Delete already in progress", id=vault_id)
        self._tombstones[vault_id] = EntityKind.VAULT
        try:
            result = await self._remote.delete_vault(vault_id)
            if not result.ok:
                return MutationResult.failure(
                    ErrorCode.REJECTED, result.message or "Unable to delete vault", id=vault_id
                )
            self._collections = [e for e in self._collections if e.entity.vault_id != vault_id]
            self._assets = [e for e in self._assets if e.entity.vault_id != vault_id]
            self._store.discard_vault(vault_id)
            return MutationResult.success(vault_id)
        finally:
            self._tombstones.pop(vault_id, None)
