"""
Cross-container moves and clones.

Moves are not optimistic: every precondition is checked locally, then a
single remote call is made, and only on success is the mirror updated.
Clones reuse the optimistic create path of OptimisticMutationManager.

Destination rules:
    - The source must grant can_move (or can_clone)
    - The destination vault must be owned by the source entity's owner,
      so a delegate cannot push data into someone else's vault
    - For assets the destination collection must lie in the destination vault
    - Provisional sources cannot move; they have no server id yet

Invariants:
    - A rejected precondition never reaches the remote store
    - A failed remote move leaves the mirror untouched
    - Moving a collection carries its assets' vault_id along
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from ..access.capabilities import asset_capabilities, collection_capabilities
from ..config import Settings, get_settings
from ..errors import ErrorCode, ValidationError
from ..models import Collection, Vault, clamp_name
from ..remote.base import RemoteStore
from .optimistic import OptimisticMutationManager
from .results import MutationResult
from .store import EntityStore

logger = logging.getLogger(__name__)


@dataclass
class MoveTarget:
    """A vault an asset may move into, with its eligible collections."""

    vault: Vault
    collections: list[Collection] = field(default_factory=list)


class MoveCloneOrchestrator:
    """Validates destinations and runs move and clone operations."""

    def __init__(
        self,
        store: EntityStore,
        remote: RemoteStore,
        manager: OptimisticMutationManager,
        *,
        settings: Settings | None = None,
        connectivity: Callable[[], bool] | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._manager = manager
        self._settings = settings or get_settings()
        self._connectivity = connectivity

    def _online(self) -> bool:
        return self._connectivity() if self._connectivity is not None else True

    def _copy_name(self, name: str) -> str:
        base = name.strip() or "Untitled"
        return clamp_name(f"{base}{self._settings.copy_suffix}", self._settings.name_max_length)

    # Targets

    def move_targets_for_collection(self, collection_id: str) -> list[Vault]:
        """Vaults a collection may move into: its owner's other vaults."""
        collection = self._manager.find_collection(collection_id)
        if collection is None:
            return []
        targets = [
            v
            for v in self._store.owned_vaults(collection.owner_id)
            if v.id != collection.vault_id and v.id not in self._manager.tombstones
        ]
        return sorted(targets, key=lambda v: v.name.lower())

    def move_targets_for_asset(self, asset_id: str) -> list[MoveTarget]:
        """Vaults of the asset's owner with the confirmed collections in each.

        The asset's current collection is left out; vaults with no eligible
        collection are dropped.
        """
        asset = self._manager.find_asset(asset_id)
        if asset is None:
            return []
        targets = []
        for vault in sorted(self._store.owned_vaults(asset.owner_id), key=lambda v: v.name.lower()):
            if vault.id in self._manager.tombstones:
                continue
            collections = [
                c
                for c in self._manager.collections_for_vault(vault.id)
                if c.id != asset.collection_id
                and c.owner_id == asset.owner_id
                and not self._manager.is_provisional(c.id)
            ]
            if collections:
                targets.append(MoveTarget(vault=vault, collections=collections))
        return targets

    # Moves

    async def move_collection(self, collection_id: str, target_vault_id: str) -> MutationResult:
        """Move a collection, and all of its assets, to another vault.

        Raises:
            ValidationError: If either id is blank
        """
        if not collection_id:
            raise ValidationError("collection_id is required", field_name="collection_id")
        if not target_vault_id:
            raise ValidationError("target_vault_id is required", field_name="target_vault_id")
        if not self._online():
            return MutationResult.offline()
        if self._manager.is_provisional(collection_id):
            return MutationResult.failure(
                ErrorCode.PENDING, "Collection is still being saved", id=collection_id
            )

        real_id = self._manager.resolve_id(collection_id)
        collection = self._manager.find_collection(real_id)
        if collection is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Collection not found")
        if not collection_capabilities(self._manager.role_for_collection(real_id)).can_move:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to move", id=real_id)

        target = self._store.get_vault(target_vault_id)
        if target is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Destination vault not found")
        if target.owner_id != collection.owner_id:
            logger.info(
                "Move into foreign vault refused",
                extra={"collection_id": real_id, "target_vault_id": target_vault_id},
            )
            return MutationResult.failure(
                ErrorCode.PERMISSION_DENIED,
                "Destination vault belongs to a different owner",
                id=real_id,
            )
        if target_vault_id == collection.vault_id:
            return MutationResult.success(real_id)

        result = await self._remote.move_collection(real_id, target_vault_id)
        if not result.ok:
            return MutationResult.failure(
                ErrorCode.REJECTED, result.message or "Unable to move collection", id=real_id
            )
        self._manager.apply_move_collection(real_id, target_vault_id)
        logger.info(
            "Collection moved",
            extra={"collection_id": real_id, "from_vault_id": collection.vault_id, "to_vault_id": target_vault_id},
        )
        return MutationResult.success(real_id)

    async def move_asset(
        self, asset_id: str, target_vault_id: str, target_collection_id: str
    ) -> MutationResult:
        """Move an asset to a collection, possibly in another vault.

        Raises:
            ValidationError: If any id is blank
        """
        for name, value in (
            ("asset_id", asset_id),
            ("target_vault_id", target_vault_id),
            ("target_collection_id", target_collection_id),
        ):
            if not value:
                raise ValidationError(f"{name} is required", field_name=name)
        if not self._online():
            return MutationResult.offline()
        if self._manager.is_provisional(asset_id):
            return MutationResult.failure(ErrorCode.PENDING, "Asset is still being saved", id=asset_id)
        if self._manager.is_provisional(target_collection_id):
            return MutationResult.failure(
                ErrorCode.PENDING, "Destination collection is still being saved", id=target_collection_id
            )

        real_id = self._manager.resolve_id(asset_id)
        asset = self._manager.find_asset(real_id)
        if asset is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Asset not found")
        if not asset_capabilities(self._manager.role_for_asset(real_id)).can_move:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to move", id=real_id)

        target_vault = self._store.get_vault(target_vault_id)
        if target_vault is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Destination vault not found")
        if target_vault.owner_id != asset.owner_id:
            logger.info(
                "Move into foreign vault refused",
                extra={"asset_id": real_id, "target_vault_id": target_vault_id},
            )
            return MutationResult.failure(
                ErrorCode.PERMISSION_DENIED,
                "Destination vault belongs to a different owner",
                id=real_id,
            )
        target_collection = self._manager.find_collection(self._manager.resolve_id(target_collection_id))
        if target_collection is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Destination collection not found")
        if target_collection.vault_id != target_vault_id:
            return MutationResult.failure(
                ErrorCode.VALIDATION, "Destination collection is not in the destination vault", id=real_id
            )
        if target_collection.id == asset.collection_id:
            return MutationResult.success(real_id)

        result = await self._remote.move_asset(real_id, target_vault_id, target_collection.id)
        if not result.ok:
            return MutationResult.failure(
                ErrorCode.REJECTED, result.message or "Unable to move asset", id=real_id
            )
        self._manager.apply_move_asset(real_id, target_vault_id, target_collection.id)
        logger.info(
            "Asset moved",
            extra={"asset_id": real_id, "to_vault_id": target_vault_id, "to_collection_id": target_collection.id},
        )
        return MutationResult.success(real_id)

    # Clones

    async def clone_collection(self, collection_id: str, *, include_assets: bool = True) -> MutationResult:
        """Clone a collection into its vault as "<name> (Copy)".

        Assets are copied under their own titles once the new collection
        is confirmed.
        """
        if not self._online():
            return MutationResult.offline()
        source = self._manager.find_collection(collection_id)
        if source is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Collection not found")
        if not collection_capabilities(self._manager.role_for_collection(collection_id)).can_clone:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to clone", id=source.id)

        assets = self._manager.assets_for_collection(source.id) if include_assets else []
        result = await self._manager.create_collection(
            source.vault_id, self._copy_name(source.name), source.description
        )
        if not result.ok or result.id is None:
            return result

        for asset in assets:
            copied = await self._manager.create_asset(
                result.id,
                asset.title,
                category=asset.category,
                quantity=asset.quantity,
                estimated_value=asset.estimated_value,
            )
            if not copied.ok:
                logger.warning(
                    "Asset copy failed during collection clone",
                    extra={"source_asset_id": asset.id, "collection_id": result.id, "message": copied.message},
                )
        return result

    async def clone_asset(self, asset_id: str) -> MutationResult:
        """Clone an asset into its collection as "<title> (Copy)"."""
        if not self._online():
            return MutationResult.offline()
        source = self._manager.find_asset(asset_id)
        if source is None:
            return MutationResult.failure(ErrorCode.NOT_FOUND, "Asset not found")
        if not asset_capabilities(self._manager.role_for_asset(asset_id)).can_clone:
            return MutationResult.failure(ErrorCode.PERMISSION_DENIED, "No permission to clone", id=source.id)
        return await self._manager.create_asset(
            source.collection_id,
            self._copy_name(source.title),
            category=source.category,
            quantity=source.quantity,
            estimated_value=source.estimated_value,
        )
