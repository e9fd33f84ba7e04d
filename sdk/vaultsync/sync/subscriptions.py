"""
Reference-counted subscription lifecycle per vault.

Several UI consumers may look at the same vault at once. They share one
remote listener per (channel, vault): retaining opens it on the 0 -> 1
transition, releasing closes it on the 1 -> 0 transition.

Invariants:
    - At most one open remote subscription per (channel, vault_id)
    - count never goes negative; an unmatched release is a logged no-op
    - Snapshots are written into the EntityStore, never held here

How to change safely:
    - Every retain must be paired with exactly one release
    - Prefer lease() over manual pairing in new callers
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from ..remote.base import RemoteStore, Unsubscribe
from .store import EntityStore

logger = logging.getLogger(__name__)

COLLECTIONS = "collections"
ASSETS = "assets"


@dataclass
class SubscriptionSlot:
    """Live remote listener and the number of consumers holding it."""

    count: int
    unsubscribe: Unsubscribe


class SubscriptionArena:
    """Explicit arena of reference-counted vault subscriptions.

    Example:
        >>> arena = SubscriptionArena(remote, store)
        >>> arena.retain_collections("v1")   # opens
        >>> arena.retain_collections("v1")   # shares
        >>> arena.release_collections("v1")  # still open
        >>> arena.release_collections("v1")  # closes
    """

    def __init__(self, remote: RemoteStore, store: EntityStore) -> None:
        self._remote = remote
        self._store = store
        self._slots: dict[tuple[str, str], SubscriptionSlot] = {}

    def _retain(self, channel: str, vault_id: str, opener: Callable[[], Unsubscribe]) -> int:
        key = (channel, vault_id)
        slot = self._slots.get(key)
        if slot is not None:
            slot.count += 1
            return slot.count

        # Slot exists before opener() runs; first snapshot may arrive synchronously
        slot = SubscriptionSlot(count=1, unsubscribe=lambda: None)
        self._slots[key] = slot
        try:
            slot.unsubscribe = opener()
        except Exception:
            del self._slots[key]
            raise
        logger.debug("Subscription opened", extra={"channel": channel, "vault_id": vault_id})
        return slot.count

    def _release(self, channel: str, vault_id: str) -> int:
        key = (channel, vault_id)
        slot = self._slots.get(key)
        if slot is None:
            logger.warning(
                "Release without matching retain",
                extra={"channel": channel, "vault_id": vault_id},
            )
            return 0
        slot.count -= 1
        if slot.count > 0:
            return slot.count
        del self._slots[key]
        slot.unsubscribe()
        logger.debug("Subscription closed", extra={"channel": channel, "vault_id": vault_id})
        return 0

    def retain_collections(self, vault_id: str) -> int:
        """Retain the collections listener of a vault.

        Returns:
            Consumer count after retaining
        """
        return self._retain(
            COLLECTIONS,
            vault_id,
            lambda: self._remote.subscribe_vault_collections(
                vault_id, lambda items: self._store.replace_vault_collections(vault_id, items)
            ),
        )

    def release_collections(self, vault_id: str) -> int:
        return self._release(COLLECTIONS, vault_id)

    def retain_assets(self, vault_id: str) -> int:
        """Retain the assets listener of a vault.

        Returns:
            Consumer count after retaining
        """
        return self._retain(
            ASSETS,
            vault_id,
            lambda: self._remote.subscribe_vault_assets(
                vault_id, lambda items: self._store.replace_vault_assets(vault_id, items)
            ),
        )

    def release_assets(self, vault_id: str) -> int:
        return self._release(ASSETS, vault_id)

    @contextmanager
    def lease(self, vault_id: str) -> Iterator[None]:
        """Hold both listeners of a vault for the duration of a block."""
        self.retain_collections(vault_id)
        try:
            self.retain_assets(vault_id)
        except Exception:
            self.release_collections(vault_id)
            raise
        try:
            yield
        finally:
            self.release_assets(vault_id)
            self.release_collections(vault_id)

    def count(self, channel: str, vault_id: str) -> int:
        slot = self._slots.get((channel, vault_id))
        return slot.count if slot else 0

    def is_open(self, channel: str, vault_id: str) -> bool:
        return (channel, vault_id) in self._slots

    def close_all(self) -> None:
        """Tear down every listener regardless of counts."""
        slots = list(self._slots.items())
        self._slots.clear()
        for (channel, vault_id), slot in slots:
            slot.unsubscribe()
            logger.debug("Subscription closed", extra={"channel": channel, "vault_id": vault_id})
