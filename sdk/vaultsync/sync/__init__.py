"""
Sync module for VaultSync - optimistic local state over a remote store.

This module handles:
- Mirroring the remote hierarchy (EntityStore)
- Reference-counted per-vault subscriptions (SubscriptionArena)
- Optimistic creates, deletes and edits (OptimisticMutationManager)
- Stale-write detection (ConflictGuard)
- Moves and clones across containers (MoveCloneOrchestrator)

Invariants:
    - One EntityStore is shared by every component of a client
    - Local changes land before the remote call is awaited
"""

from .conflict import CONFLICT_MESSAGE, ConflictGuard
from .optimistic import OptimisticEntry, OptimisticMutationManager
from .orchestrator import MoveCloneOrchestrator, MoveTarget
from .results import OFFLINE_MESSAGE, MutationResult
from .store import EntityStore, StoreListener
from .subscriptions import ASSETS, COLLECTIONS, SubscriptionArena, SubscriptionSlot

__all__ = [
    "EntityStore",
    "StoreListener",
    "SubscriptionArena",
    "SubscriptionSlot",
    "COLLECTIONS",
    "ASSETS",
    "OptimisticEntry",
    "OptimisticMutationManager",
    "ConflictGuard",
    "CONFLICT_MESSAGE",
    "MoveCloneOrchestrator",
    "MoveTarget",
    "MutationResult",
    "OFFLINE_MESSAGE",
]
