"""
Remote document store abstraction for VaultSync.

The managed backend is the source of truth for vaults, collections,
assets, memberships and invitations. The client core talks to it only
through the RemoteStore protocol:
- Async create/update/move/delete calls returning RemoteResult
- Synchronous subscribe calls returning an unsubscribe callable
- Invitation and membership management

Invariants:
    - Expected failures come back as ok=False, never as exceptions
    - Stale writes are rejected with code "conflict"
    - Subscribers receive full snapshots, not deltas

How to change safely:
    - New backends must implement the RemoteStore protocol
    - Run the integration suite against the in-memory store first
"""

from .base import CONFLICT_CODE, RemoteResult, RemoteStore, Unsubscribe
from .memory import InMemoryRemoteStore

__all__ = [
    "RemoteStore",
    "RemoteResult",
    "Unsubscribe",
    "CONFLICT_CODE",
    "InMemoryRemoteStore",
]
