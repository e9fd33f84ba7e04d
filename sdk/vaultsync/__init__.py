"""
VaultSync - client core for shared Vault/Collection/Asset hierarchies.

This package provides delegated access control and optimistic sync:
- Role normalization and capability records per hierarchy level
- A local mirror fed by reference-counted remote subscriptions
- Optimistic creates with temp-id promotion and rollback
- Stale-write detection for edits
- Ownership-checked moves and clones

Example:
    >>> from vaultsync import InMemoryRemoteStore, Vault, VaultClient
    >>>
    >>> remote = InMemoryRemoteStore()
    >>> remote.seed_vault(Vault(id="v1", name="Home", owner_id="alice"))
    >>>
    >>> async with VaultClient(remote, user_id="alice") as client:
    ...     with client.lease("v1"):
    ...         result = await client.create_collection("v1", "Jewelry")
    ...         [c.name for c in client.collections_for_vault("v1")]
    ['Jewelry']

Invariants:
    - Vault ownership outranks any membership role
    - Every mutation returns a MutationResult
    - Capability checks never touch the network

Version: 1.0.0
"""

__version__ = "1.0.0"

from .access import (
    AssetCapabilities,
    CollectionCapabilities,
    Role,
    VaultCapabilities,
    asset_capabilities,
    collection_capabilities,
    normalize_role,
    vault_capabilities,
)
from .client import VaultClient
from .config import Settings, get_settings
from .errors import (
    ErrorCode,
    NotFoundError,
    OfflineError,
    OrphanedChildError,
    PendingEntityError,
    PermissionDeniedError,
    RemoteRejectedError,
    StaleWriteError,
    ValidationError,
    VaultSyncError,
)
from .logging_setup import setup_logging
from .models import (
    Asset,
    Collection,
    Confirmed,
    EntityKind,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipStatus,
    Provisional,
    SelectionState,
    Vault,
)
from .remote import InMemoryRemoteStore, RemoteResult, RemoteStore
from .sync import (
    ConflictGuard,
    EntityStore,
    MoveCloneOrchestrator,
    MutationResult,
    OptimisticMutationManager,
    SubscriptionArena,
)

__all__ = [
    # Version
    "__version__",
    # Models
    "Vault",
    "Collection",
    "Asset",
    "Membership",
    "MembershipStatus",
    "Invitation",
    "InvitationStatus",
    "EntityKind",
    "Provisional",
    "Confirmed",
    "SelectionState",
    # Access
    "Role",
    "normalize_role",
    "VaultCapabilities",
    "CollectionCapabilities",
    "AssetCapabilities",
    "vault_capabilities",
    "collection_capabilities",
    "asset_capabilities",
    # Sync
    "EntityStore",
    "SubscriptionArena",
    "OptimisticMutationManager",
    "ConflictGuard",
    "MoveCloneOrchestrator",
    "MutationResult",
    # Remote
    "RemoteStore",
    "RemoteResult",
    "InMemoryRemoteStore",
    # Client
    "VaultClient",
    # Config
    "Settings",
    "get_settings",
    "setup_logging",
    # Errors
    "ErrorCode",
    "VaultSyncError",
    "PermissionDeniedError",
    "OfflineError",
    "RemoteRejectedError",
    "StaleWriteError",
    "OrphanedChildError",
    "NotFoundError",
    "PendingEntityError",
    "ValidationError",
]
