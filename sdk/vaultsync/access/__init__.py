"""
Access module for VaultSync - delegated roles and capabilities.

This module handles:
- Role normalization (aliases, case, unknown tokens)
- Capability derivation for vaults, collections and assets
- Legacy share-role to permission-flag mapping

Invariants:
    - Vault ownership outranks any membership role
    - Resolution never consults the network
"""

from .capabilities import (
    AssetCapabilities,
    CollectionCapabilities,
    VaultCapabilities,
    asset_capabilities,
    collection_capabilities,
    vault_capabilities,
)
from .roles import (
    DelegatePermissions,
    Role,
    at_least,
    delegate_permissions,
    normalize_role,
    rank_of,
)

__all__ = [
    "Role",
    "normalize_role",
    "rank_of",
    "at_least",
    "DelegatePermissions",
    "delegate_permissions",
    "VaultCapabilities",
    "CollectionCapabilities",
    "AssetCapabilities",
    "vault_capabilities",
    "collection_capabilities",
    "asset_capabilities",
]
