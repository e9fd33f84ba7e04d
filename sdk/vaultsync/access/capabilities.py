"""
Capability resolution per hierarchy level.

Each entry point takes a role and the node-specific creation flag and
returns a frozen capability record. Resolution is a pure function of the
normalized role and the flags, so it is safe to call on every render.

Derivation (identical at all levels except asset share):

    rank        edit  move  clone  delete  share
    none         -     -     -      -       -
    reviewer     -     -     -      -       -
    editor       x     -     -      -       -
    manager      x     x     x      -       asset only
    owner        x     x     x      x       x

Invariants:
    - Capabilities are monotonic in rank
    - Delete is owner-only at every level
    - Creation flags are echoed from the caller, never derived from rank
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .roles import Role, at_least, normalize_role


@dataclass(frozen=True)
class VaultCapabilities:
    role: str | None
    can_edit: bool
    can_move: bool
    can_clone: bool
    can_delete: bool
    can_share: bool
    can_create_collections: bool


@dataclass(frozen=True)
class CollectionCapabilities:
    role: str | None
    can_edit: bool
    can_move: bool
    can_clone: bool
    can_delete: bool
    can_share: bool
    can_create_assets: bool


@dataclass(frozen=True)
class AssetCapabilities:
    role: str | None
    can_edit: bool
    can_move: bool
    can_clone: bool
    can_delete: bool
    can_share: bool


def _base(role: Any) -> dict[str, Any]:
    r = normalize_role(role)
    manager = at_least(r, Role.MANAGER)
    owner = r == Role.OWNER.value
    return {
        "role": r,
        "can_edit": at_least(r, Role.EDITOR),
        "can_move": manager,
        "can_clone": manager,
        "can_delete": owner,
        "can_share": owner,
    }


def vault_capabilities(role: Any, can_create_collections: bool = False) -> VaultCapabilities:
    """Capabilities of a principal on a vault.

    Args:
        role: Role token for the principal on this vault
        can_create_collections: Delegation flag computed from the mirror

    Returns:
        VaultCapabilities record
    """
    return VaultCapabilities(
        **_base(role),
        can_create_collections=bool(can_create_collections),
    )


def collection_capabilities(role: Any, can_create_assets: bool = False) -> CollectionCapabilities:
    """Capabilities of a principal on a collection."""
    return CollectionCapabilities(
        **_base(role),
        can_create_assets=bool(can_create_assets),
    )


def asset_capabilities(role: Any) -> AssetCapabilities:
    """Capabilities of a principal on an asset.

    Asset sharing is also open to managers.
    """
    caps = _base(role)
    caps["can_share"] = at_least(caps["role"], Role.MANAGER)
    return AssetCapabilities(**caps)
