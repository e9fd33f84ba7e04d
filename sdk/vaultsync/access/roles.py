"""
Role normalization for delegated vault access.

Role tokens arrive from memberships, invitations and legacy share records
in free form ("Viewer", " EDITOR ", None). This module canonicalizes them
into one of four ranks:

    reviewer < editor < manager < owner

Invariants:
    - normalize_role is total: it never raises
    - "viewer" and "reviewer" are the same rank
    - Unrecognized tokens pass through lower-cased and carry rank 0

How to change safely:
    - New roles must slot into RANKS without reordering existing ones
    - Aliases belong in ROLE_ALIASES, not in callers
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Canonical role names."""

    REVIEWER = "reviewer"
    EDITOR = "editor"
    MANAGER = "manager"
    OWNER = "owner"


ROLE_ALIASES = {
    "viewer": Role.REVIEWER,
    "reviewer": Role.REVIEWER,
    "editor": Role.EDITOR,
    "manager": Role.MANAGER,
    "owner": Role.OWNER,
}

# Higher rank includes the rights of every lower rank
RANKS = {
    Role.REVIEWER.value: 1,
    Role.EDITOR.value: 2,
    Role.MANAGER.value: 3,
    Role.OWNER.value: 4,
}


def normalize_role(role: Any) -> str | None:
    """Canonicalize a role token.

    Args:
        role: Arbitrary role token (string, enum, None)

    Returns:
        Canonical role name, the lower-cased token if unrecognized,
        or None for empty input

    Example:
        >>> normalize_role(" Viewer ")
        'reviewer'
        >>> normalize_role("Custom")
        'custom'
    """
    if role is None:
        return None
    if isinstance(role, Role):
        return role.value
    raw = str(role).strip().lower()
    if not raw:
        return None
    alias = ROLE_ALIASES.get(raw)
    return alias.value if alias else raw


def rank_of(role: Any) -> int:
    """Rank of a role token; 0 for none or unrecognized."""
    normalized = normalize_role(role)
    if normalized is None:
        return 0
    return RANKS.get(normalized, 0)


def at_least(role: Any, minimum: Role) -> bool:
    """Whether role ranks at or above minimum."""
    return rank_of(role) >= RANKS[minimum.value]


@dataclass(frozen=True)
class DelegatePermissions:
    """Permission flags stored on a delegate membership document."""

    view: bool = False
    create: bool = False
    edit: bool = False
    move: bool = False
    clone: bool = False
    delete: bool = False


def delegate_permissions(role: Any, can_create: bool = False) -> DelegatePermissions:
    """Map a legacy share role onto membership permission flags.

    A legacy "owner" share is a delegate with broad permissions, not real
    ownership. Unknown roles get view only.
    """
    r = normalize_role(role) or Role.REVIEWER.value
    if r == Role.REVIEWER.value:
        return DelegatePermissions(view=True)
    if r == Role.EDITOR.value:
        return DelegatePermissions(view=True, edit=True, create=bool(can_create))
    if r == Role.MANAGER.value:
        return DelegatePermissions(view=True, edit=True, move=True, clone=True, create=True)
    if r == Role.OWNER.value:
        return DelegatePermissions(
            view=True, create=True, edit=True, move=True, clone=True, delete=True
        )
    return DelegatePermissions(view=True)
