"""
Data model for VaultSync.

Three-level ownership tree plus the delegation records that share it:
- Vault: top-level container owned by exactly one user
- Collection: named grouping of assets within one vault
- Asset: tracked item within one collection
- Membership: a delegate's role on a vault
- Invitation: pending offer of a membership

Provisional entities are told apart from confirmed ones by their
EntityRef variant, never by inspecting the id string.

Invariants:
    - Asset.vault_id always equals its collection's vault_id
    - Vault ownership (owner_id) is not a membership and outranks it
    - Timestamps are Unix milliseconds
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .access.roles import delegate_permissions, normalize_role


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


def clamp_name(value: Any, max_length: int = 35) -> str:
    """Trim and bound a user supplied name."""
    return str(value if value is not None else "").strip()[:max_length]


class EntityKind(str, Enum):
    """Levels of the ownership tree."""

    VAULT = "vault"
    COLLECTION = "collection"
    ASSET = "asset"


# Fields an edit may change. Parent and owner only change through a move.
EDITABLE_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.VAULT: frozenset({"name", "description"}),
    EntityKind.COLLECTION: frozenset({"name", "description"}),
    EntityKind.ASSET: frozenset({"title", "category", "quantity", "estimated_value"}),
}


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    DENIED = "DENIED"
    REVOKED = "REVOKED"


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class Provisional:
    """Reference to an entity not yet confirmed by the remote store."""

    temp_id: str

    @property
    def id(self) -> str:
        return self.temp_id


@dataclass(frozen=True)
class Confirmed:
    """Reference to an entity with a server-assigned id."""

    id: str


EntityRef = Union[Provisional, Confirmed]


@dataclass
class Vault:
    """Top-level container.

    Attributes:
        id: Vault identifier
        name: Display name (bounded at mutation time)
        owner_id: Owning user
        created_at: Creation timestamp (Unix ms)
        edited_at: Last-modified watermark (Unix ms)
        description: Free-form description
    """

    id: str
    name: str
    owner_id: str
    created_at: int = 0
    edited_at: int = 0
    description: str = ""


@dataclass
class Collection:
    """Named grouping of assets within one vault."""

    id: str
    vault_id: str
    owner_id: str
    name: str
    created_at: int = 0
    edited_at: int = 0
    description: str = ""

    @property
    def parent_id(self) -> str:
        return self.vault_id

    @property
    def title(self) -> str:
        return self.name


@dataclass
class Asset:
    """A tracked item.

    Attributes:
        id: Asset identifier
        collection_id: Owning collection
        vault_id: Owning vault (denormalized from the collection)
        owner_id: Owning user
        title: Display title
        category: Free-form category
        quantity: Number of units held
        estimated_value: Estimated value of one unit, if known
        created_at: Creation timestamp (Unix ms)
        edited_at: Last-modified watermark (Unix ms)
    """

    id: str
    collection_id: str
    vault_id: str
    owner_id: str
    title: str
    category: str = ""
    quantity: int = 1
    estimated_value: float | None = None
    created_at: int = 0
    edited_at: int = 0

    @property
    def parent_id(self) -> str:
        return self.collection_id

    @property
    def total_value(self) -> float:
        if self.estimated_value is None:
            return 0.0
        return float(self.estimated_value) * self.quantity


@dataclass
class Membership:
    """A delegate's role on a vault.

    Attributes:
        user_id: Delegate user
        vault_id: Shared vault
        role: Normalized role (reviewer, editor, manager, owner)
        status: Membership status
        can_create: Server-side create-child delegation flag
    """

    user_id: str
    vault_id: str
    role: str | None
    status: MembershipStatus = MembershipStatus.ACTIVE
    can_create: bool = False

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.ACTIVE

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Membership:
        """Build a membership from a raw store document.

        Documents written before explicit delegation flags carry a
        ``permissions`` map instead; its Create entry is used, and when the
        map is absent the legacy role table decides.
        """
        role = normalize_role(doc.get("role"))
        raw_status = str(doc.get("status") or MembershipStatus.ACTIVE.value).upper()
        try:
            status = MembershipStatus(raw_status)
        except ValueError:
            status = MembershipStatus.PENDING

        if "can_create" in doc:
            can_create = bool(doc["can_create"])
        elif isinstance(doc.get("permissions"), dict):
            can_create = bool(doc["permissions"].get("Create"))
        else:
            can_create = delegate_permissions(role).create

        return cls(
            user_id=str(doc["user_id"]),
            vault_id=str(doc["vault_id"]),
            role=role,
            status=status,
            can_create=can_create,
        )


@dataclass
class Invitation:
    """Offer of a membership on a vault.

    Attributes:
        id: Invitation identifier
        vault_id: Vault being shared
        status: Invitation status
        invitee: Target user reference (user id or email)
        role: Role granted on acceptance
        code: Code the invitee enters to accept
        can_create: Create-child delegation granted on acceptance
    """

    id: str
    vault_id: str
    status: InvitationStatus
    invitee: str
    role: str = "reviewer"
    code: str = ""
    can_create: bool = False


@dataclass
class SelectionState:
    """What the UI currently has selected.

    Follows entities across moves and temp-to-real id promotion.
    """

    vault_id: str | None = None
    collection_id: str | None = None
    asset_id: str | None = None

    def rename(self, old_id: str, new_id: str) -> None:
        """Rewrite any selected id equal to old_id."""
        if self.vault_id == old_id:
            self.vault_id = new_id
        if self.collection_id == old_id:
            self.collection_id = new_id
        if self.asset_id == old_id:
            self.asset_id = new_id
