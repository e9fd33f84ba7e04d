"""
Base protocol and types for the remote document store.

This module defines the RemoteStore protocol that every backend adapter
must implement, along with the result type shared by all calls.

Invariants:
    - Mutating calls return a RemoteResult instead of raising for
      expected failures (quota, conflict, not found)
    - A stale-write rejection carries code="conflict"
    - Subscriptions deliver full per-vault snapshots and return an
      unsubscribe callable

How to change safely:
    - Protocol changes require updating every adapter
    - Keep failure codes stable; the UI branches on them
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..models import Asset, Collection, Invitation, Membership, Vault

CONFLICT_CODE = "conflict"

Unsubscribe = Callable[[], None]


@dataclass
class RemoteResult:
    """Outcome of a remote call.

    Attributes:
        ok: Whether the call succeeded
        id: Server-assigned id for creates
        message: Human readable failure message
        code: Machine-readable failure code ("conflict" for stale writes)
        edited_at: New last-modified watermark after an update
        vault_id: Vault joined by an invitation acceptance
    """

    ok: bool
    id: str | None = None
    message: str | None = None
    code: str | None = None
    edited_at: int | None = None
    vault_id: str | None = None

    @classmethod
    def success(cls, **kwargs: Any) -> RemoteResult:
        return cls(ok=True, **kwargs)

    @classmethod
    def failure(cls, message: str, code: str | None = None) -> RemoteResult:
        return cls(ok=False, message=message, code=code)

    @property
    def is_conflict(self) -> bool:
        return not self.ok and self.code == CONFLICT_CODE


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for the authoritative remote document store."""

    async def create_vault(self, fields: dict[str, Any]) -> RemoteResult: ...

    async def create_collection(self, fields: dict[str, Any]) -> RemoteResult: ...

    async def create_asset(self, fields: dict[str, Any]) -> RemoteResult: ...

    async def update_vault(
        self, vault_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult: ...

    async def update_collection(
        self, collection_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult: ...

    async def update_asset(
        self, asset_id: str, patch: dict[str, Any], *, expected_edited_at: int | None
    ) -> RemoteResult: ...

    async def move_collection(self, collection_id: str, target_vault_id: str) -> RemoteResult: ...

    async def move_asset(
        self, asset_id: str, target_vault_id: str, target_collection_id: str
    ) -> RemoteResult: ...

    async def delete_asset(self, asset_id: str) -> RemoteResult: ...

    async def delete_collection(self, collection_id: str) -> RemoteResult: ...

    async def delete_vault(self, vault_id: str) -> RemoteResult: ...

    def subscribe_vaults(
        self, user_id: str, on_change: Callable[[list[Vault]], None]
    ) -> Unsubscribe: ...

    def subscribe_memberships(
        self, user_id: str, on_change: Callable[[list[Membership]], None]
    ) -> Unsubscribe: ...

    def subscribe_vault_collections(
        self, vault_id: str, on_change: Callable[[list[Collection]], None]
    ) -> Unsubscribe: ...

    def subscribe_vault_assets(
        self, vault_id: str, on_change: Callable[[list[Asset]], None]
    ) -> Unsubscribe: ...

    async def list_my_invitations(self, user_id: str) -> list[Invitation]: ...

    async def accept_invitation_code(self, code: str, user_id: str) -> RemoteResult: ...

    async def deny_invitation_code(self, code: str, user_id: str) -> RemoteResult: ...

    async def create_invitation(
        self, vault_id: str, invitee: str, role: str, *, can_create: bool = False
    ) -> RemoteResult: ...

    async def revoke_membership(self, vault_id: str, user_id: str) -> RemoteResult: ...
