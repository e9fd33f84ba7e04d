"""
Stale-write detection for edits.

Every edit (never a create) is sent with the client's last-known
``edited_at`` watermark for the node. The remote store rejects the write
when its current watermark differs, instead of overwriting a concurrent
edit. The rejection is surfaced as ErrorCode.CONFLICT so the UI can reload
and ask the user to reapply, rather than retry blindly.

Invariants:
    - The watermark sent is the mirror's edited_at at submit time
    - A conflict never modifies the mirror
    - No automatic merge is attempted
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ..errors import ErrorCode
from ..models import EntityKind
from ..remote.base import RemoteResult
from .results import MutationResult
from .store import EntityStore

logger = logging.getLogger(__name__)

UpdateCall = Callable[..., Awaitable[RemoteResult]]

CONFLICT_MESSAGE = "This item changed on another device. Reload and try again."


class ConflictGuard:
    """Attaches expected-last-modified watermarks to edit requests."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._stale: dict[str, tuple[EntityKind, int | None]] = {}

    def watermark(self, kind: EntityKind, node_id: str) -> int | None:
        """Last-known edited_at of a node, or None if not mirrored."""
        node = self._store.get(kind, node_id)
        return node.edited_at if node is not None else None

    async def submit(
        self,
        kind: EntityKind,
        node_id: str,
        patch: dict[str, Any],
        send: UpdateCall,
        *,
        fallback_watermark: int | None = None,
    ) -> MutationResult:
        """Send an edit guarded by the node's current watermark.

        Args:
            kind: Level of the node being edited
            node_id: Node being edited
            patch: Fields to change
            send: Remote update call taking (node_id, patch, expected_edited_at=...)
            fallback_watermark: Watermark to send when the node is not mirrored

        Returns:
            MutationResult; code CONFLICT on a stale-write rejection
        """
        expected = self.watermark(kind, node_id)
        if expected is None:
            expected = fallback_watermark
        result = await send(node_id, patch, expected_edited_at=expected)

        if result.ok:
            self._stale.pop(node_id, None)
            self._store.apply_patch(kind, node_id, patch, result.edited_at)
            return MutationResult.success(node_id)

        if result.is_conflict:
            self._stale[node_id] = (kind, expected)
            logger.info(
                "Stale write rejected",
                extra={"kind": kind.value, "node_id": node_id, "expected_edited_at": expected},
            )
            return MutationResult.failure(
                ErrorCode.CONFLICT, result.message or CONFLICT_MESSAGE, id=node_id
            )

        return MutationResult.failure(
            ErrorCode.REJECTED, result.message or "Unable to save changes", id=node_id
        )

    def reload_pending(self, node_id: str) -> bool:
        """Whether a conflicted node is still waiting for fresher data.

        Turns False once the mirror delivers an edited_at different from
        the one that was rejected.
        """
        entry = self._stale.get(node_id)
        if entry is None:
            return False
        kind, rejected = entry
        current = self.watermark(kind, node_id)
        if current is None or current == rejected:
            return True
        del self._stale[node_id]
        return False
