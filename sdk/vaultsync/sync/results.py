"""Result objects returned by every mutation entry point."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..errors import ErrorCode, error_for_code

OFFLINE_MESSAGE = "Connection required"


@dataclass
class MutationResult:
    """Outcome of a mutation, rendered by the UI as success/failure feedback.

    Attributes:
        ok: Whether the mutation succeeded (or was accepted as pending)
        message: Failure message, verbatim from the remote store when it
            rejected the call
        id: Id of the affected entity (temp id while pending)
        code: Failure category
        draft: Draft fields restored after a failed create
        pending: Accepted locally, remote create deferred until the parent
            is confirmed
    """

    ok: bool
    message: str | None = None
    id: str | None = None
    code: ErrorCode | None = None
    draft: dict[str, Any] = field(default_factory=dict)
    pending: bool = False

    @classmethod
    def success(cls, id: str | None = None, *, pending: bool = False) -> MutationResult:
        return cls(ok=True, id=id, pending=pending)

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        *,
        id: str | None = None,
        draft: dict[str, Any] | None = None,
    ) -> MutationResult:
        return cls(ok=False, message=message, id=id, code=code, draft=dict(draft or {}))

    @classmethod
    def offline(cls) -> MutationResult:
        return cls.failure(ErrorCode.OFFLINE, OFFLINE_MESSAGE)

    @property
    def is_conflict(self) -> bool:
        return self.code == ErrorCode.CONFLICT

    def raise_for_error(self) -> MutationResult:
        """Raise the exception matching this result's code, if it failed.

        Returns:
            Self, for chaining on success
        """
        if not self.ok:
            raise error_for_code(self.code or ErrorCode.REJECTED, self.message or "")
        return self
