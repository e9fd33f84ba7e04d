"""
Error types for VaultSync.

This module defines the error codes carried by mutation results and the
exception types they map to:
- VaultSyncError: Base exception
- PermissionDeniedError: Capability check failed locally
- OfflineError: Connectivity gate failed before any mutation
- RemoteRejectedError: Remote store returned ok=False
- StaleWriteError: Remote store rejected an edit with an outdated watermark
- OrphanedChildError: Child discarded because its provisional parent failed
- NotFoundError: Node is not known to the local mirror
- ValidationError: Malformed input that should have been prevented upstream

Invariants:
    - All errors inherit from VaultSyncError
    - Every ErrorCode maps to exactly one exception type
    - Remote messages are carried verbatim so the UI can show them as-is
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable failure categories for mutation results."""

    PERMISSION_DENIED = "permission_denied"
    OFFLINE = "offline"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    ORPHANED = "orphaned"
    NOT_FOUND = "not_found"
    PENDING = "pending"
    VALIDATION = "validation"


class VaultSyncError(Exception):
    """Base exception for all VaultSync errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    default_code = ErrorCode.REJECTED

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class PermissionDeniedError(VaultSyncError):
    """Principal lacks the capability required for an action.

    Raised when:
    - An edit/move/clone/delete/share is attempted below the required rank
    - A create is attempted without create-child delegation
    """

    default_code = ErrorCode.PERMISSION_DENIED

    def __init__(
        self,
        message: str,
        node_id: str | None = None,
        capability: str | None = None,
    ) -> None:
        super().__init__(
            message,
            details={"node_id": node_id, "capability": capability},
        )
        self.node_id = node_id
        self.capability = capability


class OfflineError(VaultSyncError):
    """The connectivity gate failed before any mutation was applied."""

    default_code = ErrorCode.OFFLINE


class RemoteRejectedError(VaultSyncError):
    """The remote store rejected a call.

    Attributes:
        operation: Name of the remote operation that failed
    """

    default_code = ErrorCode.REJECTED

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        code: ErrorCode | None = None,
    ) -> None:
        super().__init__(message, code=code, details={"operation": operation})
        self.operation = operation


class StaleWriteError(RemoteRejectedError):
    """An edit was rejected because the node changed since it was loaded.

    The UI should reload the node and ask the user to reapply the change
    rather than retrying blindly.
    """

    default_code = ErrorCode.CONFLICT


class OrphanedChildError(VaultSyncError):
    """A pending child was discarded because its provisional parent failed."""

    default_code = ErrorCode.ORPHANED


class NotFoundError(VaultSyncError):
    """Node is not present in the local mirror."""

    default_code = ErrorCode.NOT_FOUND

    def __init__(self, message: str, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class PendingEntityError(VaultSyncError):
    """Action needs a confirmed id but the node is still provisional."""

    default_code = ErrorCode.PENDING


class ValidationError(VaultSyncError):
    """Input validation failed.

    Raised when:
    - A required identifier is missing or blank
    - A numeric field has a negative or non-numeric value
    """

    default_code = ErrorCode.VALIDATION

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message, details={"field": field_name})
        self.field_name = field_name


ERROR_TYPES: dict[ErrorCode, type[VaultSyncError]] = {
    ErrorCode.PERMISSION_DENIED: PermissionDeniedError,
    ErrorCode.OFFLINE: OfflineError,
    ErrorCode.REJECTED: RemoteRejectedError,
    ErrorCode.CONFLICT: StaleWriteError,
    ErrorCode.ORPHANED: OrphanedChildError,
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.PENDING: PendingEntityError,
    ErrorCode.VALIDATION: ValidationError,
}


def error_for_code(code: ErrorCode, message: str) -> VaultSyncError:
    """Build the exception matching an error code."""
    error_type = ERROR_TYPES.get(code, VaultSyncError)
    if error_type is NotFoundError:
        return NotFoundError(message, resource_type="node", resource_id="")
    if error_type in (PermissionDeniedError, ValidationError):
        return error_type(message)
    if issubclass(error_type, RemoteRejectedError):
        return error_type(message)
    return error_type(message, code=code)
