"""Exception hierarchy for MiBuks.

Every error carries an ``ErrorKind`` so the web layer and the resource
stores can classify failures without isinstance ladders.
"""

from __future__ import annotations

from typing import Any

from mibuks.types import ErrorKind


class MiBuksError(Exception):
    """Base exception for all MiBuks errors."""

    kind: ErrorKind = ErrorKind.TRANSIENT_STORAGE


class NotAuthenticatedError(MiBuksError):
    """Raised when an Identity is required but no session exists."""

    kind = ErrorKind.NOT_AUTHENTICATED


class TenantProvisioningConflict(MiBuksError):
    """Raised when a concurrent caller already created the owner's business."""

    kind = ErrorKind.TENANT_CONFLICT


class TransientStorageError(MiBuksError):
    """Raised when the backing store fails or is unreachable."""

    kind = ErrorKind.TRANSIENT_STORAGE


class InputValidationError(MiBuksError):
    """Raised when caller input fails validation before any request is made."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class RecordNotFoundError(MiBuksError):
    """Raised when a row is missing or outside the caller's business."""

    kind = ErrorKind.NOT_FOUND


class ScopeViolationError(MiBuksError):
    """Raised when a write would land outside the caller's business."""

    kind = ErrorKind.NOT_FOUND


class ConfigError(MiBuksError):
    """Raised when configuration is invalid."""
