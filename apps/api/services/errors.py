"""Error kinds raised by the secret store, the disclosure gate and media storage.

Routers decide how each kind is rendered. NotFoundError and AuthorizationError
are rendered identically so that callers cannot probe for existence, but they
stay distinct here for logging and tests.
"""

from __future__ import annotations

from typing import Optional


class CapsuleError(Exception):
    """Base class for time-capsule domain errors."""


class ValidationError(CapsuleError):
    """Caller input cannot be accepted as-is; the message says how to fix it."""


class NotFoundError(CapsuleError):
    """No record is visible under the requested identifier."""

    def __init__(self, message: str = "Secret not found", reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class AuthorizationError(CapsuleError):
    """Caller is not the owner of the record they asked for."""


class StorageError(CapsuleError):
    """Database or object-store failure. Safe to retry the whole operation."""
