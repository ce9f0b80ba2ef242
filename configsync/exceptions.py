"""Operator-level exception types.

Convention:
- ``ConfigurationError``: the record's spec cannot be acted on (unknown source
  type, missing descriptor, invalid field values). Retrying does not help until
  the record is edited, so the dispatcher does not requeue it.
- ``FetchError``: a source adapter failed. The reconciler reports it on the
  ``Ready`` condition before re-raising.
- ``StorageError`` / ``ConflictError``: reading or writing cluster resources
  failed. Propagated as-is and retried by the dispatcher with backoff.
"""

from __future__ import annotations

__all__ = [
    "ConfigSyncError",
    "ConfigurationError",
    "ConflictError",
    "FetchCancelledError",
    "FetchError",
    "StorageError",
]


class ConfigSyncError(Exception):
    """Base class for all configsync errors."""

    retryable = True


class ConfigurationError(ConfigSyncError):
    """Raised when a desired-state record's spec is invalid or incomplete."""

    retryable = False


class FetchError(ConfigSyncError):
    """Raised when a source adapter cannot produce a content map.

    ``source_type`` names the adapter (``Git``, ``File``, ``ConfigMap``,
    ``Secret``) so status messages and logs can say where the failure came from.
    """

    def __init__(self, source_type: str, message: str) -> None:
        super().__init__(f"{source_type} source: {message}")
        self.source_type = source_type


class FetchCancelledError(FetchError):
    """Raised when the pass was cancelled while a fetch was in progress."""


class StorageError(ConfigSyncError):
    """Raised when a cluster read or write fails."""


class ConflictError(StorageError):
    """Raised when an optimistic-concurrency write loses to a concurrent edit."""
