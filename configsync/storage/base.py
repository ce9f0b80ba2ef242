"""Storage protocols consumed by the reconcilers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from configsync.models import ConfigMapArtifact, RecordKey
    from configsync.schemas.config_map_sync import ConfigMapSync
    from configsync.schemas.config_source import ConfigSource


@runtime_checkable
class ResourceStore(Protocol):
    """Read and write desired-state records and ConfigMaps.

    Lookups return None for objects that do not exist. Writes raise
    ConflictError when the object changed since it was read and StorageError
    for any other failure.
    """

    def get_config_source(self, key: RecordKey) -> ConfigSource | None:
        """Load a ConfigSource, or None if it is gone."""
        ...

    def update_config_source_finalizers(self, record: ConfigSource) -> ConfigSource:
        """Persist record.metadata.finalizers and return the stored record."""
        ...

    def update_config_source_status(self, record: ConfigSource) -> None:
        """Replace the status subresource with record.status."""
        ...

    def get_config_map_sync(self, key: RecordKey) -> ConfigMapSync | None:
        """Load a ConfigMapSync, or None if it is gone."""
        ...

    def update_config_map_sync_status(self, record: ConfigMapSync) -> None:
        """Replace the status subresource with record.status."""
        ...

    def get_config_map(self, name: str, namespace: str) -> ConfigMapArtifact | None:
        """Load a ConfigMap, or None if it does not exist."""
        ...

    def create_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        """Create a ConfigMap and return the stored object."""
        ...

    def update_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        """Replace a ConfigMap, guarded by artifact.resource_version."""
        ...

    def delete_config_map(self, artifact: ConfigMapArtifact) -> bool:
        """Delete a ConfigMap. Returns False if it was already gone."""
        ...


@runtime_checkable
class SecretStore(Protocol):
    """Read Secret contents as raw bytes."""

    def get_secret_data(self, name: str, namespace: str) -> dict[str, bytes] | None:
        """Return all decoded keys of a Secret, or None if it does not exist."""
        ...

    def get_secret_value(self, name: str, namespace: str, key: str) -> bytes | None:
        """Return one decoded key of a Secret, or None if the Secret or key is missing."""
        ...
