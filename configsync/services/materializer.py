"""Create-or-update of the target ConfigMap."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configsync.constants import CONFIG_SOURCE
from configsync.models import ConfigMapArtifact, OwnerReference

if TYPE_CHECKING:
    from configsync.schemas.config_source import ConfigSource
    from configsync.storage.base import ResourceStore

logger = logging.getLogger(__name__)


def build_owner_reference(record: ConfigSource) -> OwnerReference:
    """Return the controller reference pointing back at record."""
    return OwnerReference(
        api_version=CONFIG_SOURCE.api_version,
        kind=CONFIG_SOURCE.kind,
        name=record.metadata.name,
        uid=record.metadata.uid,
        controller=True,
        block_owner_deletion=True,
    )


def materialize(
    store: ResourceStore,
    record: ConfigSource,
    target_name: str,
    target_namespace: str,
    content: dict[str, str],
) -> ConfigMapArtifact:
    """Make the target ConfigMap hold exactly content.

    ``data`` is replaced, never merged. An owner reference is attached only
    when the ConfigMap is created in the record's own namespace; an existing
    ConfigMap keeps whatever owners it already has. Updates are guarded by the
    observed resourceVersion, so a concurrent edit raises ConflictError.
    """
    existing = store.get_config_map(target_name, target_namespace)
    if existing is None:
        artifact = ConfigMapArtifact(
            name=target_name,
            namespace=target_namespace,
            data=dict(content),
        )
        if target_namespace == record.metadata.namespace:
            artifact.owner_references.append(build_owner_reference(record))
        logger.info("Creating ConfigMap %s/%s", target_namespace, target_name)
        return store.create_config_map(artifact)

    existing.data = dict(content)
    logger.info("Updating ConfigMap %s/%s", target_namespace, target_name)
    return store.update_config_map(existing)
