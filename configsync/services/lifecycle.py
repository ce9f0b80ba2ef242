"""Finalizer handling and ownership-gated cleanup of target ConfigMaps."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configsync.constants import FINALIZER

if TYPE_CHECKING:
    from configsync.schemas.common import CustomRecord
    from configsync.schemas.config_source import ConfigSource
    from configsync.storage.base import ResourceStore

logger = logging.getLogger(__name__)


def has_finalizer(record: CustomRecord, finalizer: str = FINALIZER) -> bool:
    return finalizer in record.metadata.finalizers


def add_finalizer(record: CustomRecord, finalizer: str = FINALIZER) -> bool:
    """Add finalizer to the record's metadata. Returns True if it was missing."""
    if has_finalizer(record, finalizer):
        return False
    record.metadata.finalizers.append(finalizer)
    return True


def remove_finalizer(record: CustomRecord, finalizer: str = FINALIZER) -> bool:
    """Remove every occurrence of finalizer. Returns True if any was present."""
    before = len(record.metadata.finalizers)
    record.metadata.finalizers = [f for f in record.metadata.finalizers if f != finalizer]
    return len(record.metadata.finalizers) != before


def ensure_finalizer(store: ResourceStore, record: ConfigSource) -> bool:
    """Attach and persist the finalizer if it is missing.

    Returns True when a write happened; the caller then stops the pass and
    waits for the update event to come back around.
    """
    if not add_finalizer(record):
        return False
    logger.info("Adding finalizer to ConfigSource %s", record.key)
    store.update_config_source_finalizers(record)
    return True


def finalize(store: ResourceStore, record: ConfigSource) -> None:
    """Clean up after a ConfigSource that is being deleted.

    The target ConfigMap is deleted only when it lives in the record's own
    namespace and carries an owner reference with the record's uid. Anything
    else is left alone. The finalizer is removed last; a failed delete raises
    and leaves it in place so the pass is retried.
    """
    if not has_finalizer(record):
        return

    target_name = record.target_name
    target_namespace = record.target_namespace
    if not target_name:
        logger.info("ConfigSource %s has no target ConfigMap to clean up", record.key)
    elif target_namespace != record.metadata.namespace:
        logger.info(
            "Leaving cross-namespace ConfigMap %s/%s in place", target_namespace, target_name
        )
    else:
        _delete_owned_target(store, record, target_name, target_namespace)

    remove_finalizer(record)
    logger.info("Removing finalizer from ConfigSource %s", record.key)
    store.update_config_source_finalizers(record)


def _delete_owned_target(
    store: ResourceStore, record: ConfigSource, target_name: str, target_namespace: str
) -> None:
    artifact = store.get_config_map(target_name, target_namespace)
    if artifact is None:
        logger.info("Target ConfigMap %s/%s already gone", target_namespace, target_name)
        return
    if not artifact.is_owned_by(record.metadata.uid):
        logger.info(
            "ConfigMap %s/%s is not owned by ConfigSource %s; leaving it",
            target_namespace,
            target_name,
            record.key,
        )
        return
    if store.delete_config_map(artifact):
        logger.info("Deleted ConfigMap %s/%s", target_namespace, target_name)
    else:
        logger.info("Target ConfigMap %s/%s already gone", target_namespace, target_name)
