"""ConfigMapSync reconciler: copy one ConfigMap into several namespaces."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configsync.constants import (
    CONDITION_READY,
    REASON_INVALID_SPEC,
    REASON_PARTIAL_SYNC,
    REASON_SYNC_SUCCESS,
)
from configsync.exceptions import ConfigurationError
from configsync.models import ConfigMapArtifact
from configsync.schemas.common import ConditionStatus
from configsync.services.datetime_service import now_utc
from configsync.services.status_service import set_condition

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.config import Settings
    from configsync.dispatch import Scheduler
    from configsync.models import RecordKey
    from configsync.schemas.config_map_sync import ConfigMapSync, ConfigMapSyncSpec
    from configsync.storage.base import ResourceStore

logger = logging.getLogger(__name__)


class ConfigMapSyncReconciler:
    """Reconciles ConfigMapSync records.

    There is no change detection: every pass overwrites ``data`` and
    ``binaryData`` of each copy and the record is revisited on a fixed timer.
    Copies are not owned by the record and are left behind when it is deleted.
    """

    def __init__(self, store: ResourceStore, scheduler: Scheduler, settings: Settings) -> None:
        self.store = store
        self.scheduler = scheduler
        self.settings = settings

    def reconcile(self, key: RecordKey, cancel: CancelToken | None = None) -> None:
        """Run one fan-out pass for the record named by key."""
        logger.info("Reconciling ConfigMapSync %s", key)
        record = self.store.get_config_map_sync(key)
        if record is None:
            logger.info("ConfigMapSync %s not found; it must have been deleted", key)
            return
        if record.is_deleting:
            return

        try:
            spec = record.parsed_spec()
        except ConfigurationError as exc:
            logger.error("ConfigMapSync %s has an invalid spec: %s", key, exc)
            self._set_ready(record, ConditionStatus.FALSE, REASON_INVALID_SPEC, str(exc))
            self.store.update_config_map_sync_status(record)
            raise

        source = self.store.get_config_map(spec.source_config_map, key.namespace)
        if source is None:
            logger.info(
                "Source ConfigMap %s/%s not found yet; retrying",
                key.namespace,
                spec.source_config_map,
            )
            self.scheduler.requeue_after(key, self.settings.fanout_source_retry_seconds)
            return

        synced, failed = self._copy_all(record, spec, source, cancel)

        # Scheduled before the status write so a failed write still comes back
        self.scheduler.requeue_after(key, self.settings.fanout_interval_seconds)

        record.status.last_sync_time = now_utc()
        record.status.synced_namespaces = synced
        if failed:
            message = f"Failed to sync to namespaces: {', '.join(failed)}"
            self._set_ready(record, ConditionStatus.FALSE, REASON_PARTIAL_SYNC, message)
        else:
            message = f"Synced to {len(synced)} namespaces"
            self._set_ready(record, ConditionStatus.TRUE, REASON_SYNC_SUCCESS, message)
        self.store.update_config_map_sync_status(record)
        logger.info("ConfigMapSync %s synced to %s", key, synced)

    def _copy_all(
        self,
        record: ConfigMapSync,
        spec: ConfigMapSyncSpec,
        source: ConfigMapArtifact,
        cancel: CancelToken | None,
    ) -> tuple[list[str], list[str]]:
        synced: list[str] = []
        failed: list[str] = []
        for namespace in spec.target_namespaces:
            if namespace == record.metadata.namespace:
                continue
            if cancel is not None and cancel.cancelled:
                logger.warning("Fan-out of ConfigMapSync %s cancelled", record.key)
                failed.append(namespace)
                continue
            try:
                self._copy_to(source, namespace, spec.labels)
            except Exception:
                logger.exception(
                    "Failed to sync ConfigMap %s to namespace %s", source.name, namespace
                )
                failed.append(namespace)
                continue
            synced.append(namespace)
        return synced, failed

    def _copy_to(self, source: ConfigMapArtifact, namespace: str, labels: dict[str, str]) -> None:
        existing = self.store.get_config_map(source.name, namespace)
        if existing is None:
            copy = ConfigMapArtifact(
                name=source.name,
                namespace=namespace,
                data=dict(source.data),
                binary_data=dict(source.binary_data),
                labels=dict(labels),
            )
            self.store.create_config_map(copy)
            logger.info("Created ConfigMap %s/%s", namespace, source.name)
            return

        existing.data = dict(source.data)
        existing.binary_data = dict(source.binary_data)
        existing.labels.update(labels)
        self.store.update_config_map(existing)
        logger.info("Updated ConfigMap %s/%s", namespace, source.name)

    @staticmethod
    def _set_ready(
        record: ConfigMapSync, status: ConditionStatus, reason: str, message: str
    ) -> None:
        set_condition(
            record.status.conditions,
            CONDITION_READY,
            status,
            reason,
            message,
            record.metadata.generation,
        )
