"""ConfigSource reconciler: drives a target ConfigMap to match its source.

One pass over a record walks the state machine:

- record gone: nothing to do;
- deletion requested: ownership-gated cleanup, then the finalizer is removed;
- finalizer missing: attach it and stop, the resulting update event
  triggers the next pass;
- otherwise fetch, fingerprint, materialize if the fingerprint moved, write
  status and schedule the next periodic pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configsync.constants import (
    CONDITION_READY,
    REASON_FETCH_FAILED,
    REASON_INVALID_SPEC,
    REASON_SYNC_SUCCESS,
)
from configsync.exceptions import ConfigurationError, FetchError, StorageError
from configsync.schemas.common import ConditionStatus
from configsync.services.datetime_service import now_utc
from configsync.services.fingerprint import fingerprint
from configsync.services.lifecycle import ensure_finalizer, finalize
from configsync.services.materializer import materialize
from configsync.services.scheduling import refresh_delay
from configsync.services.status_service import find_condition, set_condition

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.config import Settings
    from configsync.dispatch import Scheduler
    from configsync.models import RecordKey
    from configsync.schemas.config_source import ConfigSource, ConfigSourceSpec
    from configsync.sources.registry import SourceRegistry
    from configsync.storage.base import ResourceStore

logger = logging.getLogger(__name__)

SYNC_SUCCESS_MESSAGE = "Successfully synced configuration data"


class ConfigSourceReconciler:
    """Reconciles ConfigSource records one key at a time."""

    def __init__(
        self,
        store: ResourceStore,
        sources: SourceRegistry,
        scheduler: Scheduler,
        settings: Settings,
    ) -> None:
        self.store = store
        self.sources = sources
        self.scheduler = scheduler
        self.settings = settings

    def reconcile(self, key: RecordKey, cancel: CancelToken | None = None) -> None:
        """Run one pass for the record named by key."""
        logger.info("Reconciling ConfigSource %s", key)
        record = self.store.get_config_source(key)
        if record is None:
            logger.info("ConfigSource %s not found; it must have been deleted", key)
            return

        if record.is_deleting:
            logger.info("ConfigSource %s is being deleted", key)
            finalize(self.store, record)
            return

        if ensure_finalizer(self.store, record):
            return

        try:
            spec = record.parsed_spec()
            descriptor = spec.source()
        except ConfigurationError as exc:
            logger.error("ConfigSource %s has an invalid spec: %s", key, exc)
            self._set_ready(record, ConditionStatus.FALSE, REASON_INVALID_SPEC, str(exc))
            self.store.update_config_source_status(record)
            raise

        try:
            content = self.sources.fetch(descriptor, record.metadata.namespace, cancel)
        except FetchError as exc:
            self._handle_fetch_failure(record, exc)
            raise

        self._sync(record, spec, content)

        delay = refresh_delay(spec)
        if delay is not None:
            logger.debug("Requeueing ConfigSource %s in %ss", key, delay)
            self.scheduler.requeue_after(key, delay)

    def _sync(self, record: ConfigSource, spec: ConfigSourceSpec, content: dict[str, str]) -> None:
        target_namespace = spec.target_namespace or record.metadata.namespace
        digest = fingerprint(content)

        if digest == record.status.last_sync_hash:
            logger.info("Configuration for ConfigSource %s unchanged", record.key)
            record.status.last_sync_time = now_utc()
            ready = find_condition(record.status.conditions, CONDITION_READY)
            if ready is None or ready.status != ConditionStatus.TRUE:
                # Recover from an earlier failure whose content did not change
                self._set_ready(
                    record, ConditionStatus.TRUE, REASON_SYNC_SUCCESS, SYNC_SUCCESS_MESSAGE
                )
            self.store.update_config_source_status(record)
            return

        materialize(self.store, record, spec.target_config_map, target_namespace, content)

        record.status.last_sync_time = now_utc()
        record.status.last_sync_hash = digest
        self._set_ready(record, ConditionStatus.TRUE, REASON_SYNC_SUCCESS, SYNC_SUCCESS_MESSAGE)
        self.store.update_config_source_status(record)
        logger.info(
            "Synced %d keys from ConfigSource %s to ConfigMap %s/%s",
            len(content),
            record.key,
            target_namespace,
            spec.target_config_map,
        )

    def _handle_fetch_failure(self, record: ConfigSource, exc: FetchError) -> None:
        logger.error("Failed to fetch configuration for ConfigSource %s: %s", record.key, exc)
        self._set_ready(
            record,
            ConditionStatus.FALSE,
            REASON_FETCH_FAILED,
            f"Failed to fetch configuration data: {exc}",
        )
        try:
            self.store.update_config_source_status(record)
        except StorageError as status_exc:
            logger.error(
                "Failed to update status of ConfigSource %s after fetch failure: %s",
                record.key,
                status_exc,
            )
        self.scheduler.requeue_after(record.key, self.settings.fetch_retry_seconds)

    @staticmethod
    def _set_ready(
        record: ConfigSource, status: ConditionStatus, reason: str, message: str
    ) -> None:
        set_condition(
            record.status.conditions,
            CONDITION_READY,
            status,
            reason,
            message,
            record.metadata.generation,
        )
