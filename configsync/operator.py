"""kopf handlers: watch events feed the dispatchers, which run the reconcilers.

kopf only observes the cluster here. Every event is turned into a record key
and handed to a work queue; the reconcilers themselves run on the
dispatchers' worker threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import kopf

from configsync.constants import CONFIG_MAP_SYNC, CONFIG_SOURCE
from configsync.dispatch import Dispatcher, WorkQueue
from configsync.models import RecordKey
from configsync.services.fanout_service import ConfigMapSyncReconciler
from configsync.services.reconciler import ConfigSourceReconciler
from configsync.sources.registry import SourceRegistry
from configsync.storage.kube import KubeResourceStore, KubeSecretStore, load_api_client

if TYPE_CHECKING:
    from collections.abc import Mapping

    from configsync.config import Settings
    from configsync.services.git_service import GitService
    from configsync.storage.base import ResourceStore, SecretStore

logger = logging.getLogger(__name__)

_STOP_TIMEOUT_SECONDS = 30.0


@dataclass
class OperatorRuntime:
    """The two dispatchers the operator runs, one per record kind."""

    config_sources: Dispatcher
    config_map_syncs: Dispatcher

    def start(self) -> None:
        self.config_sources.start()
        self.config_map_syncs.start()

    def stop(self) -> None:
        self.config_sources.stop(_STOP_TIMEOUT_SECONDS)
        self.config_map_syncs.stop(_STOP_TIMEOUT_SECONDS)


def build_runtime(
    settings: Settings,
    store: ResourceStore,
    secrets: SecretStore,
    git_service: GitService | None = None,
) -> OperatorRuntime:
    """Wire reconcilers, queues and dispatchers around the given clients."""
    pass_timeout = settings.pass_timeout_seconds or None

    source_queue = WorkQueue(settings.backoff_base_seconds, settings.backoff_max_seconds)
    sources = SourceRegistry.from_settings(settings, store, secrets, git_service)
    source_reconciler = ConfigSourceReconciler(store, sources, source_queue, settings)

    sync_queue = WorkQueue(settings.backoff_base_seconds, settings.backoff_max_seconds)
    sync_reconciler = ConfigMapSyncReconciler(store, sync_queue, settings)

    return OperatorRuntime(
        config_sources=Dispatcher(
            CONFIG_SOURCE.kind,
            source_queue,
            source_reconciler.reconcile,
            workers=settings.workers,
            pass_timeout=pass_timeout,
        ),
        config_map_syncs=Dispatcher(
            CONFIG_MAP_SYNC.kind,
            sync_queue,
            sync_reconciler.reconcile,
            workers=settings.workers,
            pass_timeout=pass_timeout,
        ),
    )


def owner_keys(body: Mapping[str, Any]) -> list[RecordKey]:
    """Return the ConfigSource keys listed as owners of a ConfigMap body."""
    metadata = body.get("metadata") or {}
    namespace = metadata.get("namespace", "default")
    keys: list[RecordKey] = []
    for ref in metadata.get("ownerReferences") or []:
        if ref.get("kind") != CONFIG_SOURCE.kind:
            continue
        if ref.get("apiVersion") != CONFIG_SOURCE.api_version:
            continue
        keys.append(RecordKey(namespace, ref["name"]))
    return keys


def _runtime(memo: kopf.Memo) -> OperatorRuntime:
    runtime: OperatorRuntime | None = memo.get("runtime")
    if runtime is None:
        raise kopf.PermanentError("Operator runtime is not initialised")
    return runtime


@kopf.on.startup()
def start_operator(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Connect to the cluster and start the worker pools."""
    app_settings: Settings = memo.app_settings
    settings.posting.level = logging.WARNING
    settings.execution.max_workers = app_settings.workers

    api_client = load_api_client(app_settings)
    runtime = build_runtime(
        app_settings, KubeResourceStore(api_client), KubeSecretStore(api_client)
    )
    runtime.start()
    memo.runtime = runtime
    logger.info("configsync operator started")


@kopf.on.cleanup()
def stop_operator(memo: kopf.Memo, **_: Any) -> None:
    """Cancel in-flight passes and stop the worker pools."""
    runtime: OperatorRuntime | None = memo.get("runtime")
    if runtime is not None:
        runtime.stop()
    logger.info("configsync operator stopped")


@kopf.on.event(CONFIG_SOURCE.group, CONFIG_SOURCE.version, CONFIG_SOURCE.plural)
def on_config_source_event(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> None:
    _runtime(memo).config_sources.enqueue(RecordKey(namespace, name))


@kopf.on.event(CONFIG_MAP_SYNC.group, CONFIG_MAP_SYNC.version, CONFIG_MAP_SYNC.plural)
def on_config_map_sync_event(name: str, namespace: str, memo: kopf.Memo, **_: Any) -> None:
    _runtime(memo).config_map_syncs.enqueue(RecordKey(namespace, name))


@kopf.on.event("", "v1", "configmaps")
def on_config_map_event(body: kopf.Body, memo: kopf.Memo, **_: Any) -> None:
    """Revisit the ConfigSource that owns a ConfigMap when the ConfigMap changes."""
    keys = owner_keys(body)
    if not keys:
        return
    runtime = _runtime(memo)
    for key in keys:
        logger.debug("Owned ConfigMap changed; enqueueing ConfigSource %s", key)
        runtime.config_sources.enqueue(key)
