"""Tests for the ConfigMapSync fan-out pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from configsync.cancel import CancelToken
from configsync.exceptions import ConfigurationError, StorageError
from configsync.models import ConfigMapArtifact, RecordKey
from configsync.schemas.common import ConditionStatus
from configsync.services.fanout_service import ConfigMapSyncReconciler
from tests.conftest import FakeResourceStore, FakeScheduler, make_config_map_sync

if TYPE_CHECKING:
    from configsync.config import Settings
    from configsync.schemas.config_map_sync import ConfigMapSyncStatus

KEY = RecordKey("source-ns", "fanout")


@pytest.fixture
def reconciler(
    store: FakeResourceStore, scheduler: FakeScheduler, settings: Settings
) -> ConfigMapSyncReconciler:
    return ConfigMapSyncReconciler(store, scheduler, settings)


def _seed_source(store: FakeResourceStore) -> None:
    store.add_config_map(
        ConfigMapArtifact(
            name="shared",
            namespace="source-ns",
            data={"app.properties": "x=1"},
            binary_data={"logo.png": "iVBORw0K"},
            labels={"origin": "yes"},
        )
    )


def _status(store: FakeResourceStore) -> ConfigMapSyncStatus:
    record = store.get_config_map_sync(KEY)
    assert record is not None
    return record.status


class TestFanout:
    def test_copies_to_every_target(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(
            make_config_map_sync(
                spec={
                    "sourceConfigMap": "shared",
                    "targetNamespaces": ["ns1", "ns2"],
                    "labels": {"synced-by": "configsync"},
                }
            )
        )
        reconciler.reconcile(KEY)

        for namespace in ("ns1", "ns2"):
            copy = store.config_map(namespace, "shared")
            assert copy is not None
            assert copy.data == {"app.properties": "x=1"}
            assert copy.binary_data == {"logo.png": "iVBORw0K"}
            assert copy.labels == {"synced-by": "configsync"}
            assert copy.owner_references == []
        status = _status(store)
        assert status.synced_namespaces == ["ns1", "ns2"]
        assert status.last_sync_time is not None
        assert status.conditions[0].status == ConditionStatus.TRUE
        assert status.conditions[0].reason == "SyncSuccess"

    def test_partial_failure_is_isolated(
        self,
        reconciler: ConfigMapSyncReconciler,
        store: FakeResourceStore,
        scheduler: FakeScheduler,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        store.failing_namespaces.add("ns2")
        reconciler.reconcile(KEY)

        assert store.config_map("ns1", "shared") is not None
        assert store.config_map("ns2", "shared") is None
        status = _status(store)
        assert status.synced_namespaces == ["ns1"]
        assert status.conditions[0].status == ConditionStatus.FALSE
        assert status.conditions[0].reason == "PartialSync"
        assert "ns2" in status.conditions[0].message
        assert "Failed to sync ConfigMap shared to namespace ns2" in caplog.text
        assert scheduler.requeues == [(KEY, 300.0)]

    def test_own_namespace_is_skipped(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(
            make_config_map_sync(
                spec={"sourceConfigMap": "shared", "targetNamespaces": ["source-ns", "ns1"]}
            )
        )
        reconciler.reconcile(KEY)

        assert _status(store).synced_namespaces == ["ns1"]
        assert store.updated == []

    def test_duplicate_targets_are_synced_once(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(
            make_config_map_sync(
                spec={"sourceConfigMap": "shared", "targetNamespaces": ["ns1", "ns1", ""]}
            )
        )
        reconciler.reconcile(KEY)

        assert _status(store).synced_namespaces == ["ns1"]
        assert store.created == [("ns1", "shared")]

    def test_existing_copy_is_overwritten_and_labels_merged(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map(
            ConfigMapArtifact(
                name="shared",
                namespace="ns1",
                data={"stale": "yes"},
                labels={"team": "a", "synced-by": "old"},
                annotations={"owner": "payments"},
                finalizers=["example.com/protect"],
            )
        )
        store.add_config_map_sync(
            make_config_map_sync(
                spec={
                    "sourceConfigMap": "shared",
                    "targetNamespaces": ["ns1"],
                    "labels": {"synced-by": "configsync"},
                }
            )
        )
        reconciler.reconcile(KEY)

        copy = store.config_map("ns1", "shared")
        assert copy is not None
        assert copy.data == {"app.properties": "x=1"}
        assert copy.labels == {"team": "a", "synced-by": "configsync"}
        assert copy.annotations == {"owner": "payments"}
        assert copy.finalizers == ["example.com/protect"]

    def test_every_pass_rewrites_copies(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        reconciler.reconcile(KEY)
        reconciler.reconcile(KEY)
        assert sorted(store.updated) == [("ns1", "shared"), ("ns2", "shared")]

    def test_synced_namespaces_are_recomputed(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        reconciler.reconcile(KEY)
        store.failing_namespaces.add("ns1")
        reconciler.reconcile(KEY)
        assert _status(store).synced_namespaces == ["ns2"]

    def test_cancelled_pass_syncs_nothing(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        token = CancelToken()
        token.cancel()
        reconciler.reconcile(KEY, token)
        assert store.created == []
        assert _status(store).synced_namespaces == []


class TestFanoutScheduling:
    def test_missing_source_retries_quietly(
        self,
        reconciler: ConfigMapSyncReconciler,
        store: FakeResourceStore,
        scheduler: FakeScheduler,
    ) -> None:
        store.add_config_map_sync(make_config_map_sync())
        reconciler.reconcile(KEY)

        assert scheduler.requeues == [(KEY, 10.0)]
        assert store.status_writes == 0
        assert _status(store).conditions == []

    def test_fixed_interval_after_success(
        self,
        reconciler: ConfigMapSyncReconciler,
        store: FakeResourceStore,
        scheduler: FakeScheduler,
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        reconciler.reconcile(KEY)
        assert scheduler.requeues == [(KEY, 300.0)]

    def test_requeue_survives_status_write_failure(
        self,
        reconciler: ConfigMapSyncReconciler,
        store: FakeResourceStore,
        scheduler: FakeScheduler,
    ) -> None:
        _seed_source(store)
        store.add_config_map_sync(make_config_map_sync())
        store.fail_status_writes = True
        with pytest.raises(StorageError, match="status write failed"):
            reconciler.reconcile(KEY)
        assert scheduler.requeues == [(KEY, 300.0)]

    def test_missing_record_is_ignored(
        self, reconciler: ConfigMapSyncReconciler, scheduler: FakeScheduler
    ) -> None:
        reconciler.reconcile(KEY)
        assert scheduler.requeues == []

    def test_invalid_spec_is_reported(
        self, reconciler: ConfigMapSyncReconciler, store: FakeResourceStore
    ) -> None:
        store.add_config_map_sync(make_config_map_sync(spec={"targetNamespaces": ["ns1"]}))
        with pytest.raises(ConfigurationError):
            reconciler.reconcile(KEY)
        ready = _status(store).conditions[0]
        assert ready.reason == "InvalidSpec"
        assert "sourceConfigMap" in ready.message
