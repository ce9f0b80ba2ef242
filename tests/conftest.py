"""Shared test fixtures and in-memory fakes for configsync."""

from __future__ import annotations

import copy
import itertools
import shutil
from typing import TYPE_CHECKING, Any

import pytest

from configsync.config import Settings
from configsync.constants import FINALIZER
from configsync.exceptions import ConflictError, StorageError
from configsync.models import ConfigMapArtifact, RecordKey
from configsync.schemas.config_map_sync import ConfigMapSync
from configsync.schemas.config_source import ConfigSource

if TYPE_CHECKING:
    from collections.abc import Hashable
    from pathlib import Path

    from configsync.cancel import CancelToken

GIT_AVAILABLE = shutil.which("git") is not None

requires_git = pytest.mark.skipif(not GIT_AVAILABLE, reason="git is not installed")


def make_config_source(
    name: str = "app-config",
    namespace: str = "default",
    *,
    spec: dict[str, Any] | None = None,
    uid: str | None = None,
    finalizers: list[str] | None = None,
    deleting: bool = False,
    generation: int = 1,
    status: dict[str, Any] | None = None,
) -> ConfigSource:
    """Build a ConfigSource the way the API server would return it."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "uid": uid or f"uid-{name}",
        "generation": generation,
        "resourceVersion": "1",
        "finalizers": [FINALIZER] if finalizers is None else finalizers,
    }
    if deleting:
        metadata["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    if spec is None:
        spec = {
            "sourceType": "File",
            "file": {"path": "/etc/app"},
            "targetConfigMap": "app-settings",
        }
    return ConfigSource.model_validate({"metadata": metadata, "spec": spec, "status": status})


def make_config_map_sync(
    name: str = "fanout",
    namespace: str = "source-ns",
    *,
    spec: dict[str, Any] | None = None,
    generation: int = 1,
) -> ConfigMapSync:
    metadata = {
        "name": name,
        "namespace": namespace,
        "uid": f"uid-{name}",
        "generation": generation,
        "resourceVersion": "1",
    }
    if spec is None:
        spec = {"sourceConfigMap": "shared", "targetNamespaces": ["ns1", "ns2"]}
    return ConfigMapSync.model_validate({"metadata": metadata, "spec": spec})


class FakeResourceStore:
    """In-memory ResourceStore with API-server-like copy and version semantics.

    Every read returns a deep copy. ConfigMap writes to a namespace listed in
    ``failing_namespaces`` raise StorageError.
    """

    def __init__(self) -> None:
        self.config_sources: dict[RecordKey, ConfigSource] = {}
        self.config_map_syncs: dict[RecordKey, ConfigMapSync] = {}
        self.config_maps: dict[tuple[str, str], ConfigMapArtifact] = {}
        self.failing_namespaces: set[str] = set()
        self.fail_status_writes = False
        self.created: list[tuple[str, str]] = []
        self.updated: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.finalizer_writes = 0
        self.status_writes = 0
        self._versions = itertools.count(100)
        self._uids = itertools.count(1)

    def _next_version(self) -> str:
        return str(next(self._versions))

    # Seeding helpers

    def add_config_source(self, record: ConfigSource) -> ConfigSource:
        self.config_sources[record.key] = record.model_copy(deep=True)
        return record

    def add_config_map_sync(self, record: ConfigMapSync) -> ConfigMapSync:
        self.config_map_syncs[record.key] = record.model_copy(deep=True)
        return record

    def add_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        stored = copy.deepcopy(artifact)
        stored.uid = stored.uid or f"cm-uid-{next(self._uids)}"
        stored.resource_version = self._next_version()
        self.config_maps[(stored.namespace, stored.name)] = stored
        return copy.deepcopy(stored)

    def config_map(self, namespace: str, name: str) -> ConfigMapArtifact | None:
        return self.config_maps.get((namespace, name))

    # ConfigSource

    def get_config_source(self, key: RecordKey) -> ConfigSource | None:
        record = self.config_sources.get(key)
        return None if record is None else record.model_copy(deep=True)

    def update_config_source_finalizers(self, record: ConfigSource) -> ConfigSource:
        self.finalizer_writes += 1
        stored = self.config_sources[record.key]
        stored.metadata.finalizers = list(record.metadata.finalizers)
        stored.metadata.resource_version = self._next_version()
        if stored.is_deleting and not stored.metadata.finalizers:
            del self.config_sources[record.key]
        return stored.model_copy(deep=True)

    def update_config_source_status(self, record: ConfigSource) -> None:
        if self.fail_status_writes:
            raise StorageError("status write failed")
        self.status_writes += 1
        stored = self.config_sources[record.key]
        stored.status = record.status.model_copy(deep=True)

    # ConfigMapSync

    def get_config_map_sync(self, key: RecordKey) -> ConfigMapSync | None:
        record = self.config_map_syncs.get(key)
        return None if record is None else record.model_copy(deep=True)

    def update_config_map_sync_status(self, record: ConfigMapSync) -> None:
        if self.fail_status_writes:
            raise StorageError("status write failed")
        self.status_writes += 1
        stored = self.config_map_syncs[record.key]
        stored.status = record.status.model_copy(deep=True)

    # ConfigMaps

    def _check_writable(self, namespace: str) -> None:
        if namespace in self.failing_namespaces:
            raise StorageError(f"namespace {namespace} is not writable")

    def get_config_map(self, name: str, namespace: str) -> ConfigMapArtifact | None:
        artifact = self.config_maps.get((namespace, name))
        return None if artifact is None else copy.deepcopy(artifact)

    def create_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        self._check_writable(artifact.namespace)
        if (artifact.namespace, artifact.name) in self.config_maps:
            raise ConflictError(f"ConfigMap {artifact.namespace}/{artifact.name} already exists")
        self.created.append((artifact.namespace, artifact.name))
        return self.add_config_map(artifact)

    def update_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        self._check_writable(artifact.namespace)
        current = self.config_maps.get((artifact.namespace, artifact.name))
        if current is None or current.resource_version != artifact.resource_version:
            raise ConflictError(f"ConfigMap {artifact.namespace}/{artifact.name} was modified")
        stored = copy.deepcopy(artifact)
        stored.resource_version = self._next_version()
        self.config_maps[(stored.namespace, stored.name)] = stored
        self.updated.append((artifact.namespace, artifact.name))
        return copy.deepcopy(stored)

    def delete_config_map(self, artifact: ConfigMapArtifact) -> bool:
        current = self.config_maps.get((artifact.namespace, artifact.name))
        if current is None:
            return False
        if artifact.uid is not None and current.uid != artifact.uid:
            raise ConflictError(f"ConfigMap {artifact.namespace}/{artifact.name} was replaced")
        del self.config_maps[(artifact.namespace, artifact.name)]
        self.deleted.append((artifact.namespace, artifact.name))
        return True


class FakeSecretStore:
    def __init__(self, secrets: dict[tuple[str, str], dict[str, bytes]] | None = None) -> None:
        self.secrets = secrets or {}
        self.error: Exception | None = None

    def get_secret_data(self, name: str, namespace: str) -> dict[str, bytes] | None:
        if self.error is not None:
            raise self.error
        data = self.secrets.get((namespace, name))
        return None if data is None else dict(data)

    def get_secret_value(self, name: str, namespace: str, key: str) -> bytes | None:
        data = self.get_secret_data(name, namespace)
        if data is None:
            return None
        return data.get(key)


class FakeScheduler:
    """Records requeue requests instead of acting on them."""

    def __init__(self) -> None:
        self.requeues: list[tuple[Hashable, float]] = []

    def requeue_after(self, key: Hashable, seconds: float) -> None:
        self.requeues.append((key, seconds))


class FakeGitService:
    """Stands in for GitService by writing a fixed file tree as the checkout."""

    def __init__(self, files: dict[str, str] | None = None, commit: str = "abc123") -> None:
        self.files = files or {}
        self.commit = commit
        self.error: Exception | None = None
        self.clones: list[dict[str, Any]] = []

    def shallow_clone(
        self,
        url: str,
        revision: str,
        dest: Path,
        *,
        identity_file: Path | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        self.clones.append(
            {
                "url": url,
                "revision": revision,
                "dest": dest,
                "identity_file": identity_file,
                "identity": identity_file.read_bytes() if identity_file else None,
                "identity_mode": identity_file.stat().st_mode & 0o777 if identity_file else None,
                "cancel": cancel,
            }
        )
        if self.error is not None:
            raise self.error
        dest.mkdir(parents=True)
        for rel_path, content in self.files.items():
            target = dest / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

    def head_commit(self, repo_dir: Path) -> str | None:
        return self.commit


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def store() -> FakeResourceStore:
    return FakeResourceStore()


@pytest.fixture
def secret_store() -> FakeSecretStore:
    return FakeSecretStore()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()
