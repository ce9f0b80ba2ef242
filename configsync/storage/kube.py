"""Kubernetes-backed implementations of the storage protocols."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from configsync.constants import CONFIG_MAP_SYNC, CONFIG_SOURCE, CustomResource
from configsync.exceptions import ConflictError, StorageError
from configsync.models import ConfigMapArtifact, OwnerReference
from configsync.schemas.config_map_sync import ConfigMapSync
from configsync.schemas.config_source import ConfigSource

if TYPE_CHECKING:
    from configsync.config import Settings
    from configsync.models import RecordKey
    from configsync.schemas.common import CustomRecord

logger = logging.getLogger(__name__)

_NOT_FOUND = 404
_CONFLICT = 409


def load_api_client(settings: Settings) -> client.ApiClient:
    """Load cluster credentials and return an API client.

    In-cluster mode uses the pod's ServiceAccount token; otherwise the local
    kubeconfig is used.
    """
    if settings.in_cluster:
        config.load_incluster_config()
    else:
        config.load_kube_config()
    return client.ApiClient()


def _storage_error(action: str, exc: ApiException) -> StorageError:
    if exc.status == _CONFLICT:
        return ConflictError(f"Conflict while trying to {action}: {exc.reason}")
    return StorageError(f"Failed to {action}: {exc.status} {exc.reason}")


def _to_artifact(cm: client.V1ConfigMap) -> ConfigMapArtifact:
    meta = cm.metadata
    owners = [
        OwnerReference(
            api_version=ref.api_version,
            kind=ref.kind,
            name=ref.name,
            uid=ref.uid,
            controller=bool(ref.controller),
            block_owner_deletion=bool(ref.block_owner_deletion),
        )
        for ref in meta.owner_references or []
    ]
    return ConfigMapArtifact(
        name=meta.name,
        namespace=meta.namespace,
        data=dict(cm.data or {}),
        binary_data=dict(cm.binary_data or {}),
        labels=dict(meta.labels or {}),
        annotations=dict(meta.annotations or {}),
        finalizers=list(meta.finalizers or []),
        owner_references=owners,
        uid=meta.uid,
        resource_version=meta.resource_version,
    )


def _to_body(artifact: ConfigMapArtifact) -> client.V1ConfigMap:
    owners = [
        client.V1OwnerReference(
            api_version=ref.api_version,
            kind=ref.kind,
            name=ref.name,
            uid=ref.uid,
            controller=ref.controller,
            block_owner_deletion=ref.block_owner_deletion,
        )
        for ref in artifact.owner_references
    ]
    return client.V1ConfigMap(
        api_version="v1",
        kind="ConfigMap",
        metadata=client.V1ObjectMeta(
            name=artifact.name,
            namespace=artifact.namespace,
            labels=artifact.labels or None,
            annotations=artifact.annotations or None,
            finalizers=artifact.finalizers or None,
            owner_references=owners or None,
            resource_version=artifact.resource_version,
        ),
        data=artifact.data,
        binary_data=artifact.binary_data or None,
    )


def _metadata_patch(record: CustomRecord, **fields: Any) -> dict[str, Any]:
    """Build a metadata merge patch carrying resourceVersion as a write precondition."""
    metadata = dict(fields)
    if record.metadata.resource_version is not None:
        metadata["resourceVersion"] = record.metadata.resource_version
    return metadata


def _status_body(record: CustomRecord, status: Any) -> dict[str, Any]:
    return {
        "metadata": _metadata_patch(record),
        "status": status.model_dump(mode="json", by_alias=True, exclude_none=True),
    }


class KubeResourceStore:
    """ResourceStore backed by the Kubernetes API."""

    def __init__(self, api_client: client.ApiClient) -> None:
        self._core = client.CoreV1Api(api_client)
        self._custom = client.CustomObjectsApi(api_client)

    # Custom resources

    def _get_custom(self, resource: CustomResource, key: RecordKey) -> dict[str, Any] | None:
        try:
            return self._custom.get_namespaced_custom_object(
                resource.group, resource.version, key.namespace, resource.plural, key.name
            )
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise _storage_error(f"get {resource.kind} {key}", exc) from exc

    def _patch_custom(
        self,
        resource: CustomResource,
        key: RecordKey,
        body: dict[str, Any],
        *,
        status: bool = False,
    ) -> dict[str, Any]:
        patch = (
            self._custom.patch_namespaced_custom_object_status
            if status
            else self._custom.patch_namespaced_custom_object
        )
        try:
            return patch(
                resource.group, resource.version, key.namespace, resource.plural, key.name, body
            )
        except ApiException as exc:
            target = f"{resource.kind} {key}"
            action = f"patch status of {target}" if status else f"patch {target}"
            raise _storage_error(action, exc) from exc

    def get_config_source(self, key: RecordKey) -> ConfigSource | None:
        body = self._get_custom(CONFIG_SOURCE, key)
        return None if body is None else ConfigSource.model_validate(body)

    def update_config_source_finalizers(self, record: ConfigSource) -> ConfigSource:
        body = {"metadata": _metadata_patch(record, finalizers=record.metadata.finalizers)}
        stored = self._patch_custom(CONFIG_SOURCE, record.key, body)
        return ConfigSource.model_validate(stored)

    def update_config_source_status(self, record: ConfigSource) -> None:
        self._patch_custom(
            CONFIG_SOURCE, record.key, _status_body(record, record.status), status=True
        )

    def get_config_map_sync(self, key: RecordKey) -> ConfigMapSync | None:
        body = self._get_custom(CONFIG_MAP_SYNC, key)
        return None if body is None else ConfigMapSync.model_validate(body)

    def update_config_map_sync_status(self, record: ConfigMapSync) -> None:
        self._patch_custom(
            CONFIG_MAP_SYNC, record.key, _status_body(record, record.status), status=True
        )

    # ConfigMaps

    def get_config_map(self, name: str, namespace: str) -> ConfigMapArtifact | None:
        try:
            cm = self._core.read_namespaced_config_map(name, namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise _storage_error(f"get ConfigMap {namespace}/{name}", exc) from exc
        return _to_artifact(cm)

    def create_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        try:
            cm = self._core.create_namespaced_config_map(artifact.namespace, _to_body(artifact))
        except ApiException as exc:
            raise _storage_error(
                f"create ConfigMap {artifact.namespace}/{artifact.name}", exc
            ) from exc
        return _to_artifact(cm)

    def update_config_map(self, artifact: ConfigMapArtifact) -> ConfigMapArtifact:
        try:
            cm = self._core.replace_namespaced_config_map(
                artifact.name, artifact.namespace, _to_body(artifact)
            )
        except ApiException as exc:
            raise _storage_error(
                f"update ConfigMap {artifact.namespace}/{artifact.name}", exc
            ) from exc
        return _to_artifact(cm)

    def delete_config_map(self, artifact: ConfigMapArtifact) -> bool:
        # The uid precondition makes sure a same-named replacement is never removed.
        options = client.V1DeleteOptions(preconditions=client.V1Preconditions(uid=artifact.uid))
        try:
            self._core.delete_namespaced_config_map(
                artifact.name, artifact.namespace, body=options
            )
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return False
            raise _storage_error(
                f"delete ConfigMap {artifact.namespace}/{artifact.name}", exc
            ) from exc
        return True


class KubeSecretStore:
    """SecretStore backed by the Kubernetes API."""

    def __init__(self, api_client: client.ApiClient) -> None:
        self._core = client.CoreV1Api(api_client)

    def get_secret_data(self, name: str, namespace: str) -> dict[str, bytes] | None:
        try:
            secret = self._core.read_namespaced_secret(name, namespace)
        except ApiException as exc:
            if exc.status == _NOT_FOUND:
                return None
            raise _storage_error(f"get Secret {namespace}/{name}", exc) from exc
        return {key: base64.b64decode(value) for key, value in (secret.data or {}).items()}

    def get_secret_value(self, name: str, namespace: str, key: str) -> bytes | None:
        data = self.get_secret_data(name, namespace)
        if data is None:
            return None
        return data.get(key)
