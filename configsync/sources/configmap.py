"""ConfigMap and Secret sources."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from configsync.exceptions import FetchError, StorageError
from configsync.sources.base import project_keys

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.schemas.config_source import ConfigMapRef, SecretRef
    from configsync.storage.base import ResourceStore, SecretStore

logger = logging.getLogger(__name__)


class ConfigMapConfigSource:
    """Copies (part of) another ConfigMap."""

    source_type = "ConfigMap"

    def __init__(self, store: ResourceStore) -> None:
        self.store = store

    def fetch(
        self,
        descriptor: ConfigMapRef,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        _ = cancel
        namespace = descriptor.namespace or owner_namespace
        logger.info("Fetching configuration from ConfigMap %s/%s", namespace, descriptor.name)
        try:
            source = self.store.get_config_map(descriptor.name, namespace)
        except StorageError as exc:
            raise FetchError(self.source_type, f"failed to get source ConfigMap: {exc}") from exc
        if source is None:
            msg = f"source ConfigMap {namespace}/{descriptor.name} not found"
            raise FetchError(self.source_type, msg)
        return project_keys(source.data, descriptor.keys)


class SecretConfigSource:
    """Copies (part of) a Secret, decoding its values as UTF-8 text.

    Bytes that are not valid UTF-8 are replaced with U+FFFD, so binary
    secrets do not survive the copy.
    """

    source_type = "Secret"

    def __init__(self, secrets: SecretStore) -> None:
        self.secrets = secrets

    def fetch(
        self,
        descriptor: SecretRef,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        _ = cancel
        namespace = descriptor.namespace or owner_namespace
        logger.info("Fetching configuration from Secret %s/%s", namespace, descriptor.name)
        try:
            data = self.secrets.get_secret_data(descriptor.name, namespace)
        except StorageError as exc:
            raise FetchError(self.source_type, f"failed to get source Secret: {exc}") from exc
        if data is None:
            msg = f"source Secret {namespace}/{descriptor.name} not found"
            raise FetchError(self.source_type, msg)
        selected = project_keys(data, descriptor.keys)
        return {key: value.decode("utf-8", errors="replace") for key, value in selected.items()}
