"""Source registry: routes a descriptor to the adapter for its kind."""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from configsync.schemas.config_source import ConfigMapRef, FileSource, GitSource, SecretRef
from configsync.services.git_service import GitService
from configsync.sources.configmap import ConfigMapConfigSource, SecretConfigSource
from configsync.sources.file import FileConfigSource
from configsync.sources.git import GitConfigSource

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.config import Settings
    from configsync.schemas.config_source import SourceDescriptor
    from configsync.storage.base import ResourceStore, SecretStore


class SourceRegistry:
    """Holds one adapter per source kind."""

    def __init__(
        self,
        git: GitConfigSource,
        file: FileConfigSource,
        config_map: ConfigMapConfigSource,
        secret: SecretConfigSource,
    ) -> None:
        self.git = git
        self.file = file
        self.config_map = config_map
        self.secret = secret

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: ResourceStore,
        secrets: SecretStore,
        git_service: GitService | None = None,
    ) -> SourceRegistry:
        """Build the default adapters around the given storage clients."""
        if git_service is None:
            git_service = GitService(settings.git_binary, settings.git_known_hosts_file)
        return cls(
            git=GitConfigSource(git_service, secrets, settings.workspace_dir),
            file=FileConfigSource(),
            config_map=ConfigMapConfigSource(store),
            secret=SecretConfigSource(secrets),
        )

    def fetch(
        self,
        descriptor: SourceDescriptor,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        """Fetch the content map for descriptor. Raises FetchError on failure."""
        if isinstance(descriptor, GitSource):
            return self.git.fetch(descriptor, owner_namespace, cancel)
        if isinstance(descriptor, FileSource):
            return self.file.fetch(descriptor, owner_namespace, cancel)
        if isinstance(descriptor, ConfigMapRef):
            return self.config_map.fetch(descriptor, owner_namespace, cancel)
        if isinstance(descriptor, SecretRef):
            return self.secret.fetch(descriptor, owner_namespace, cancel)
        assert_never(descriptor)
