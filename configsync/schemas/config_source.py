"""ConfigSource schemas: the desired-state record and its source descriptors."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, ClassVar

from pydantic import Field, field_validator

from configsync.exceptions import ConfigurationError
from configsync.schemas.common import (
    ApiModel,
    Condition,
    CustomRecord,
    NonEmptyStr,
    Timestamp,
)


class SourceType(StrEnum):
    """Where a ConfigSource reads its configuration from."""

    GIT = "Git"
    FILE = "File"
    CONFIG_MAP = "ConfigMap"
    SECRET = "Secret"


class SecretKeyRef(ApiModel):
    """One key of a Secret, used for git SSH credentials."""

    name: NonEmptyStr
    namespace: str = ""
    key: NonEmptyStr


class GitSource(ApiModel):
    """A path inside a branch of a git repository."""

    source_type: ClassVar[SourceType] = SourceType.GIT

    url: NonEmptyStr
    revision: NonEmptyStr
    path: str = ""
    auth_secret_ref: SecretKeyRef | None = None


class FileSource(ApiModel):
    """A file or directory on the operator's local filesystem."""

    source_type: ClassVar[SourceType] = SourceType.FILE

    path: NonEmptyStr


class _KeyedSource(ApiModel):
    name: NonEmptyStr
    namespace: str = ""
    keys: list[str] = Field(default_factory=list)


class ConfigMapRef(_KeyedSource):
    """Another ConfigMap, optionally restricted to some keys."""

    source_type: ClassVar[SourceType] = SourceType.CONFIG_MAP


class SecretRef(_KeyedSource):
    """A Secret, optionally restricted to some keys. Values are decoded as text."""

    source_type: ClassVar[SourceType] = SourceType.SECRET


SourceDescriptor = GitSource | FileSource | ConfigMapRef | SecretRef


class ConfigSourceSpec(ApiModel):
    """Validated ConfigSource spec."""

    source_type: SourceType
    git: GitSource | None = None
    file: FileSource | None = None
    config_map: ConfigMapRef | None = None
    secret: SecretRef | None = None
    target_config_map: NonEmptyStr
    target_namespace: str = ""
    refresh_interval: int | None = Field(default=None, ge=0)

    def source(self) -> SourceDescriptor:
        """Return the descriptor selected by source_type.

        Raises ConfigurationError if the matching descriptor is not populated.
        """
        descriptors: dict[SourceType, SourceDescriptor | None] = {
            SourceType.GIT: self.git,
            SourceType.FILE: self.file,
            SourceType.CONFIG_MAP: self.config_map,
            SourceType.SECRET: self.secret,
        }
        descriptor = descriptors[self.source_type]
        if descriptor is None:
            msg = f"{self.source_type} source configuration is missing"
            raise ConfigurationError(msg)
        return descriptor


class SyncStatus(ApiModel):
    """Observed state of a ConfigSource."""

    last_sync_time: Timestamp | None = None
    last_sync_hash: str = ""
    conditions: list[Condition] = Field(default_factory=list)


class ConfigSource(CustomRecord):
    """A ConfigSource custom resource."""

    status: SyncStatus = Field(default_factory=SyncStatus)

    @field_validator("status", mode="before")
    @classmethod
    def status_none_is_empty(cls, v: Any) -> Any:
        """Treat a missing status subresource as empty."""
        _ = cls
        return {} if v is None else v

    def parsed_spec(self) -> ConfigSourceSpec:
        """Validate the raw spec. Raises ConfigurationError when invalid."""
        return self._parse_spec(ConfigSourceSpec)

    @property
    def target_name(self) -> str:
        """Target ConfigMap name, read leniently so deletion works on invalid specs."""
        value = self.spec.get("targetConfigMap")
        return value if isinstance(value, str) else ""

    @property
    def target_namespace(self) -> str:
        """Target namespace, defaulting to the record's own namespace."""
        value = self.spec.get("targetNamespace")
        if isinstance(value, str) and value:
            return value
        return self.metadata.namespace
