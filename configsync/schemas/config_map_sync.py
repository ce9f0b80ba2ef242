"""ConfigMapSync schemas: fan-out of one ConfigMap into several namespaces."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from configsync.schemas.common import ApiModel, Condition, CustomRecord, NonEmptyStr, Timestamp


class ConfigMapSyncSpec(ApiModel):
    """Validated ConfigMapSync spec."""

    source_config_map: NonEmptyStr
    target_namespaces: list[str] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("target_namespaces")
    @classmethod
    def drop_blank_and_duplicate_namespaces(cls, v: list[str]) -> list[str]:
        """Keep the first occurrence of each non-empty namespace, in order."""
        _ = cls
        return list(dict.fromkeys(ns for ns in v if ns.strip()))


class ConfigMapSyncStatus(ApiModel):
    """Observed state of a ConfigMapSync."""

    last_sync_time: Timestamp | None = None
    synced_namespaces: list[str] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)


class ConfigMapSync(CustomRecord):
    """A ConfigMapSync custom resource."""

    status: ConfigMapSyncStatus = Field(default_factory=ConfigMapSyncStatus)

    @field_validator("status", mode="before")
    @classmethod
    def status_none_is_empty(cls, v: Any) -> Any:
        """Treat a missing status subresource as empty."""
        _ = cls
        return {} if v is None else v

    def parsed_spec(self) -> ConfigMapSyncSpec:
        """Validate the raw spec. Raises ConfigurationError when invalid."""
        return self._parse_spec(ConfigMapSyncSpec)
