"""API coordinates, finalizer names and condition vocabulary."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CustomResource:
    """Coordinates of a custom resource served by the API server."""

    group: str
    version: str
    plural: str
    kind: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


CONFIG_SOURCE = CustomResource(
    group="config.example.com",
    version="v1alpha1",
    plural="configsources",
    kind="ConfigSource",
)

CONFIG_MAP_SYNC = CustomResource(
    group="sync.example.com",
    version="v1alpha1",
    plural="configmapsyncs",
    kind="ConfigMapSync",
)

FINALIZER = "configmapsource.config.example.com/finalizer"

CONDITION_READY = "Ready"

REASON_SYNC_SUCCESS = "SyncSuccess"
REASON_FETCH_FAILED = "FetchFailed"
REASON_INVALID_SPEC = "InvalidSpec"
REASON_PARTIAL_SYNC = "PartialSync"
