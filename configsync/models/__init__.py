"""Plain data models shared by the reconcilers and the storage layer."""

from configsync.models.configmap import ConfigMapArtifact, OwnerReference
from configsync.models.keys import RecordKey

__all__ = [
    "ConfigMapArtifact",
    "OwnerReference",
    "RecordKey",
]
