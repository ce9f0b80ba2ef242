"""ConfigMap artifact as seen by the reconcilers."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class OwnerReference:
    """Back-reference from an artifact to the record that created it."""

    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = False


@dataclass
class ConfigMapArtifact:
    """A ConfigMap reduced to the fields the operator reads and writes.

    ``binary_data`` keeps the API's base64 text form; the operator copies it
    verbatim and never decodes it. ``annotations`` and ``finalizers`` are only
    carried so that a full replace writes them back unchanged.
    """

    name: str
    namespace: str
    data: dict[str, str] = field(default_factory=dict)
    binary_data: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)
    owner_references: list[OwnerReference] = field(default_factory=list)
    uid: str | None = None
    resource_version: str | None = None

    def is_owned_by(self, uid: str) -> bool:
        """Return True if any owner reference carries the given uid."""
        if not uid:
            return False
        return any(ref.uid == uid for ref in self.owner_references)
