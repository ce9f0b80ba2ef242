"""Identity of a namespaced object."""

from __future__ import annotations

from typing import NamedTuple


class RecordKey(NamedTuple):
    """Namespace/name pair identifying one desired-state record."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"
