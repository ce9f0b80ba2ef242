"""Base protocol and helpers for configuration sources."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from configsync.cancel import CancelToken

DescriptorT_contra = TypeVar("DescriptorT_contra", contravariant=True)
ValueT = TypeVar("ValueT")


@runtime_checkable
class ConfigSourceAdapter(Protocol[DescriptorT_contra]):
    """Protocol for source-specific fetch implementations."""

    source_type: str

    def fetch(
        self,
        descriptor: DescriptorT_contra,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        """Return the complete key -> content map, or raise FetchError."""
        ...


def project_keys(data: Mapping[str, ValueT], keys: list[str]) -> dict[str, ValueT]:
    """Restrict data to the requested keys.

    An empty keys list selects everything. Requested keys missing from data
    are skipped silently.
    """
    if not keys:
        return dict(data)
    return {key: data[key] for key in keys if key in data}
