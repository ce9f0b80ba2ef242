"""Resync policy for ConfigSource records."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from configsync.schemas.config_source import ConfigSourceSpec


def refresh_delay(spec: ConfigSourceSpec) -> float | None:
    """Seconds until the next periodic pass, or None to wait for watch events.

    A moving git branch is only picked up on the next event when no refresh
    interval is set.
    """
    if spec.refresh_interval is None or spec.refresh_interval <= 0:
        return None
    return float(spec.refresh_interval)
