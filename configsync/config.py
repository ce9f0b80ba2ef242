"""Operator configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """configsync operator settings."""

    model_config = SettingsConfigDict(
        env_prefix="CONFIGSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Cluster access
    in_cluster: bool = True
    namespaces: list[str] = Field(default_factory=list)

    # Dispatcher
    workers: int = Field(default=4, ge=1, le=256)
    backoff_base_seconds: float = Field(default=1.0, gt=0)
    backoff_max_seconds: float = Field(default=300.0, gt=0)
    pass_timeout_seconds: float = Field(default=0.0, ge=0)

    # Resync policy
    fetch_retry_seconds: float = Field(default=60.0, gt=0)
    fanout_interval_seconds: float = Field(default=300.0, gt=0)
    fanout_source_retry_seconds: float = Field(default=10.0, gt=0)

    # Git
    workspace_dir: Path | None = None
    git_binary: str = "git"
    git_known_hosts_file: Path | None = None

    def validate_runtime(self) -> None:
        """Validate settings that depend on each other or on the filesystem."""
        violations: list[str] = []
        if self.backoff_max_seconds < self.backoff_base_seconds:
            violations.append("BACKOFF_MAX_SECONDS must be >= BACKOFF_BASE_SECONDS")
        if self.workspace_dir is not None and not self.workspace_dir.is_dir():
            violations.append(f"WORKSPACE_DIR is not a directory: {self.workspace_dir}")
        if self.git_known_hosts_file is not None and not self.git_known_hosts_file.is_file():
            violations.append(f"GIT_KNOWN_HOSTS_FILE does not exist: {self.git_known_hosts_file}")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Invalid configsync configuration: {joined}")
