"""Git repository source: shallow clone into a throwaway workspace."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from configsync.exceptions import FetchError, StorageError
from configsync.filesystem.config_reader import read_config_files, resolve_within

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.schemas.config_source import GitSource, SecretKeyRef
    from configsync.services.git_service import GitService
    from configsync.storage.base import SecretStore

logger = logging.getLogger(__name__)

_WORKSPACE_PREFIX = "git-config-"


class GitConfigSource:
    """Fetches configuration from a path inside a git branch.

    Each fetch clones into its own temporary directory, which is removed on
    every exit path. The optional SSH key is written into that directory and
    goes with it.
    """

    source_type = "Git"

    def __init__(
        self,
        git: GitService,
        secrets: SecretStore,
        workspace_dir: Path | None = None,
    ) -> None:
        self.git = git
        self.secrets = secrets
        self.workspace_dir = workspace_dir

    def _write_identity(self, ref: SecretKeyRef, owner_namespace: str, workspace: Path) -> Path:
        namespace = ref.namespace or owner_namespace
        try:
            key = self.secrets.get_secret_value(ref.name, namespace, ref.key)
        except StorageError as exc:
            raise FetchError(self.source_type, f"failed to get auth secret: {exc}") from exc
        if key is None:
            msg = f"SSH key not found in secret {namespace}/{ref.name} at key {ref.key!r}"
            raise FetchError(self.source_type, msg)

        identity = workspace / "identity"
        try:
            fd = os.open(identity, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(key)
                if not key.endswith(b"\n"):
                    # OpenSSH refuses keys without a trailing newline
                    f.write(b"\n")
        except OSError as exc:
            raise FetchError(self.source_type, f"failed to write SSH identity: {exc}") from exc
        return identity

    def fetch(
        self,
        descriptor: GitSource,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        try:
            workspace_dir = tempfile.TemporaryDirectory(
                prefix=_WORKSPACE_PREFIX, dir=self.workspace_dir
            )
        except OSError as exc:
            raise FetchError(self.source_type, f"failed to create workspace: {exc}") from exc
        with workspace_dir as tmp:
            workspace = Path(tmp)
            identity = None
            if descriptor.auth_secret_ref is not None:
                identity = self._write_identity(
                    descriptor.auth_secret_ref, owner_namespace, workspace
                )

            checkout = workspace / "repo"
            try:
                self.git.shallow_clone(
                    descriptor.url,
                    descriptor.revision,
                    checkout,
                    identity_file=identity,
                    cancel=cancel,
                )
            except subprocess.CalledProcessError as exc:
                stderr = (exc.stderr or "").strip()
                msg = f"failed to clone {descriptor.url} at {descriptor.revision}: {stderr}"
                raise FetchError(self.source_type, msg) from exc
            except OSError as exc:
                msg = f"failed to run git: {exc}"
                raise FetchError(self.source_type, msg) from exc

            commit = self.git.head_commit(checkout)
            logger.info(
                "Cloned %s at %s (commit %s)", descriptor.url, descriptor.revision, commit
            )

            try:
                config_path = resolve_within(checkout, descriptor.path)
            except ValueError as exc:
                raise FetchError(self.source_type, str(exc)) from exc
            try:
                return read_config_files(config_path)
            except (OSError, UnicodeDecodeError) as exc:
                msg = f"failed to read {descriptor.path or '.'} from repository: {exc}"
                raise FetchError(self.source_type, msg) from exc
