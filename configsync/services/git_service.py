"""Git service: shallow clones via the git CLI."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import TYPE_CHECKING

from configsync.exceptions import FetchCancelledError

if TYPE_CHECKING:
    from pathlib import Path

    from configsync.cancel import CancelToken

logger = logging.getLogger(__name__)

_POLL_INTERVAL_SECONDS = 0.2


class GitService:
    """Wraps the git CLI operations the Git source needs."""

    def __init__(self, git_binary: str = "git", known_hosts_file: Path | None = None) -> None:
        self.git_binary = git_binary
        self.known_hosts_file = known_hosts_file

    def _ssh_command(self, identity_file: Path) -> str:
        """Build GIT_SSH_COMMAND for key-based authentication."""
        args = [
            "ssh",
            "-i",
            str(identity_file),
            "-o",
            "IdentitiesOnly=yes",
            "-o",
            "BatchMode=yes",
        ]
        if self.known_hosts_file is not None:
            args += ["-o", f"UserKnownHostsFile={self.known_hosts_file}"]
            args += ["-o", "StrictHostKeyChecking=yes"]
        else:
            args += ["-o", "StrictHostKeyChecking=accept-new"]
        return shlex.join(args)

    def _run(
        self,
        *args: str,
        env: dict[str, str] | None = None,
        cancel: CancelToken | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command, polling the cancel token while it runs if one is given.

        Raises subprocess.CalledProcessError on a non-zero exit and
        FetchCancelledError if the token is cancelled first.
        """
        cmd = [self.git_binary, *args]
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            env=env,
        )
        if cancel is None:
            stdout, stderr = proc.communicate()
        else:
            stdout, stderr = self._wait(proc, cancel, args[0] if args else "")

        if proc.returncode != 0:
            raise subprocess.CalledProcessError(proc.returncode, cmd, output=stdout, stderr=stderr)
        return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)

    @staticmethod
    def _wait(
        proc: subprocess.Popen[str], cancel: CancelToken, command: str
    ) -> tuple[str, str]:
        while True:
            try:
                return proc.communicate(timeout=_POLL_INTERVAL_SECONDS)
            except subprocess.TimeoutExpired:
                if cancel.cancelled:
                    proc.kill()
                    proc.communicate()
                    logger.warning("Cancelled git %s", command)
                    raise FetchCancelledError("Git", "git command cancelled") from None

    def shallow_clone(
        self,
        url: str,
        revision: str,
        dest: Path,
        *,
        identity_file: Path | None = None,
        cancel: CancelToken | None = None,
    ) -> None:
        """Clone a single branch at depth 1 into dest.

        dest must not exist or be empty. When identity_file is given it is used
        as the SSH private key for the transport.
        """
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        if identity_file is not None:
            env["GIT_SSH_COMMAND"] = self._ssh_command(identity_file)

        logger.info("Cloning %s at %s", url, revision)
        self._run(
            "clone",
            "--depth",
            "1",
            "--single-branch",
            "--no-tags",
            "--branch",
            revision,
            "--",
            url,
            str(dest),
            env=env,
            cancel=cancel,
        )

    def head_commit(self, repo_dir: Path) -> str | None:
        """Return the HEAD commit hash of a checkout, or None if there is none."""
        try:
            result = self._run("-C", str(repo_dir), "rev-parse", "HEAD")
        except subprocess.CalledProcessError:
            return None
        return result.stdout.strip()
