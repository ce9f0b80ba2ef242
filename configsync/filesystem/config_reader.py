"""Read configuration files from a local file or directory."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def read_config_files(path: Path) -> dict[str, str]:
    """Read a file or the files directly inside a directory into a content map.

    - Directory: one entry per regular file, keyed by file name. Subdirectories
      are skipped; nothing is read recursively.
    - File: a single entry keyed by the file's base name.

    Content is read verbatim (no newline translation) and must be UTF-8.
    Raises OSError if the path does not exist or a file cannot be read, and
    UnicodeDecodeError for non-UTF-8 content.
    """
    if path.is_dir():
        content: dict[str, str] = {}
        for entry in sorted(path.iterdir()):
            if not entry.is_file():
                logger.debug("Skipping non-file entry %s", entry)
                continue
            content[entry.name] = entry.read_bytes().decode("utf-8")
        return content

    if not path.exists():
        msg = f"No such file or directory: {path}"
        raise FileNotFoundError(msg)
    return {path.name: path.read_bytes().decode("utf-8")}


def resolve_within(root: Path, rel_path: str) -> Path:
    """Resolve rel_path under root, refusing paths that escape it.

    Raises ValueError if the resolved path is outside root.
    """
    full_path = (root / rel_path).resolve()
    if not full_path.is_relative_to(root.resolve()):
        msg = f"Path traversal detected: {rel_path}"
        raise ValueError(msg)
    return full_path
