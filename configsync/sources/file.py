"""Local file or directory source."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from configsync.exceptions import FetchError
from configsync.filesystem.config_reader import read_config_files

if TYPE_CHECKING:
    from configsync.cancel import CancelToken
    from configsync.schemas.config_source import FileSource

logger = logging.getLogger(__name__)


class FileConfigSource:
    """Reads configuration from the operator's own filesystem."""

    source_type = "File"

    def fetch(
        self,
        descriptor: FileSource,
        owner_namespace: str,
        cancel: CancelToken | None = None,
    ) -> dict[str, str]:
        _ = owner_namespace, cancel
        path = Path(descriptor.path)
        logger.info("Reading configuration from file %s", path)
        try:
            return read_config_files(path)
        except (OSError, UnicodeDecodeError) as exc:
            raise FetchError(self.source_type, f"failed to read {path}: {exc}") from exc
