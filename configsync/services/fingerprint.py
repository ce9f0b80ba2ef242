"""Content fingerprint used for change detection."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


def fingerprint(content: Mapping[str, str]) -> str:
    """Compute the SHA-256 digest of a content map.

    Keys are visited in sorted order and each key is fed to the hash followed
    directly by its value, with no separator. The result therefore does not
    depend on insertion order, and the empty map hashes like the empty string.

    Key/value boundaries are not encoded: ``{"ab": "c"}`` and ``{"a": "bc"}``
    produce the same digest. Stored ``lastSyncHash`` values depend on this
    encoding, so changing it forces a resync of every record.
    """
    sha = hashlib.sha256()
    for key in sorted(content):
        sha.update(key.encode("utf-8"))
        sha.update(content[key].encode("utf-8"))
    return sha.hexdigest()
