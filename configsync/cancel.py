"""Per-pass cancellation token."""

from __future__ import annotations

import threading
import time


class CancelToken:
    """Cancellation signal shared by everything one reconcile pass does.

    A token is cancelled explicitly, when its parent event is set (operator
    shutdown), or once its optional deadline passes. Long-running
    collaborators poll ``cancelled``; nothing is interrupted asynchronously.
    """

    def __init__(
        self,
        parent: threading.Event | None = None,
        timeout: float | None = None,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        self._deadline = time.monotonic() + timeout if timeout else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._parent is not None and self._parent.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline
