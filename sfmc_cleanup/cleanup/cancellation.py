"""Cooperative cancellation for deletion runs."""

from __future__ import annotations

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """Flag observed by the executor before every deletion.

    The CLI interrupt handler only sets the flag. Persisting progress on
    cancel is done by the executor at its next checkpoint, never from inside
    the signal handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "Interrupted by user") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.warning(f"Cancellation requested: {reason}")

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early when cancelled."""
        return self._event.wait(timeout)
