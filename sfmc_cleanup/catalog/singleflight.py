"""Request coalescing for expensive fetches."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Collapses concurrent calls for the same key into one execution.

    The first caller for a key runs the function; callers arriving while it is
    in flight block on the same future and receive its result or exception.
    The registry entry is removed when the call finishes, including on error,
    so a failed fetch is retried by the next caller instead of being cached.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._calls: dict[Hashable, Future] = {}

    def do(self, key: Hashable, fn: Callable[[], T]) -> T:
        """Run ``fn`` once per key among concurrent callers.

        Args:
            key: Coalescing key, e.g. ``("folders", tenant_id)``
            fn: Zero-argument callable producing the value

        Returns:
            The value produced by the leader call
        """
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            logger.debug(f"Joining in-flight request for {key}")
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)

    def in_flight(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._calls
