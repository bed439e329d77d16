"""Sequential batch execution with checkpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from ..models.operation_state import OperationState
from ..utils.dates import utcnow
from .cancellation import CancellationToken
from .state import StateStorage

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 10
MAX_BATCH_SIZE = 50
DEFAULT_DELAY_SECONDS = 0.2

DeleteAction = Callable[[T], "tuple[bool, Optional[str]]"]
ResultCallback = Callable[[T, bool, Optional[str]], None]


@dataclass
class ExecutionOutcome:
    """Counts produced by one pass over the execution list."""

    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed


class BatchExecutor(Generic[T]):
    """Deletes items one at a time with a fixed delay between calls.

    Deletions are never parallel. Progress is written to the state storage
    after every ``batch_size`` items and when cancellation is observed, so an
    interrupted run keeps an accurate ``remaining`` list.

    Attributes:
        state_storage: Where operation state is checkpointed
        token: Cancellation token checked before every item
        batch_size: Items between checkpoints
        delay_seconds: Pause between consecutive delete calls
    """

    def __init__(
        self,
        state_storage: StateStorage,
        token: Optional[CancellationToken] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sleep: Optional[Callable[[float], object]] = None,
    ) -> None:
        if batch_size < 1 or batch_size > MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")

        self.state_storage = state_storage
        self.token = token or CancellationToken()
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep or self.token.wait

    def run(
        self,
        state: OperationState,
        items: list[T],
        key: Callable[[T], str],
        action: DeleteAction,
        on_result: Optional[ResultCallback] = None,
    ) -> ExecutionOutcome:
        """Process items in order, isolating per-item failures.

        ``state.remaining`` is set to the keys of ``items`` and shrinks as
        items are processed; ``state.processed`` grows with one outcome per
        attempted item.

        Args:
            state: Operation state to update and checkpoint
            items: Items in execution order
            key: Stable identifier of an item
            action: Deletes one item, returning (success, error_message)
            on_result: Called after every attempt

        Returns:
            ExecutionOutcome with counts and whether the run was cancelled
        """
        outcome = ExecutionOutcome()
        state.remaining = [key(item) for item in items]
        total = len(items)

        for index, item in enumerate(items):
            if self.token.cancelled:
                outcome.cancelled = True
                break

            item_key = key(item)
            try:
                success, error = action(item)
            except Exception as e:
                logger.error(f"Unexpected error deleting {item_key}: {e}")
                success, error = False, str(e) or e.__class__.__name__

            state.processed.append(
                {
                    "key": item_key,
                    "status": "succeeded" if success else "failed",
                    "error": error,
                    "timestamp": utcnow().isoformat(),
                }
            )
            state.remaining.pop(0)

            if success:
                outcome.succeeded += 1
            else:
                outcome.failed += 1

            if on_result:
                on_result(item, success, error)

            done = index + 1
            if done % self.batch_size == 0 and done < total:
                self.state_storage.save(state)
                logger.debug(f"Checkpoint after {done}/{total} item(s)")

            if done < total and self.delay_seconds:
                self._sleep(self.delay_seconds)

        if outcome.cancelled or (self.token.cancelled and state.remaining):
            outcome.cancelled = True
            self.state_storage.save(state)
            logger.warning(
                f"Run cancelled with {len(state.remaining)} item(s) remaining; "
                f"progress saved for {state.operation_id}"
            )

        return outcome
