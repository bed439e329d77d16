"""Deletion operation model.

Represents one cleanup run with its options, counts and final exit code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class OperationMode(Enum):
    """Operation execution mode."""

    DRY_RUN = "dry-run"
    EXECUTE = "execute"


class OperationStatus(Enum):
    """Operation execution status with state transitions."""

    PLANNED = "planned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


@dataclass
class DeletionOperation:
    """Deletion operation entity.

    State transitions:
        planned → (dry-run exit)
        planned → aborted (not found, protection/dependency block, declined)
        planned → executing → completed (all succeeded)
        planned → executing → partial (some failed)
        planned → executing → failed (all failed)
        planned → executing → cancelled (interrupted)

    Attributes:
        operation_id: Unique identifier, also the resume handle
        target_folder: Folder path or name supplied by the operator
        tenant_id: Business unit the run executes against
        resource_kind: "data_extension" or "folder"
        timestamp: When the operation was initiated (UTC)
        mode: dry-run or execute
        status: Current execution status
        total_resources: Candidates selected for deletion
        succeeded_count: Number successfully deleted
        failed_count: Number that failed to delete
        skipped_count: Number skipped due to protections
        options: Options the run was started with
        started_at: When execution started
        completed_at: When execution completed
        exit_code: Final process exit code
    """

    operation_id: str
    target_folder: str
    tenant_id: str
    resource_kind: str
    timestamp: datetime
    mode: OperationMode
    status: OperationStatus
    total_resources: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    options: dict = field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    exit_code: Optional[int] = None

    @property
    def processed_count(self) -> int:
        return self.succeeded_count + self.failed_count

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def finalize_status(self) -> OperationStatus:
        """Derive the terminal status from the outcome counts."""
        if self.failed_count > 0:
            self.status = OperationStatus.PARTIAL if self.succeeded_count > 0 else OperationStatus.FAILED
        else:
            self.status = OperationStatus.COMPLETED
        return self.status

    def validate(self) -> bool:
        """Validate operation invariants.

        Raises:
            ValueError: If any validation rule fails
        """
        if self.processed_count > self.total_resources:
            raise ValueError("Processed count exceeds total resources")

        if self.completed_at and self.started_at:
            if self.completed_at < self.started_at:
                raise ValueError("Completion time before start time")

        if self.mode == OperationMode.DRY_RUN and self.processed_count > 0:
            raise ValueError("Dry-run mode cannot process deletions")

        return True
