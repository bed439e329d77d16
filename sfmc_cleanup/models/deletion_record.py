"""Deletion record model.

Individual resource deletion attempt with result and metadata.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..utils.dates import parse_timestamp


class DeletionStatus(Enum):
    """Individual resource deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeletionRecord:
    """Deletion record entity.

    Validation rules:
        - status=succeeded: no error_message or protection_reason
        - status=failed: requires error_message
        - status=skipped: requires protection_reason

    Attributes:
        record_id: Unique identifier for this record
        operation_id: Parent operation identifier
        resource_key: Customer key (data extension) or folder ID
        resource_name: Display name at deletion time
        resource_type: "DataExtension" or "Folder"
        timestamp: When deletion was attempted (UTC)
        status: Deletion outcome
        error_message: Error if failed
        protection_reason: Why the resource was skipped
        row_count: Rows lost with the data extension, if known
        parent_folder: Folder the resource lived in
    """

    record_id: str
    operation_id: str
    resource_key: str
    resource_name: str
    resource_type: str
    timestamp: datetime
    status: DeletionStatus
    error_message: Optional[str] = None
    protection_reason: Optional[str] = None
    row_count: Optional[int] = None
    parent_folder: Optional[str] = None

    def validate(self) -> bool:
        """Validate record invariants.

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == DeletionStatus.FAILED:
            if not self.error_message:
                raise ValueError("Failed status requires error_message")
        elif self.status == DeletionStatus.SKIPPED:
            if not self.protection_reason:
                raise ValueError("Skipped status requires protection_reason")
        elif self.status == DeletionStatus.SUCCEEDED:
            if self.error_message or self.protection_reason:
                raise ValueError("Succeeded status cannot have error or protection reason")

        if self.row_count is not None and self.row_count < 0:
            raise ValueError("Row count cannot be negative")

        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "resource_key": self.resource_key,
            "resource_name": self.resource_name,
            "resource_type": self.resource_type,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "error_message": self.error_message,
            "protection_reason": self.protection_reason,
            "row_count": self.row_count,
            "parent_folder": self.parent_folder,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], operation_id: str) -> "DeletionRecord":
        """Rebuild a record from its audit log entry."""
        return cls(
            record_id=data["record_id"],
            operation_id=operation_id,
            resource_key=str(data["resource_key"]),
            resource_name=data["resource_name"],
            resource_type=data["resource_type"],
            timestamp=parse_timestamp(data["timestamp"]),
            status=DeletionStatus(data["status"]),
            error_message=data.get("error_message"),
            protection_reason=data.get("protection_reason"),
            row_count=data.get("row_count"),
            parent_folder=data.get("parent_folder"),
        )
